"""Identity endpoints: first-login registration, the caller's own profile and user search."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from circle.domain.identity import service as identity_service
from circle.domain.identity.schemas import ProfileUpdateRequest, UserProfile, UserSearchResponse, UserSearchResult
from circle.infra.auth import AuthenticatedUser, IdentityClaims, get_current_user, get_identity_claims

router = APIRouter()


@router.post("/auth/register", response_model=UserProfile)
async def register(identity: IdentityClaims = Depends(get_identity_claims)) -> UserProfile:
	user = await identity_service.register(identity.subject, identity.claims)
	return UserProfile.from_user(user)


@router.get("/me", response_model=UserProfile)
async def get_me(auth_user: AuthenticatedUser = Depends(get_current_user)) -> UserProfile:
	user = await identity_service.get_user(auth_user.id)
	return UserProfile.from_user(user)


@router.patch("/me", response_model=UserProfile)
async def update_me(
	payload: ProfileUpdateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> UserProfile:
	user = await identity_service.update_profile(
		auth_user.id,
		display_name=payload.display_name,
		avatar_url=payload.avatar_url,
	)
	return UserProfile.from_user(user)


@router.get("/users/search", response_model=UserSearchResponse)
async def search_users(
	q: str = Query(..., max_length=80, description="Name fragment, at least 2 characters"),
	limit: Optional[int] = Query(default=None, description="Result cap, at most 20"),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> UserSearchResponse:
	hits = await identity_service.search(auth_user.id, q, limit=limit)
	rows = [UserSearchResult.from_hit(hit) for hit in hits]
	return UserSearchResponse(users=rows, count=len(rows))
