"""REST surface for invite tokens."""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, status

from circle.domain.exceptions import NotFoundError
from circle.domain.identity import service as identity_service
from circle.domain.invites import schemas
from circle.domain.invites.service import InviteService, to_summary
from circle.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/invites")

invite_service = InviteService()


@router.post("", response_model=schemas.InviteSummary, status_code=status.HTTP_201_CREATED)
async def create_invite(
	payload: schemas.InviteCreateRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.InviteSummary:
	invite = await invite_service.create(
		auth_user.id,
		max_uses=payload.max_uses,
		ttl=timedelta(hours=payload.ttl_hours) if payload.ttl_hours is not None else None,
	)
	return to_summary(invite)


@router.get("", response_model=schemas.InviteList)
async def list_invites(auth_user: AuthenticatedUser = Depends(get_current_user)) -> schemas.InviteList:
	invites = await invite_service.list_for_issuer(auth_user.id)
	return schemas.InviteList(invites=[to_summary(invite) for invite in invites], count=len(invites))


@router.get("/{token}/validate", response_model=schemas.InviteValidation)
async def validate_invite(
	token: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.InviteValidation:
	invite = await invite_service.validate(token)
	if invite is None:
		raise NotFoundError("invalid_invite")
	inviter = await identity_service.get_user(invite.issuer_user_id)
	return schemas.InviteValidation(
		valid=True,
		remaining_uses=invite.remaining_uses,
		expires_at=invite.expires_at,
		inviter=schemas.InviterProfile(
			id=inviter.id,
			display_name=inviter.display_name,
			avatar_url=inviter.avatar_url,
		),
	)
