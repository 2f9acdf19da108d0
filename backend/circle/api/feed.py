"""Feed endpoints: the circle timeline and seen marks."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from circle.domain.feed import schemas
from circle.domain.feed.service import FeedService
from circle.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/feed")

feed_service = FeedService()


@router.get("", response_model=schemas.FeedResponse)
async def get_feed(
	newer_than: Optional[datetime] = Query(default=None, description="Only posts created strictly after this instant"),
	limit: Optional[int] = Query(default=None, description="Page size, clamped to 1..50"),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.FeedResponse:
	items = await feed_service.get_feed(auth_user.id, newer_than=newer_than, limit=limit)
	posts = [schemas.FeedPostOut.from_feed_post(item) for item in items]
	return schemas.FeedResponse(posts=posts, count=len(posts))


@router.post("/seen", response_model=schemas.SeenResponse)
async def mark_seen(
	payload: schemas.SeenRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.SeenResponse:
	marked = await feed_service.mark_seen(auth_user.id, payload.post_ids)
	return schemas.SeenResponse(success=True, marked=marked)
