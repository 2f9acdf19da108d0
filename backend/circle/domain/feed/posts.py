"""Post authoring: creation with media descriptors, caption and settings edits, soft delete."""

from __future__ import annotations

import logging
from typing import Optional, Sequence
from uuid import UUID

from circle.domain.exceptions import NotFoundError, ValidationError
from circle.domain.feed import repo as repo_module
from circle.domain.feed.models import (
	MAX_CAPTION_LENGTH,
	MAX_POST_MEDIA,
	MAX_REEL_DURATION_MS,
	ContentType,
	MediaType,
	Post,
)
from circle.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


def _validate_caption(caption: Optional[str]) -> str:
	caption = caption or ""
	if len(caption) > MAX_CAPTION_LENGTH:
		raise ValidationError("caption_too_long")
	return caption


def _normalise_media(content_type: ContentType, media: Sequence[dict]) -> list[dict]:
	if not media:
		raise ValidationError("media_required")
	if content_type is ContentType.REEL:
		if len(media) != 1:
			raise ValidationError("reel_requires_single_video")
		if MediaType(media[0]["media_type"]) is not MediaType.VIDEO:
			raise ValidationError("reel_requires_single_video")
		duration = media[0].get("duration_ms")
		if duration is not None and duration > MAX_REEL_DURATION_MS:
			raise ValidationError("reel_too_long")
	elif len(media) > MAX_POST_MEDIA:
		raise ValidationError("too_many_media")
	items = []
	for index, item in enumerate(media):
		normalised = dict(item)
		normalised["media_type"] = MediaType(item["media_type"]).value
		if normalised.get("position") is None:
			normalised["position"] = index
		items.append(normalised)
	return items


class PostService:
	def __init__(self, repository: repo_module.FeedRepository | None = None) -> None:
		self.repo = repository or repo_module.FeedRepository()

	async def create_post(
		self,
		owner_id: int,
		*,
		content_type: ContentType | str,
		media: Sequence[dict],
		caption: Optional[str] = None,
		comments_enabled: bool = True,
		client_id: Optional[str] = None,
	) -> Post:
		try:
			kind = ContentType(content_type)
		except ValueError:
			raise ValidationError("invalid_content_type") from None
		post = await self.repo.create_post(
			owner_id=owner_id,
			caption=_validate_caption(caption),
			content_type=kind,
			comments_enabled=comments_enabled,
			client_id=client_id,
			media=_normalise_media(kind, media),
		)
		obs_metrics.inc_post_created(kind.value)
		logger.info("post_created", extra={"post_id": str(post.id), "media_count": len(post.media)})
		return post

	async def ensure_can_view(self, viewer_id: int, post: Post) -> None:
		"""Owner or an active connection of the owner; anything else looks like a missing post."""
		if post.owner_user_id == viewer_id:
			return
		if not await self.repo.has_active_connection(viewer_id, post.owner_user_id):
			raise NotFoundError("post_not_found")

	async def get_post(self, viewer_id: int, post_id: UUID) -> Post:
		post = await self.repo.get_post(post_id)
		if post is None:
			raise NotFoundError("post_not_found")
		await self.ensure_can_view(viewer_id, post)
		return post

	async def update_caption(self, owner_id: int, post_id: UUID, caption: Optional[str]) -> Post:
		post = await self.repo.update_post(post_id, owner_id, caption=_validate_caption(caption))
		if post is None:
			raise NotFoundError("post_not_found")
		return post

	async def set_comments_enabled(self, owner_id: int, post_id: UUID, enabled: bool) -> Post:
		post = await self.repo.update_post(post_id, owner_id, comments_enabled=enabled)
		if post is None:
			raise NotFoundError("post_not_found")
		return post

	async def delete_post(self, owner_id: int, post_id: UUID) -> None:
		if not await self.repo.soft_delete_post(post_id, owner_id):
			raise NotFoundError("post_not_found")
		logger.info("post_deleted", extra={"post_id": str(post_id)})
