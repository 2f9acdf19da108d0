"""Feed composer: read-only timeline over active connections plus seen marks."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional
from uuid import UUID

from circle.domain.feed import repo as repo_module
from circle.domain.feed.models import FeedPost
from circle.obs import metrics as obs_metrics
from circle.settings import settings

logger = logging.getLogger(__name__)


def clamp_limit(limit: Optional[int]) -> int:
	if limit is None:
		return settings.feed_default_limit
	return max(1, min(int(limit), settings.feed_max_limit))


class FeedService:
	"""Compose a viewer's feed. Connection state is evaluated at read time."""

	def __init__(self, repository: repo_module.FeedRepository | None = None) -> None:
		self.repo = repository or repo_module.FeedRepository()

	async def get_feed(
		self,
		user_id: int,
		*,
		newer_than: Optional[datetime] = None,
		limit: Optional[int] = None,
	) -> List[FeedPost]:
		rows = await self.repo.list_feed(user_id, newer_than=newer_than, limit=clamp_limit(limit))
		items: List[FeedPost] = []
		seen_ids: set[UUID] = set()
		for item in rows:
			if item.post.id in seen_ids:
				continue
			seen_ids.add(item.post.id)
			items.append(item)
		media = await self.repo.media_for_posts([item.post.id for item in items])
		for item in items:
			item.media = media.get(item.post.id, [])
		obs_metrics.observe_feed_read(len(items))
		return items

	async def mark_seen(self, user_id: int, post_ids: Iterable[UUID]) -> int:
		"""Record seen marks; returns the number of distinct ids submitted."""
		unique = list(dict.fromkeys(post_ids))
		if not unique:
			return 0
		inserted = await self.repo.mark_seen(user_id, unique)
		obs_metrics.inc_seen_marks(len(unique))
		logger.debug("posts_marked_seen", extra={"submitted": len(unique), "inserted": inserted})
		return len(unique)
