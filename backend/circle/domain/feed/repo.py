"""Async repository for posts, media, seen marks, comments and reactions."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import UUID, uuid4

from circle.domain.feed import models
from circle.domain.feed.visibility import VisibilityScope
from circle.infra.postgres import get_pool

# Posts whose owner shares an active connection with the viewer ($1).
_CIRCLE_JOIN = """
	JOIN connections c
		ON c.state = 'active'
		AND c.low_user_id = LEAST($1::bigint, p.owner_user_id)
		AND c.high_user_id = GREATEST($1::bigint, p.owner_user_id)
"""

_FEED_QUERY = f"""
	SELECT p.*,
		u.display_name AS owner_name,
		u.avatar_url AS owner_avatar,
		(ps.post_id IS NOT NULL) AS seen
	FROM posts p
	JOIN users u ON u.id = p.owner_user_id
	{_CIRCLE_JOIN}
	LEFT JOIN post_seen ps ON ps.post_id = p.id AND ps.user_id = $1
	WHERE p.deleted_at IS NULL
		AND p.owner_user_id <> $1
		AND ($2::timestamptz IS NULL OR p.created_at > $2)
	ORDER BY p.created_at DESC, p.id DESC
	LIMIT $3
"""

_SEEN_INSERT = f"""
	INSERT INTO post_seen (post_id, user_id, seen_at)
	SELECT p.id, $1, NOW()
	FROM posts p
	{_CIRCLE_JOIN}
	WHERE p.id = ANY($2::uuid[])
		AND p.deleted_at IS NULL
		AND p.owner_user_id <> $1
	ON CONFLICT (post_id, user_id) DO NOTHING
"""


class FeedRepository:
	"""Data access for the post tables. Connection rows are only ever read here."""

	# --- Feed -----------------------------------------------------------------

	async def list_feed(
		self,
		viewer_id: int,
		*,
		newer_than: Optional[datetime],
		limit: int,
	) -> List[models.FeedPost]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(_FEED_QUERY, viewer_id, newer_than, limit)
		return [
			models.FeedPost(
				post=models.Post.from_record(row),
				owner_name=row["owner_name"],
				owner_avatar=row["owner_avatar"],
				seen=bool(row["seen"]),
			)
			for row in rows
		]

	async def media_for_posts(self, post_ids: Sequence[UUID]) -> Dict[UUID, List[models.Media]]:
		if not post_ids:
			return {}
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM post_media
				WHERE post_id = ANY($1::uuid[])
				ORDER BY post_id, position ASC
				""",
				list(post_ids),
			)
		grouped: Dict[UUID, List[models.Media]] = {pid: [] for pid in post_ids}
		for row in rows:
			media = models.Media.from_record(row)
			grouped.setdefault(media.post_id, []).append(media)
		return grouped

	async def mark_seen(self, viewer_id: int, post_ids: Sequence[UUID]) -> int:
		"""Insert marks for live posts owned by an active connection; already-marked pairs are left untouched."""
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				result = await conn.execute(_SEEN_INSERT, viewer_id, list(post_ids))
		return int(result.split()[-1]) if result else 0

	async def has_active_connection(self, user_a: int, user_b: int) -> bool:
		low, high = (user_a, user_b) if user_a < user_b else (user_b, user_a)
		pool = await get_pool()
		async with pool.acquire() as conn:
			row = await conn.fetchrow(
				"""
				SELECT 1 FROM connections
				WHERE low_user_id = $1 AND high_user_id = $2 AND state = 'active'
				""",
				low,
				high,
			)
		return row is not None

	# --- Posts ----------------------------------------------------------------

	async def create_post(
		self,
		*,
		owner_id: int,
		caption: str,
		content_type: models.ContentType,
		comments_enabled: bool,
		client_id: Optional[str],
		media: Iterable[dict],
	) -> models.Post:
		"""Insert the post and its media in one transaction.

		A repeated ``client_id`` from the same owner returns the earlier post unchanged.
		"""
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				record = await conn.fetchrow(
					"""
					INSERT INTO posts (id, owner_user_id, caption, content_type, comments_enabled, client_id)
					VALUES ($1, $2, $3, $4, $5, $6)
					ON CONFLICT (owner_user_id, client_id) WHERE client_id IS NOT NULL DO NOTHING
					RETURNING *
					""",
					uuid4(),
					owner_id,
					caption,
					content_type.value,
					comments_enabled,
					client_id,
				)
				if record is None:
					existing = await conn.fetchrow(
						"SELECT * FROM posts WHERE owner_user_id = $1 AND client_id = $2",
						owner_id,
						client_id,
					)
					post = models.Post.from_record(existing)
					media_rows = await conn.fetch(
						"SELECT * FROM post_media WHERE post_id = $1 ORDER BY position ASC",
						post.id,
					)
					post.media = [models.Media.from_record(row) for row in media_rows]
					return post
				post = models.Post.from_record(record)
				for item in media:
					media_record = await conn.fetchrow(
						"""
						INSERT INTO post_media (id, post_id, media_type, storage_key, cdn_url, position, duration_ms, width, height)
						VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
						RETURNING *
						""",
						uuid4(),
						post.id,
						item["media_type"],
						item["storage_key"],
						item.get("cdn_url"),
						item["position"],
						item.get("duration_ms"),
						item.get("width"),
						item.get("height"),
					)
					post.media.append(models.Media.from_record(media_record))
		return post

	async def get_post(self, post_id: UUID) -> models.Post | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"SELECT * FROM posts WHERE id = $1 AND deleted_at IS NULL",
				post_id,
			)
			if not record:
				return None
			post = models.Post.from_record(record)
			media_rows = await conn.fetch(
				"SELECT * FROM post_media WHERE post_id = $1 ORDER BY position ASC",
				post_id,
			)
		post.media = [models.Media.from_record(row) for row in media_rows]
		return post

	async def update_post(
		self,
		post_id: UUID,
		owner_id: int,
		*,
		caption: str | None = None,
		comments_enabled: bool | None = None,
	) -> models.Post | None:
		assignments: list[str] = []
		params: list[object] = []
		if caption is not None:
			assignments.append("caption=$%d" % (len(params) + 3))
			params.append(caption)
		if comments_enabled is not None:
			assignments.append("comments_enabled=$%d" % (len(params) + 3))
			params.append(comments_enabled)
		assignments.append("updated_at=NOW()")
		query = f"""
			UPDATE posts SET {', '.join(assignments)}
			WHERE id=$1 AND owner_user_id=$2 AND deleted_at IS NULL
			RETURNING *
		"""
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(query, post_id, owner_id, *params)
			if not record:
				return None
			post = models.Post.from_record(record)
			media_rows = await conn.fetch(
				"SELECT * FROM post_media WHERE post_id = $1 ORDER BY position ASC",
				post_id,
			)
		post.media = [models.Media.from_record(row) for row in media_rows]
		return post

	async def soft_delete_post(self, post_id: UUID, owner_id: int) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"""
				UPDATE posts SET deleted_at = NOW(), updated_at = NOW()
				WHERE id = $1 AND owner_user_id = $2 AND deleted_at IS NULL
				RETURNING id
				""",
				post_id,
				owner_id,
			)
		return record is not None

	# --- Comments -------------------------------------------------------------

	async def create_comment(self, *, post_id: UUID, commenter_id: int, body: str) -> models.Comment:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"""
				WITH inserted AS (
					INSERT INTO post_comments (id, post_id, commenter_user_id, body, visibility_scope)
					VALUES ($1, $2, $3, $4, 'circle')
					RETURNING *
				)
				SELECT inserted.*, u.display_name AS commenter_name, u.avatar_url AS commenter_avatar
				FROM inserted JOIN users u ON u.id = inserted.commenter_user_id
				""",
				uuid4(),
				post_id,
				commenter_id,
				body,
			)
		return models.Comment.from_record(record)

	async def list_comments(self, post_id: UUID) -> List[models.Comment]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT c.*, u.display_name AS commenter_name, u.avatar_url AS commenter_avatar
				FROM post_comments c
				JOIN users u ON u.id = c.commenter_user_id
				WHERE c.post_id = $1
				ORDER BY c.created_at ASC, c.id ASC
				""",
				post_id,
			)
		return [models.Comment.from_record(row) for row in rows]

	async def get_comment(self, comment_id: UUID) -> models.Comment | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow("SELECT * FROM post_comments WHERE id = $1", comment_id)
		return models.Comment.from_record(record) if record else None

	async def update_comment_body(self, comment_id: UUID, commenter_id: int, body: str) -> models.Comment | None:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"""
				WITH updated AS (
					UPDATE post_comments SET body = $3, updated_at = NOW()
					WHERE id = $1 AND commenter_user_id = $2
					RETURNING *
				)
				SELECT updated.*, u.display_name AS commenter_name, u.avatar_url AS commenter_avatar
				FROM updated JOIN users u ON u.id = updated.commenter_user_id
				""",
				comment_id,
				commenter_id,
				body,
			)
		return models.Comment.from_record(record) if record else None

	async def set_comment_scope(self, comment_id: UUID, scope: VisibilityScope) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			result = await conn.execute(
				"UPDATE post_comments SET visibility_scope = $2, updated_at = NOW() WHERE id = $1",
				comment_id,
				scope.value,
			)
		return result.split()[-1] != "0"

	# --- Reactions ------------------------------------------------------------

	async def upsert_reaction(
		self,
		*,
		post_id: UUID,
		actor_id: int,
		reaction_type: str,
		scope: VisibilityScope,
	) -> models.Reaction:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"""
				INSERT INTO post_reactions (id, post_id, actor_user_id, reaction_type, visibility_scope)
				VALUES ($1, $2, $3, $4, $5)
				ON CONFLICT (post_id, actor_user_id, reaction_type)
				DO UPDATE SET visibility_scope = EXCLUDED.visibility_scope
				RETURNING *
				""",
				uuid4(),
				post_id,
				actor_id,
				reaction_type,
				scope.value,
			)
		return models.Reaction.from_record(record)

	async def list_reactions(self, post_id: UUID) -> List[models.Reaction]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT r.*, u.display_name AS actor_name, u.avatar_url AS actor_avatar
				FROM post_reactions r
				JOIN users u ON u.id = r.actor_user_id
				WHERE r.post_id = $1
				ORDER BY r.created_at DESC, r.id DESC
				""",
				post_id,
			)
		return [models.Reaction.from_record(row) for row in rows]

	async def delete_reaction(self, *, post_id: UUID, actor_id: int, reaction_type: str) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			result = await conn.execute(
				"""
				DELETE FROM post_reactions
				WHERE post_id = $1 AND actor_user_id = $2 AND reaction_type = $3
				""",
				post_id,
				actor_id,
				reaction_type,
			)
		return result.split()[-1] != "0"
