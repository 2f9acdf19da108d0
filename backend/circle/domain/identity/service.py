"""Identity resolution and profile maintenance.

The external identity provider hands us an opaque subject; everything inside the
engine works with the internal integer id. The denormalised ``circle_count`` lives
here as well, but it is display-only and always recomputed by aggregation.
"""

from __future__ import annotations

import logging
from typing import List, Mapping, Optional

import asyncpg

from circle.domain.exceptions import NotFoundError, ValidationError
from circle.domain.identity.models import DEFAULT_DISPLAY_NAME, User, UserSearchHit
from circle.infra.postgres import get_pool
from circle.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

_USER_COLUMNS = """
	id, external_ref, display_name, avatar_url, circle_count, status, created_at, updated_at
"""

SEARCH_MIN_QUERY = 2
SEARCH_MAX_LIMIT = 20

_SEARCH_QUERY = """
	SELECT u.id, u.display_name, u.avatar_url,
		c.id AS connection_id,
		c.state AS connection_state,
		c.type AS connection_type
	FROM users u
	LEFT JOIN connections c
		ON c.low_user_id = LEAST($1::bigint, u.id)
		AND c.high_user_id = GREATEST($1::bigint, u.id)
		AND c.state IN ('pending', 'active')
	WHERE u.status = 'active'
		AND u.deleted_at IS NULL
		AND u.id <> $1
		AND u.display_name ILIKE $2 ESCAPE '\\'
	ORDER BY
		CASE WHEN u.display_name ILIKE $3 ESCAPE '\\' THEN 0 ELSE 1 END,
		u.display_name ASC,
		u.id ASC
	LIMIT $4
"""


async def get_user(user_id: int, *, conn: asyncpg.Connection | None = None) -> User:
	query = f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1 AND deleted_at IS NULL"
	if conn is not None:
		record = await conn.fetchrow(query, user_id)
	else:
		pool = await get_pool()
		async with pool.acquire() as pooled:
			record = await pooled.fetchrow(query, user_id)
	if not record:
		raise NotFoundError("user_not_found")
	return User.from_record(record)


async def resolve(subject: str) -> User:
	"""Map an external subject to the active internal user."""
	pool = await get_pool()
	async with pool.acquire() as conn:
		record = await conn.fetchrow(
			f"SELECT {_USER_COLUMNS} FROM users WHERE external_ref = $1 AND status = 'active' AND deleted_at IS NULL",
			subject,
		)
	if not record:
		raise NotFoundError("user_not_found")
	return User.from_record(record)


async def register(subject: str, claims: Mapping[str, object]) -> User:
	"""Create the user on first sight of a subject, otherwise return the existing row."""
	subject = (subject or "").strip()
	if not subject:
		raise ValidationError("missing_subject")
	display_name = str(claims.get("name") or "").strip() or DEFAULT_DISPLAY_NAME
	picture = claims.get("picture")
	pool = await get_pool()
	async with pool.acquire() as conn:
		record = await conn.fetchrow(
			f"""
			INSERT INTO users (external_ref, display_name, avatar_url)
			VALUES ($1, $2, $3)
			ON CONFLICT (external_ref) DO UPDATE SET updated_at = users.updated_at
			RETURNING {_USER_COLUMNS}, (xmax = 0) AS inserted
			""",
			subject,
			display_name[:80],
			str(picture) if picture else None,
		)
	if record["inserted"]:
		obs_metrics.inc_user_registered()
		logger.info("user_registered", extra={"user_id": record["id"]})
	if record["status"] != "active":
		raise NotFoundError("user_not_found")
	return User.from_record(record)


async def update_profile(
	user_id: int,
	*,
	display_name: Optional[str] = None,
	avatar_url: Optional[str] = None,
) -> User:
	if display_name is not None and not display_name.strip():
		raise ValidationError("display_name_empty")
	pool = await get_pool()
	async with pool.acquire() as conn:
		record = await conn.fetchrow(
			f"""
			UPDATE users
			SET display_name = COALESCE($2, display_name),
				avatar_url = COALESCE($3, avatar_url),
				updated_at = NOW()
			WHERE id = $1 AND deleted_at IS NULL
			RETURNING {_USER_COLUMNS}
			""",
			user_id,
			display_name.strip() if display_name is not None else None,
			avatar_url,
		)
	if not record:
		raise NotFoundError("user_not_found")
	return User.from_record(record)


async def refresh_circle_count(conn: asyncpg.Connection, user_id: int) -> int:
	"""Recompute the display counter from the connections table inside the caller's transaction."""
	value = await conn.fetchval(
		"""
		UPDATE users
		SET circle_count = (
			SELECT COUNT(*) FROM connections
			WHERE state = 'active' AND (low_user_id = $1 OR high_user_id = $1)
		),
		updated_at = NOW()
		WHERE id = $1
		RETURNING circle_count
		""",
		user_id,
	)
	return int(value or 0)


def _like_patterns(term: str) -> tuple[str, str]:
	escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
	return f"%{escaped}%", f"{escaped}%"


async def search(viewer_id: int, q: Optional[str], *, limit: Optional[int] = None) -> List[UserSearchHit]:
	"""Case-insensitive name search; prefix matches rank first, the viewer is never returned."""
	term = (q or "").strip()
	if len(term) < SEARCH_MIN_QUERY:
		raise ValidationError("query_too_short")
	limit = SEARCH_MAX_LIMIT if limit is None else max(1, min(int(limit), SEARCH_MAX_LIMIT))
	contains, prefix = _like_patterns(term)
	pool = await get_pool()
	async with pool.acquire() as conn:
		rows = await conn.fetch(_SEARCH_QUERY, viewer_id, contains, prefix, limit)
	return [UserSearchHit.from_record(row) for row in rows]
