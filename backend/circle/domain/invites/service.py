"""Invite bridge: issue, validate and consume invite tokens.

Validation never spends the use budget. Consumption only happens inside the
transaction of a successful connection request, against a row locked by
``resolve_for_update``.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import asyncpg

from circle.domain.exceptions import InvalidInviteError, ValidationError
from circle.domain.invites.models import MAX_TTL_HOURS, MAX_USES_CEILING, MIN_TTL_HOURS, Invite
from circle.domain.invites.schemas import InviteSummary
from circle.infra.postgres import get_pool
from circle.infra.redis import redis_client
from circle.obs import metrics as obs_metrics
from circle.settings import settings

logger = logging.getLogger(__name__)

_TOKEN_BYTES = 24


def invite_url(token: str) -> str:
	return f"{settings.invite_url_base.rstrip('/')}/{token}"


def to_summary(invite: Invite) -> InviteSummary:
	return InviteSummary(
		id=invite.id,
		token=invite.token,
		invite_url=invite_url(invite.token),
		max_uses=invite.max_uses,
		use_count=invite.use_count,
		remaining_uses=invite.remaining_uses,
		expires_at=invite.expires_at,
		created_at=invite.created_at,
	)


async def log_invite_event(event: str, fields: dict[str, str]) -> None:
	payload = {"event": event, **fields}
	await redis_client.xadd_capped("x:invites.events", payload)


class InviteService:
	"""Token lifecycle on top of the ``invites`` table."""

	async def create(
		self,
		issuer_id: int,
		*,
		max_uses: Optional[int] = None,
		ttl: Optional[timedelta] = None,
	) -> Invite:
		max_uses = settings.invite_default_max_uses if max_uses is None else max_uses
		ttl = timedelta(hours=settings.invite_default_ttl_hours) if ttl is None else ttl
		if not 1 <= max_uses <= MAX_USES_CEILING:
			raise ValidationError("invalid_max_uses")
		if not timedelta(hours=MIN_TTL_HOURS) <= ttl <= timedelta(hours=MAX_TTL_HOURS):
			raise ValidationError("invalid_ttl")
		now = datetime.now(timezone.utc)
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				"""
				INSERT INTO invites (token, issuer_user_id, max_uses, use_count, expires_at, created_at)
				VALUES ($1, $2, $3, 0, $4, $5)
				RETURNING *
				""",
				secrets.token_urlsafe(_TOKEN_BYTES),
				issuer_id,
				max_uses,
				now + ttl,
				now,
			)
		invite = Invite.from_record(record)
		obs_metrics.inc_invite_created()
		await log_invite_event(
			"created",
			{"invite_id": str(invite.id), "issuer": str(issuer_id), "max_uses": str(max_uses)},
		)
		return invite

	async def validate(self, token: str) -> Optional[Invite]:
		"""Return the invite when usable, else None. Read-only."""
		if not token:
			return None
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow("SELECT * FROM invites WHERE token = $1", token)
		if not record:
			return None
		invite = Invite.from_record(record)
		if not invite.is_usable(datetime.now(timezone.utc)):
			return None
		return invite

	async def list_for_issuer(self, issuer_id: int) -> List[Invite]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT * FROM invites
				WHERE issuer_user_id = $1 AND expires_at > NOW()
				ORDER BY created_at DESC
				""",
				issuer_id,
			)
		return [Invite.from_record(row) for row in rows]

	async def resolve_for_update(self, conn: asyncpg.Connection, token: str, *, now: datetime) -> Invite:
		"""Lock and validate the invite inside the caller's transaction."""
		record = await conn.fetchrow("SELECT * FROM invites WHERE token = $1 FOR UPDATE", token)
		if not record:
			raise InvalidInviteError("invalid_invite")
		invite = Invite.from_record(record)
		if not invite.is_usable(now):
			raise InvalidInviteError("invalid_invite")
		return invite

	async def consume(self, conn: asyncpg.Connection, invite_id) -> int:
		value = await conn.fetchval(
			"""
			UPDATE invites
			SET use_count = use_count + 1
			WHERE id = $1 AND use_count < max_uses
			RETURNING use_count
			""",
			invite_id,
		)
		if value is None:
			raise InvalidInviteError("invalid_invite")
		obs_metrics.inc_invite_consumed()
		return int(value)

	async def purge_expired(self, *, now: datetime) -> int:
		pool = await get_pool()
		async with pool.acquire() as conn:
			result = await conn.execute("DELETE FROM invites WHERE expires_at < $1", now)
		deleted = int(result.split()[-1]) if result else 0
		if deleted:
			logger.info("invites_purged", extra={"deleted": deleted})
		return deleted
