"""Connection service: the only writer of connection state.

Every mutating operation runs in a single transaction. The capacity check, the
state write and the counter refresh share that transaction, and both
participants' user rows are locked before counting.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple
from uuid import UUID

import asyncpg

from circle.domain.connections import audit, policy
from circle.domain.connections import repo as repo_module
from circle.domain.connections.capacity import CapacityGuard
from circle.domain.connections.models import (
	Connection,
	ConnectionEvent,
	ConnectionPeer,
	ConnectionState,
	ConnectionType,
	EndedReason,
	next_state,
)
from circle.domain.exceptions import (
	CircleError,
	ConnectionExistsError,
	InvalidStateError,
	NotFoundError,
	ValidationError,
)
from circle.domain.invites.models import Invite
from circle.domain.invites.service import InviteService
from circle.infra.postgres import get_pool

logger = logging.getLogger(__name__)

_SWEEP_BATCH = 500


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


class ConnectionService:
	"""Request, accept, reconfirm, remove and expire pairwise connections."""

	def __init__(
		self,
		repository: repo_module.ConnectionRepository | None = None,
		*,
		capacity: CapacityGuard | None = None,
		invites: InviteService | None = None,
		clock: Callable[[], datetime] | None = None,
	) -> None:
		self.repo = repository or repo_module.ConnectionRepository()
		self.capacity = capacity or CapacityGuard(self.repo)
		self.invites = invites or InviteService()
		self._clock = clock or _utcnow

	# --- Request --------------------------------------------------------------

	async def request_connection(
		self,
		requester_id: int,
		*,
		target_user_id: Optional[int] = None,
		invite_token: Optional[str] = None,
		connection_type: ConnectionType | str = ConnectionType.PERMANENT,
	) -> Connection:
		if (target_user_id is None) == (not invite_token):
			raise ValidationError("target_or_invite_required")
		try:
			kind = ConnectionType(connection_type)
		except ValueError:
			raise ValidationError("invalid_connection_type") from None
		if target_user_id is not None:
			policy.guard_not_self(requester_id, target_user_id)
		await policy.enforce_request_limits(requester_id)

		now = self._clock()
		invite: Invite | None = None
		pool = await get_pool()
		try:
			async with pool.acquire() as conn:
				async with conn.transaction():
					if invite_token:
						invite = await self.invites.resolve_for_update(conn, invite_token, now=now)
						target_user_id = invite.issuer_user_id
					assert target_user_id is not None
					policy.guard_not_self(requester_id, target_user_id)
					if not await self.repo.user_exists(conn, target_user_id):
						raise NotFoundError("user_not_found")
					low, high = policy.canonical_pair(requester_id, target_user_id)
					existing = await self.repo.get_between(conn, low, high)
					if existing is not None:
						raise ConnectionExistsError(state=existing.state.value)
					await self.capacity.ensure(conn, (low, high), stage="request")
					created = await self.repo.insert_pending(
						conn,
						low_user_id=low,
						high_user_id=high,
						requester_id=requester_id,
						connection_type=kind,
						now=now,
					)
					if created is None:
						# Lost a race with a concurrent request for the same pair.
						raced = await self.repo.get_between(conn, low, high)
						state = raced.state.value if raced else ConnectionState.PENDING.value
						raise ConnectionExistsError(state=state)
					if invite is not None:
						await self.invites.consume(conn, invite.id)
		except CircleError as exc:
			audit.inc_request_reject(exc.detail)
			raise

		audit.inc_transition("requested")
		fields = {
			"connection_id": str(created.id),
			"requester": str(requester_id),
			"target": str(target_user_id),
			"type": created.type.value,
		}
		if invite is not None:
			fields["invite_id"] = str(invite.id)
		await audit.log_connection_event("requested", fields)
		logger.info("connection_requested", extra={"connection_id": str(created.id), "via_invite": invite is not None})
		return created

	# --- Accept ---------------------------------------------------------------

	async def accept_connection(self, connection_id: UUID, accepter_id: int) -> Connection:
		now = self._clock()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				connection = await self._load(conn, connection_id)
				policy.ensure_can_accept(connection, accepter_id)
				# The gap between request and accept is unbounded, so check again under lock.
				await self.capacity.ensure(conn, connection.participants, stage="accept")
				expires_at = policy.renewal_deadline(now) if connection.type == ConnectionType.TEMPORARY else None
				accepted = await self.repo.activate(conn, connection.id, now=now, expires_at=expires_at)
				if accepted is None:
					raise InvalidStateError("not_pending", state=connection.state.value)
				await self._refresh_counters(conn, accepted)
		audit.inc_transition("accepted")
		await audit.log_connection_event(
			"accepted",
			{"connection_id": str(accepted.id), "accepter": str(accepter_id)},
		)
		return accepted

	# --- Remove / expire ------------------------------------------------------

	async def remove_connection(self, connection_id: UUID, actor_id: int) -> Connection:
		"""End the connection silently; the other participant is not notified."""
		now = self._clock()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				connection = await self._load(conn, connection_id)
				policy.ensure_participant(connection, actor_id)
				ended = await self._terminate(
					conn,
					connection,
					reason=policy.removal_reason(connection, actor_id),
					now=now,
				)
		audit.inc_transition("removed")
		await audit.log_connection_event(
			"removed",
			{"connection_id": str(ended.id), "reason": ended.ended_reason.value if ended.ended_reason else ""},
		)
		return ended

	async def expire_connection(self, connection_id: UUID) -> Connection | None:
		"""Terminal transition for an overdue temporary connection; None when no longer due."""
		now = self._clock()
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				connection = await self.repo.get(conn, connection_id, for_update=True)
				if connection is None or connection.state != ConnectionState.ACTIVE:
					return None
				if connection.type != ConnectionType.TEMPORARY or connection.expires_at is None:
					return None
				if connection.expires_at >= now:
					return None
				ended = await self._terminate(conn, connection, reason=EndedReason.EXPIRED, now=now)
		audit.inc_transition("expired")
		await audit.log_connection_event("expired", {"connection_id": str(ended.id)})
		return ended

	async def sweep_expired(self, *, batch: int = _SWEEP_BATCH) -> int:
		"""Expire every overdue temporary connection, one transaction each."""
		now = self._clock()
		pool = await get_pool()
		async with pool.acquire() as conn:
			due = await self.repo.list_expired_ids(conn, now=now, limit=batch)
		expired = 0
		for connection_id in due:
			if await self.expire_connection(connection_id) is not None:
				expired += 1
		if expired:
			logger.info("connections_expired", extra={"expired": expired})
		return expired

	# --- Reconfirm ------------------------------------------------------------

	async def reconfirm_connection(self, connection_id: UUID, actor_id: int) -> Tuple[Connection, bool]:
		"""Record the actor's mark; renew once both participants have reconfirmed."""
		now = self._clock()
		renewed = False
		pool = await get_pool()
		async with pool.acquire() as conn:
			async with conn.transaction():
				connection = await self._load(conn, connection_id)
				policy.ensure_participant(connection, actor_id)
				if connection.type != ConnectionType.TEMPORARY or connection.state != ConnectionState.ACTIVE:
					raise InvalidStateError("not_renewable", state=connection.state.value)
				marked = await self.repo.mark_reconfirm(
					conn,
					connection.id,
					low_side=connection.is_low(actor_id),
					now=now,
				)
				if marked is None:
					raise InvalidStateError("not_renewable", state=connection.state.value)
				result = marked
				if marked.reconfirm_low_at is not None and marked.reconfirm_high_at is not None:
					refreshed = await self.repo.renew(
						conn,
						connection.id,
						expires_at=policy.renewal_deadline(now),
						now=now,
					)
					if refreshed is not None:
						result = refreshed
						renewed = True
		if renewed:
			audit.inc_transition("renewed")
			await audit.log_connection_event("renewed", {"connection_id": str(result.id)})
		return result, renewed

	# --- Reads ----------------------------------------------------------------

	async def count_active(self, user_id: int) -> int:
		pool = await get_pool()
		async with pool.acquire() as conn:
			return await self.repo.count_active(conn, user_id)

	async def list_active(self, user_id: int) -> List[ConnectionPeer]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			return await self.repo.list_active(conn, user_id)

	async def list_pending(self, user_id: int) -> List[ConnectionPeer]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			return await self.repo.list_pending(conn, user_id)

	# --- Internals ------------------------------------------------------------

	async def _load(self, conn: asyncpg.Connection, connection_id: UUID) -> Connection:
		connection = await self.repo.get(conn, connection_id, for_update=True)
		if connection is None:
			raise NotFoundError("connection_not_found")
		return connection

	async def _terminate(
		self,
		conn: asyncpg.Connection,
		connection: Connection,
		*,
		reason: EndedReason,
		now: datetime,
	) -> Connection:
		"""Shared one-way transition into ENDED for removals and expiry."""
		event = ConnectionEvent.EXPIRE if reason == EndedReason.EXPIRED else ConnectionEvent.REMOVE
		next_state(connection.state, event)
		await self.repo.lock_users(conn, connection.participants)
		ended = await self.repo.end(conn, connection.id, reason=reason, now=now)
		if ended is None:
			raise InvalidStateError("invalid_state", state=connection.state.value)
		await self._refresh_counters(conn, ended)
		return ended

	async def _refresh_counters(self, conn: asyncpg.Connection, connection: Connection) -> None:
		for user_id in connection.participants:
			await self.repo.refresh_circle_count(conn, user_id)
