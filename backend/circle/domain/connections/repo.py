"""Async repository for the connections table.

Every write is guarded by the state it is allowed to leave, so an illegal
transition affects zero rows no matter who issues it. Callers own the
transaction; all methods take the connection they should run on.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence
from uuid import UUID, uuid4

import asyncpg

from circle.domain.connections.models import (
	Connection,
	ConnectionEvent,
	ConnectionPeer,
	ConnectionType,
	EndedReason,
	sources_for,
)
from circle.domain.identity import service as identity_service

_PEER_SELECT = """
	SELECT c.*,
		other.id AS other_user_id,
		other.display_name AS other_display_name,
		other.avatar_url AS other_avatar_url
	FROM connections c
	JOIN users other ON other.id = CASE WHEN c.low_user_id = $1 THEN c.high_user_id ELSE c.low_user_id END
	WHERE (c.low_user_id = $1 OR c.high_user_id = $1)
"""


def _row_to_peer(row: asyncpg.Record) -> ConnectionPeer:
	return ConnectionPeer(
		connection=Connection.from_record(row),
		other_user_id=int(row["other_user_id"]),
		other_display_name=row["other_display_name"],
		other_avatar_url=row["other_avatar_url"],
	)


class ConnectionRepository:
	"""Thin data-access layer around asyncpg for connection rows."""

	# --- Reads ----------------------------------------------------------------

	async def get(self, conn: asyncpg.Connection, connection_id: UUID, *, for_update: bool = False) -> Connection | None:
		query = "SELECT * FROM connections WHERE id = $1"
		if for_update:
			query += " FOR UPDATE"
		record = await conn.fetchrow(query, connection_id)
		return Connection.from_record(record) if record else None

	async def get_between(self, conn: asyncpg.Connection, low_user_id: int, high_user_id: int) -> Connection | None:
		record = await conn.fetchrow(
			"SELECT * FROM connections WHERE low_user_id = $1 AND high_user_id = $2",
			low_user_id,
			high_user_id,
		)
		return Connection.from_record(record) if record else None

	async def user_exists(self, conn: asyncpg.Connection, user_id: int) -> bool:
		row = await conn.fetchrow(
			"SELECT 1 FROM users WHERE id = $1 AND status = 'active' AND deleted_at IS NULL",
			user_id,
		)
		return row is not None

	async def count_active(self, conn: asyncpg.Connection, user_id: int) -> int:
		value = await conn.fetchval(
			"""
			SELECT COUNT(*) FROM connections
			WHERE state = 'active' AND (low_user_id = $1 OR high_user_id = $1)
			""",
			user_id,
		)
		return int(value or 0)

	async def count_active_many(self, conn: asyncpg.Connection, user_ids: Sequence[int]) -> dict[int, int]:
		rows = await conn.fetch(
			"""
			SELECT u.id AS user_id, COUNT(c.id) AS active
			FROM unnest($1::bigint[]) AS u(id)
			LEFT JOIN connections c
				ON c.state = 'active' AND (c.low_user_id = u.id OR c.high_user_id = u.id)
			GROUP BY u.id
			""",
			list(user_ids),
		)
		counts = {int(uid): 0 for uid in user_ids}
		for row in rows:
			counts[int(row["user_id"])] = int(row["active"])
		return counts

	async def list_active(self, conn: asyncpg.Connection, user_id: int) -> list[ConnectionPeer]:
		rows = await conn.fetch(
			_PEER_SELECT + " AND c.state = 'active' ORDER BY c.started_at DESC NULLS LAST, c.created_at DESC",
			user_id,
		)
		return [_row_to_peer(row) for row in rows]

	async def list_pending(self, conn: asyncpg.Connection, user_id: int) -> list[ConnectionPeer]:
		rows = await conn.fetch(
			_PEER_SELECT + " AND c.state = 'pending' ORDER BY c.created_at DESC",
			user_id,
		)
		return [_row_to_peer(row) for row in rows]

	async def list_expired_ids(self, conn: asyncpg.Connection, *, now: datetime, limit: int) -> list[UUID]:
		rows = await conn.fetch(
			"""
			SELECT id FROM connections
			WHERE state = 'active' AND type = 'temporary' AND expires_at < $1
			ORDER BY expires_at ASC
			LIMIT $2
			""",
			now,
			limit,
		)
		return [UUID(str(row["id"])) for row in rows]

	# --- Locks ----------------------------------------------------------------

	async def lock_users(self, conn: asyncpg.Connection, user_ids: Iterable[int]) -> list[int]:
		"""Row-lock the participants in id order so concurrent transitions queue instead of racing."""
		rows = await conn.fetch(
			"""
			SELECT id FROM users
			WHERE id = ANY($1::bigint[])
			ORDER BY id
			FOR UPDATE
			""",
			sorted(set(int(uid) for uid in user_ids)),
		)
		return [int(row["id"]) for row in rows]

	# --- Writes ---------------------------------------------------------------

	async def insert_pending(
		self,
		conn: asyncpg.Connection,
		*,
		low_user_id: int,
		high_user_id: int,
		requester_id: int,
		connection_type: ConnectionType,
		now: datetime,
	) -> Connection | None:
		"""Insert a pending row; returns None when the pair already has one."""
		record = await conn.fetchrow(
			"""
			INSERT INTO connections (id, low_user_id, high_user_id, requester_id, type, state, created_at, updated_at)
			VALUES ($1, $2, $3, $4, $5, 'pending', $6, $6)
			ON CONFLICT (low_user_id, high_user_id) DO NOTHING
			RETURNING *
			""",
			uuid4(),
			low_user_id,
			high_user_id,
			requester_id,
			connection_type.value,
			now,
		)
		return Connection.from_record(record) if record else None

	async def activate(
		self,
		conn: asyncpg.Connection,
		connection_id: UUID,
		*,
		now: datetime,
		expires_at: datetime | None,
	) -> Connection | None:
		record = await conn.fetchrow(
			"""
			UPDATE connections
			SET state = 'active',
				started_at = $2,
				expires_at = CASE WHEN type = 'temporary' THEN $3 ELSE NULL END,
				updated_at = $2
			WHERE id = $1 AND state = ANY($4::text[])
			RETURNING *
			""",
			connection_id,
			now,
			expires_at,
			sources_for(ConnectionEvent.ACCEPT),
		)
		return Connection.from_record(record) if record else None

	async def end(
		self,
		conn: asyncpg.Connection,
		connection_id: UUID,
		*,
		reason: EndedReason,
		now: datetime,
	) -> Connection | None:
		event = ConnectionEvent.EXPIRE if reason == EndedReason.EXPIRED else ConnectionEvent.REMOVE
		record = await conn.fetchrow(
			"""
			UPDATE connections
			SET state = 'ended',
				ended_at = $3,
				ended_reason = $2,
				updated_at = $3
			WHERE id = $1 AND state = ANY($4::text[])
			RETURNING *
			""",
			connection_id,
			reason.value,
			now,
			sources_for(event),
		)
		return Connection.from_record(record) if record else None

	async def mark_reconfirm(
		self,
		conn: asyncpg.Connection,
		connection_id: UUID,
		*,
		low_side: bool,
		now: datetime,
	) -> Connection | None:
		column = "reconfirm_low_at" if low_side else "reconfirm_high_at"
		record = await conn.fetchrow(
			f"""
			UPDATE connections
			SET {column} = COALESCE({column}, $2),
				updated_at = $2
			WHERE id = $1 AND state = 'active' AND type = 'temporary'
			RETURNING *
			""",
			connection_id,
			now,
		)
		return Connection.from_record(record) if record else None

	async def renew(
		self,
		conn: asyncpg.Connection,
		connection_id: UUID,
		*,
		expires_at: datetime,
		now: datetime,
	) -> Connection | None:
		"""Push the expiry and clear both marks in one statement, only once both sides confirmed."""
		record = await conn.fetchrow(
			"""
			UPDATE connections
			SET expires_at = $2,
				reconfirm_low_at = NULL,
				reconfirm_high_at = NULL,
				updated_at = $3
			WHERE id = $1
				AND state = 'active'
				AND type = 'temporary'
				AND reconfirm_low_at IS NOT NULL
				AND reconfirm_high_at IS NOT NULL
			RETURNING *
			""",
			connection_id,
			expires_at,
			now,
		)
		return Connection.from_record(record) if record else None

	async def refresh_circle_count(self, conn: asyncpg.Connection, user_id: int) -> int:
		return await identity_service.refresh_circle_count(conn, user_id)

