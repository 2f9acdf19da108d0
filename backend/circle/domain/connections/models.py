"""Domain models for pairwise circle connections."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from circle.domain.exceptions import InvalidStateError


class ConnectionType(str, Enum):
	PERMANENT = "permanent"
	TEMPORARY = "temporary"


class ConnectionState(str, Enum):
	PENDING = "pending"
	ACTIVE = "active"
	ENDED = "ended"


class EndedReason(str, Enum):
	REMOVED_BY_LOW = "removed_by_low"
	REMOVED_BY_HIGH = "removed_by_high"
	EXPIRED = "expired"


class ConnectionEvent(str, Enum):
	ACCEPT = "accept"
	REMOVE = "remove"
	EXPIRE = "expire"


# The only legal moves. ENDED has no outgoing edges.
TRANSITIONS: dict[tuple[ConnectionState, ConnectionEvent], ConnectionState] = {
	(ConnectionState.PENDING, ConnectionEvent.ACCEPT): ConnectionState.ACTIVE,
	(ConnectionState.PENDING, ConnectionEvent.REMOVE): ConnectionState.ENDED,
	(ConnectionState.ACTIVE, ConnectionEvent.REMOVE): ConnectionState.ENDED,
	(ConnectionState.ACTIVE, ConnectionEvent.EXPIRE): ConnectionState.ENDED,
}


def next_state(state: ConnectionState, event: ConnectionEvent) -> ConnectionState:
	try:
		return TRANSITIONS[(ConnectionState(state), event)]
	except KeyError:
		raise InvalidStateError("invalid_state", state=ConnectionState(state).value) from None


def sources_for(event: ConnectionEvent) -> list[str]:
	"""States an event may fire from; used as the SQL guard on every transition."""
	return [src.value for (src, ev) in TRANSITIONS if ev == event]


@dataclass(slots=True)
class Connection:
	"""One row per unordered pair, stored under ``low_user_id < high_user_id``."""

	id: UUID
	low_user_id: int
	high_user_id: int
	requester_id: int
	type: ConnectionType
	state: ConnectionState
	created_at: datetime
	started_at: Optional[datetime] = None
	expires_at: Optional[datetime] = None
	reconfirm_low_at: Optional[datetime] = None
	reconfirm_high_at: Optional[datetime] = None
	ended_at: Optional[datetime] = None
	ended_reason: Optional[EndedReason] = None

	@property
	def participants(self) -> tuple[int, int]:
		return (self.low_user_id, self.high_user_id)

	@property
	def recipient_id(self) -> int:
		return self.other(self.requester_id)

	def involves(self, user_id: int) -> bool:
		return user_id in self.participants

	def other(self, user_id: int) -> int:
		return self.high_user_id if user_id == self.low_user_id else self.low_user_id

	def is_low(self, user_id: int) -> bool:
		return user_id == self.low_user_id

	@classmethod
	def from_record(cls, record) -> "Connection":
		reason = record.get("ended_reason")
		return cls(
			id=UUID(str(record["id"])),
			low_user_id=int(record["low_user_id"]),
			high_user_id=int(record["high_user_id"]),
			requester_id=int(record["requester_id"]),
			type=ConnectionType(record["type"]),
			state=ConnectionState(record["state"]),
			created_at=record["created_at"],
			started_at=record.get("started_at"),
			expires_at=record.get("expires_at"),
			reconfirm_low_at=record.get("reconfirm_low_at"),
			reconfirm_high_at=record.get("reconfirm_high_at"),
			ended_at=record.get("ended_at"),
			ended_reason=EndedReason(reason) if reason else None,
		)


@dataclass(slots=True)
class ConnectionPeer:
	"""A connection seen from one participant, with the other side's profile."""

	connection: Connection
	other_user_id: int
	other_display_name: Optional[str]
	other_avatar_url: Optional[str]
