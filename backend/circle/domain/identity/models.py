"""Domain models for circle users."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID


class UserStatus(str, Enum):
	ACTIVE = "active"
	DELETED = "deleted"


DEFAULT_DISPLAY_NAME = "Anonymous User"


@dataclass(slots=True)
class User:
	"""Internal user record keyed by a stable integer id."""

	id: int
	external_ref: str
	display_name: str
	avatar_url: Optional[str]
	circle_count: int
	status: UserStatus
	created_at: datetime
	updated_at: datetime

	@classmethod
	def from_record(cls, record) -> "User":
		return cls(
			id=int(record["id"]),
			external_ref=str(record["external_ref"]),
			display_name=record["display_name"] or DEFAULT_DISPLAY_NAME,
			avatar_url=record.get("avatar_url"),
			circle_count=int(record.get("circle_count") or 0),
			status=UserStatus(record["status"]),
			created_at=record["created_at"],
			updated_at=record["updated_at"],
		)


@dataclass(slots=True)
class UserSearchHit:
	"""A search result plus the caller's pending or active connection with that user, if any."""

	id: int
	display_name: str
	avatar_url: Optional[str]
	connection_id: Optional[UUID] = None
	connection_state: Optional[str] = None
	connection_type: Optional[str] = None

	@classmethod
	def from_record(cls, record) -> "UserSearchHit":
		connection_id = record.get("connection_id")
		return cls(
			id=int(record["id"]),
			display_name=record["display_name"] or DEFAULT_DISPLAY_NAME,
			avatar_url=record.get("avatar_url"),
			connection_id=UUID(str(connection_id)) if connection_id else None,
			connection_state=record.get("connection_state"),
			connection_type=record.get("connection_type"),
		)
