"""Domain models for circle invite tokens."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

MAX_USES_CEILING = 100
MIN_TTL_HOURS = 1
MAX_TTL_HOURS = 24 * 30


@dataclass(slots=True)
class Invite:
	id: UUID
	token: str
	issuer_user_id: int
	max_uses: int
	use_count: int
	expires_at: datetime
	created_at: datetime

	@property
	def remaining_uses(self) -> int:
		return max(0, self.max_uses - self.use_count)

	def is_usable(self, now: datetime) -> bool:
		return self.expires_at > now and self.use_count < self.max_uses

	@classmethod
	def from_record(cls, record) -> "Invite":
		return cls(
			id=UUID(str(record["id"])),
			token=record["token"],
			issuer_user_id=int(record["issuer_user_id"]),
			max_uses=int(record["max_uses"]),
			use_count=int(record["use_count"]),
			expires_at=record["expires_at"],
			created_at=record["created_at"],
		)
