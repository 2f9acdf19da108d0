"""Capacity guard for per-user active connection ceilings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

import asyncpg

from circle.domain.connections import repo as repo_module
from circle.domain.exceptions import CircleFullError
from circle.obs import metrics as obs_metrics
from circle.settings import settings


@dataclass(slots=True)
class CapacityResult:
	allowed: bool
	limit: int
	counts: dict[int, int] = field(default_factory=dict)

	@property
	def full_user_ids(self) -> list[int]:
		return sorted(uid for uid, count in self.counts.items() if count >= self.limit)


class CapacityGuard:
	"""Counts active connections under row locks; never writes.

	Must be called inside the transaction that performs the subsequent state write,
	otherwise two concurrent accepts sharing a participant can both pass.
	"""

	def __init__(
		self,
		repository: repo_module.ConnectionRepository | None = None,
		*,
		limit: int | None = None,
	) -> None:
		self.repo = repository or repo_module.ConnectionRepository()
		self._limit = limit

	@property
	def limit(self) -> int:
		return self._limit if self._limit is not None else settings.circle_max_connections

	async def check(self, conn: asyncpg.Connection, user_ids: Iterable[int]) -> CapacityResult:
		ids = sorted(set(int(uid) for uid in user_ids))
		await self.repo.lock_users(conn, ids)
		counts = await self.repo.count_active_many(conn, ids)
		limit = self.limit
		allowed = all(counts.get(uid, 0) < limit for uid in ids)
		return CapacityResult(allowed=allowed, limit=limit, counts=counts)

	async def ensure(self, conn: asyncpg.Connection, user_ids: Iterable[int], *, stage: str) -> CapacityResult:
		result = await self.check(conn, user_ids)
		if not result.allowed:
			obs_metrics.inc_capacity_reject(stage)
			raise CircleFullError("circle_full", limit=result.limit)
		return result
