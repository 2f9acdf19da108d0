"""Policy helpers and guard checks for circle connections."""

from __future__ import annotations

import calendar
from datetime import datetime, timezone

from circle.domain.connections.models import Connection, ConnectionState, EndedReason
from circle.domain.exceptions import (
	ForbiddenError,
	InvalidStateError,
	RequestRateLimitExceeded,
	SelfConnectionError,
)
from circle.infra.redis import redis_client
from circle.settings import settings


def canonical_pair(user_a: int, user_b: int) -> tuple[int, int]:
	"""Order two ids so the unordered pair always maps to the same row."""
	return (user_a, user_b) if user_a < user_b else (user_b, user_a)


def guard_not_self(user_id: int, target_id: int) -> None:
	if int(user_id) == int(target_id):
		raise SelfConnectionError()


def ensure_participant(connection: Connection, user_id: int) -> None:
	if not connection.involves(user_id):
		raise ForbiddenError("not_participant")


def ensure_can_accept(connection: Connection, accepter_id: int) -> None:
	ensure_participant(connection, accepter_id)
	if accepter_id == connection.requester_id:
		raise ForbiddenError("not_recipient")
	if connection.state != ConnectionState.PENDING:
		raise InvalidStateError("not_pending", state=connection.state.value)


def removal_reason(connection: Connection, actor_id: int) -> EndedReason:
	return EndedReason.REMOVED_BY_LOW if connection.is_low(actor_id) else EndedReason.REMOVED_BY_HIGH


def add_months(moment: datetime, months: int) -> datetime:
	"""Calendar month arithmetic, clamping the day (Jan 31 + 1 month -> Feb 28/29)."""
	month_index = moment.month - 1 + months
	year = moment.year + month_index // 12
	month = month_index % 12 + 1
	day = min(moment.day, calendar.monthrange(year, month)[1])
	return moment.replace(year=year, month=month, day=day)


def renewal_deadline(now: datetime) -> datetime:
	return add_months(now, settings.connection_ttl_months)


async def _touch_limit(key: str, ttl_seconds: int) -> int:
	async with redis_client.pipeline(transaction=True) as pipe:
		pipe.incr(key)
		pipe.expire(key, ttl_seconds)
		count, _ = await pipe.execute()
	return int(count)


async def enforce_request_limits(user_id: int) -> None:
	now = datetime.now(timezone.utc)
	bucket = now.strftime("%Y%m%d%H%M")
	key = f"rl:connection:request:{user_id}:{bucket}"
	if await _touch_limit(key, 60) > settings.connection_requests_per_minute:
		raise RequestRateLimitExceeded("per_minute")
