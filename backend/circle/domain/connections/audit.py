"""Audit helpers for connection transitions."""

from __future__ import annotations

from typing import Dict

from circle.infra.redis import redis_client
from circle.obs import metrics as obs_metrics


async def log_connection_event(event: str, fields: Dict[str, str]) -> None:
	payload = {"event": event, **fields}
	await redis_client.xadd_capped("x:connections.events", payload)


def inc_transition(event: str) -> None:
	obs_metrics.inc_connection_transition(event)


def inc_request_reject(reason: str) -> None:
	obs_metrics.inc_connection_request_reject(reason)
