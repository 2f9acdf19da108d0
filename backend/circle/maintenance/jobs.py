"""Background jobs: temporary-connection expiry and invite cleanup."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from circle.domain.connections.service import ConnectionService
from circle.domain.invites.service import InviteService
from circle.infra.scheduler import MaintenanceScheduler
from circle.obs import metrics as obs_metrics
from circle.settings import settings

logger = logging.getLogger(__name__)

_EXPIRY_JOB = "connections-expiry-sweep"
_INVITE_GC_JOB = "invites-gc"


class ConnectionExpirySweeper:
	"""Ends active temporary connections whose ``expires_at`` has passed.

	Each connection goes through the same terminal transition as a user removal,
	so counters and audit events stay consistent.
	"""

	def __init__(self, *, service: ConnectionService | None = None) -> None:
		self.service = service or ConnectionService()

	async def run_once(self) -> int:
		started = time.perf_counter()
		try:
			expired = await self.service.sweep_expired()
			obs_metrics.record_job_run(_EXPIRY_JOB, result="success")
			return expired
		except Exception:
			obs_metrics.record_job_run(_EXPIRY_JOB, result="error")
			logger.exception("expiry_sweep_failed")
			raise
		finally:
			obs_metrics.BACKGROUND_DURATION.labels(name=_EXPIRY_JOB).observe(time.perf_counter() - started)


class InviteGarbageCollector:
	"""Removes expired invites to keep the table tidy."""

	def __init__(self, *, service: InviteService | None = None) -> None:
		self.service = service or InviteService()

	async def run_once(self) -> int:
		started = time.perf_counter()
		try:
			deleted = await self.service.purge_expired(now=datetime.now(timezone.utc))
			obs_metrics.record_job_run(_INVITE_GC_JOB, result="success")
			return deleted
		except Exception:
			obs_metrics.record_job_run(_INVITE_GC_JOB, result="error")
			logger.exception("invite_gc_failed")
			raise
		finally:
			obs_metrics.BACKGROUND_DURATION.labels(name=_INVITE_GC_JOB).observe(time.perf_counter() - started)


def register_jobs(
	scheduler: MaintenanceScheduler,
	*,
	sweeper: ConnectionExpirySweeper | None = None,
	invite_gc: InviteGarbageCollector | None = None,
) -> None:
	sweeper = sweeper or ConnectionExpirySweeper()
	invite_gc = invite_gc or InviteGarbageCollector()
	scheduler.schedule_every(_EXPIRY_JOB, sweeper.run_once, minutes=settings.expiry_sweep_interval_minutes)
	scheduler.schedule_every(_INVITE_GC_JOB, invite_gc.run_once, hours=settings.invite_gc_interval_hours)
