from __future__ import annotations

import pytest

from circle.infra.scheduler import MaintenanceScheduler
from circle.maintenance.jobs import ConnectionExpirySweeper, InviteGarbageCollector, register_jobs


class _SweepStub:
	def __init__(self, result=0, error: Exception | None = None) -> None:
		self.calls = 0
		self.result = result
		self.error = error

	async def sweep_expired(self):
		self.calls += 1
		if self.error:
			raise self.error
		return self.result


class _InviteStub:
	def __init__(self) -> None:
		self.cutoffs = []

	async def purge_expired(self, *, now):
		self.cutoffs.append(now)
		return 4


@pytest.mark.asyncio
async def test_sweeper_delegates_to_service():
	stub = _SweepStub(result=2)
	assert await ConnectionExpirySweeper(service=stub).run_once() == 2
	assert stub.calls == 1


@pytest.mark.asyncio
async def test_sweeper_propagates_failures():
	stub = _SweepStub(error=RuntimeError("db down"))
	with pytest.raises(RuntimeError):
		await ConnectionExpirySweeper(service=stub).run_once()


@pytest.mark.asyncio
async def test_sweeper_expires_through_connection_service(store, make_service, clock):
	store.add_user(1)
	store.add_user(2)
	service = make_service()
	pending = await service.request_connection(1, target_user_id=2, connection_type="temporary")
	await service.accept_connection(pending.id, 2)
	sweeper = ConnectionExpirySweeper(service=service)

	assert await sweeper.run_once() == 0
	clock.advance(days=366)
	assert await sweeper.run_once() == 1
	assert store.circle_count(1) == store.circle_count(2) == 0


@pytest.mark.asyncio
async def test_invite_gc_passes_current_time():
	stub = _InviteStub()
	assert await InviteGarbageCollector(service=stub).run_once() == 4
	assert len(stub.cutoffs) == 1
	assert stub.cutoffs[0].tzinfo is not None


def test_register_jobs_schedules_both_jobs():
	scheduler = MaintenanceScheduler()
	register_jobs(
		scheduler,
		sweeper=ConnectionExpirySweeper(service=_SweepStub()),
		invite_gc=InviteGarbageCollector(service=_InviteStub()),
	)
	assert sorted(scheduler.job_ids()) == ["connections-expiry-sweep", "invites-gc"]
	assert scheduler.started is False
