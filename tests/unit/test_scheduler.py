"""
Tests for the maintenance sweep job.
"""

from datetime import timedelta

import pytest

from conftest import NOW, make_entry
from src.models.waitlist import WaitlistStatus
from src.scheduler import get_scheduler, run_waitlist_sweep, shutdown_scheduler


class TestSweepJob:
    @pytest.mark.asyncio
    async def test_job_runs_sweep(self, service, clock):
        entry = service.store.add(make_entry(expires_at=NOW + timedelta(hours=1)))
        clock.advance(hours=2)

        await run_waitlist_sweep(service)

        assert service.store.get(entry.id).status == WaitlistStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_job_logs_failures(self, service, monkeypatch):
        async def broken_sweep():
            raise RuntimeError("store offline")

        monkeypatch.setattr(service, "sweep", broken_sweep)

        await run_waitlist_sweep(service)

    def test_scheduler_registers_job(self, service):
        try:
            scheduler = get_scheduler(service)
            job = scheduler.get_job("waitlist_sweep")
            assert job is not None
            assert get_scheduler(service) is scheduler
        finally:
            shutdown_scheduler()
