"""
APScheduler job for waitlist maintenance.

  - Every SWEEP_INTERVAL_MINUTES: persist expired entries, revert unanswered
    contacts (when CONTACT_RESPONSE_HOURS is set), purge past slots and
    stale holds.
"""

from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from src.config import get_settings
from src.services.waitlist import WaitlistService, get_waitlist_service

_scheduler: Optional[AsyncIOScheduler] = None


async def run_waitlist_sweep(service: Optional[WaitlistService] = None) -> None:
    """Run one maintenance sweep; errors are logged so the next run still happens."""
    service = service or get_waitlist_service()
    try:
        await service.sweep()
    except Exception as exc:
        logger.error(f"Waitlist sweep failed: {exc}")


def get_scheduler(service: Optional[WaitlistService] = None) -> AsyncIOScheduler:
    global _scheduler
    if _scheduler is None:
        settings = get_settings()
        _scheduler = AsyncIOScheduler()
        _scheduler.add_job(
            run_waitlist_sweep,
            IntervalTrigger(minutes=settings.sweep_interval_minutes),
            kwargs={"service": service},
            id="waitlist_sweep",
            replace_existing=True,
        )
    return _scheduler


def shutdown_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        if _scheduler.running:
            _scheduler.shutdown(wait=False)
        _scheduler = None
