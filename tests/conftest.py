"""
Shared fixtures: a controllable clock, entry/slot builders and a
dispatcher that records notifications instead of sending them.
"""

from datetime import date, datetime, time, timedelta
from typing import List

import pytest

from src.config import Settings
from src.models.booking import AvailabilitySlot
from src.models.waitlist import TreatmentRef, WaitlistEntry
from src.services.notification import NotificationDispatcher, NotificationRequest
from src.services.waitlist import WaitlistService

NOW = datetime(2025, 2, 20, 8, 0)

BOTOX = TreatmentRef(id="anti_wrinkle", name="Anti-Wrinkle Injections", duration_minutes=30)
FILLER = TreatmentRef(id="dermal_filler", name="Dermal Filler", duration_minutes=60)


class FakeClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingDispatcher(NotificationDispatcher):
    def __init__(self):
        self.requests: List[NotificationRequest] = []

    async def dispatch(self, request: NotificationRequest) -> None:
        self.requests.append(request)


def make_entry(
    preferred_date: date = date(2025, 3, 10),
    treatment: TreatmentRef = BOTOX,
    priority: int = 0,
    created_at: datetime = NOW,
    expires_at: datetime = NOW + timedelta(days=30),
    **kwargs,
) -> WaitlistEntry:
    return WaitlistEntry(
        client_ref=kwargs.pop("client_ref", "client-1"),
        treatment=treatment,
        preferred_date=preferred_date,
        priority=priority,
        created_at=created_at,
        expires_at=expires_at,
        **kwargs,
    )


def make_slot(
    slot_date: date = date(2025, 3, 10),
    start: time = time(10, 0),
    duration_minutes: int = 30,
    resource_ref: str = "pr-hughes",
) -> AvailabilitySlot:
    return AvailabilitySlot(
        date=slot_date,
        time=start,
        duration_minutes=duration_minutes,
        resource_ref=resource_ref,
        practitioner_name="Dr. Emma Hughes",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(enable_sweep_scheduler=False, notification_api_url="")


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def service(clock, settings, dispatcher):
    """Fresh waitlist service over empty in-memory stores."""
    return WaitlistService(dispatcher=dispatcher, settings=settings, clock=clock)
