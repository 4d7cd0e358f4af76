"""
Unit tests for the Booking Ledger uniqueness constraint.
"""

from datetime import time

import pytest

from conftest import make_slot
from src.errors import NotFoundError, SlotUnavailableError
from src.models.booking import Booking, BookingStatus, SlotSnapshot
from src.stores.booking_ledger import BookingLedger


def make_booking(**slot_kwargs) -> Booking:
    return Booking(
        client_ref="client-1",
        treatment_id="anti_wrinkle",
        slot=SlotSnapshot.from_slot(make_slot(**slot_kwargs)),
    )


class TestClaim:
    """One confirmed booking per resource and time."""

    def test_claim(self):
        ledger = BookingLedger()
        booking = ledger.claim(make_booking())
        assert ledger.get(booking.id) == booking

    def test_same_key_rejected(self):
        ledger = BookingLedger()
        ledger.claim(make_booking())
        with pytest.raises(SlotUnavailableError):
            ledger.claim(make_booking())
        assert len(ledger) == 1

    def test_overlap_rejected(self):
        ledger = BookingLedger()
        ledger.claim(make_booking(start=time(10, 0), duration_minutes=60))
        with pytest.raises(SlotUnavailableError):
            ledger.claim(make_booking(start=time(10, 45), duration_minutes=30))

    def test_adjacent_allowed(self):
        ledger = BookingLedger()
        ledger.claim(make_booking(start=time(10, 0), duration_minutes=30))
        ledger.claim(make_booking(start=time(10, 30), duration_minutes=30))
        assert len(ledger) == 2

    def test_other_resource_allowed(self):
        ledger = BookingLedger()
        ledger.claim(make_booking())
        ledger.claim(make_booking(resource_ref="pr-okafor"))
        assert len(ledger.list(BookingStatus.CONFIRMED)) == 2


class TestReleaseAndCancel:
    def test_release_frees_claim(self):
        ledger = BookingLedger()
        booking = ledger.claim(make_booking())
        ledger.release(booking.id)
        ledger.claim(make_booking())
        assert len(ledger) == 1

    def test_cancel_frees_claim_and_keeps_history(self):
        ledger = BookingLedger()
        booking = ledger.claim(make_booking())

        cancelled = ledger.cancel(booking.id)

        assert cancelled.status == BookingStatus.CANCELLED
        ledger.claim(make_booking())
        assert len(ledger.list(BookingStatus.CANCELLED)) == 1
        assert len(ledger.list(BookingStatus.CONFIRMED)) == 1

    def test_cancel_unknown(self):
        with pytest.raises(NotFoundError):
            BookingLedger().cancel(make_booking().id)


class TestConflicts:
    """Lookup used by the slot catalog to hide openings that are already booked."""

    def test_same_time(self):
        ledger = BookingLedger()
        booking = ledger.claim(make_booking())
        assert ledger.conflicts(make_slot()) == booking

    def test_overlap(self):
        ledger = BookingLedger()
        booking = ledger.claim(make_booking(start=time(10, 0), duration_minutes=60))
        assert ledger.conflicts(make_slot(start=time(10, 30))) == booking

    def test_free_time(self):
        ledger = BookingLedger()
        ledger.claim(make_booking(start=time(10, 0), duration_minutes=60))
        assert ledger.conflicts(make_slot(start=time(11, 0))) is None
        assert ledger.conflicts(make_slot(resource_ref="pr-okafor")) is None

    def test_cancelled_booking_frees_time(self):
        ledger = BookingLedger()
        booking = ledger.claim(make_booking())
        ledger.cancel(booking.id)
        assert ledger.conflicts(make_slot()) is None
