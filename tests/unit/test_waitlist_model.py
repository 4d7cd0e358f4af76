"""
Unit tests for the waitlist and slot models.
"""

from datetime import date, datetime, time, timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError

from conftest import NOW, make_entry, make_slot
from src.models.booking import SlotSnapshot
from src.models.waitlist import ClientContact, WaitlistStatus


class TestStatusMachine:
    """Allowed transitions between waitlist statuses."""

    @pytest.mark.parametrize(
        "status", [WaitlistStatus.BOOKED, WaitlistStatus.EXPIRED, WaitlistStatus.REMOVED]
    )
    def test_terminal_states_have_no_exits(self, status):
        assert status.is_terminal
        assert not any(status.can_transition_to(target) for target in WaitlistStatus)

    def test_waiting_transitions(self):
        assert WaitlistStatus.WAITING.can_transition_to(WaitlistStatus.CONTACTED)
        assert WaitlistStatus.WAITING.can_transition_to(WaitlistStatus.BOOKED)
        assert WaitlistStatus.WAITING.can_transition_to(WaitlistStatus.REMOVED)

    def test_contacted_transitions(self):
        assert WaitlistStatus.CONTACTED.can_transition_to(WaitlistStatus.BOOKED)
        assert WaitlistStatus.CONTACTED.can_transition_to(WaitlistStatus.EXPIRED)
        assert WaitlistStatus.CONTACTED.can_transition_to(WaitlistStatus.WAITING)


class TestWaitlistEntry:
    def test_negative_priority_rejected(self):
        with pytest.raises(PydanticValidationError):
            make_entry(priority=-1)

    def test_created_at_immutable(self):
        entry = make_entry()
        with pytest.raises(PydanticValidationError):
            entry.created_at = NOW + timedelta(days=1)

    def test_effective_status_is_lazy(self):
        entry = make_entry(expires_at=NOW + timedelta(hours=1))
        assert entry.effective_status(NOW) == WaitlistStatus.WAITING
        assert entry.effective_status(NOW + timedelta(hours=2)) == WaitlistStatus.EXPIRED
        assert entry.status == WaitlistStatus.WAITING

    def test_terminal_status_wins_over_expiry(self):
        entry = make_entry(status=WaitlistStatus.BOOKED, expires_at=NOW + timedelta(hours=1))
        assert entry.effective_status(NOW + timedelta(days=3)) == WaitlistStatus.BOOKED

    @pytest.mark.parametrize("days,label", [(0, "Today"), (1, "1 day"), (12, "12 days")])
    def test_wait_time_label(self, days, label):
        entry = make_entry()
        assert entry.wait_time_label(NOW + timedelta(days=days)) == label

    def test_client_contact_normalized(self):
        contact = ClientContact(first_name="  Amira ", last_name="Shah", email=" ")
        assert contact.first_name == "Amira"
        assert contact.email is None
        assert contact.full_name == "Amira Shah"


class TestSlots:
    def test_slot_is_frozen(self):
        slot = make_slot()
        with pytest.raises(PydanticValidationError):
            slot.duration_minutes = 90

    def test_zero_duration_rejected(self):
        with pytest.raises(PydanticValidationError):
            make_slot(duration_minutes=0)

    def test_start_end(self):
        slot = make_slot(slot_date=date(2025, 3, 10), start=time(10, 0), duration_minutes=45)
        assert slot.start == datetime(2025, 3, 10, 10, 0)
        assert slot.end == datetime(2025, 3, 10, 10, 45)

    def test_overlap(self):
        base = make_slot(start=time(10, 0), duration_minutes=60)
        assert base.overlaps(make_slot(start=time(10, 30)))
        assert not base.overlaps(make_slot(start=time(11, 0)))
        assert not base.overlaps(make_slot(start=time(10, 30), resource_ref="pr-okafor"))

    def test_snapshot_copies_fields(self):
        slot = make_slot()
        snapshot = SlotSnapshot.from_slot(slot)
        assert snapshot.slot_id == slot.id
        assert snapshot.claim_key == slot.claim_key
        assert snapshot.end == slot.end
