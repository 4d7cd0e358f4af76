"""
Slot Catalog - open appointment slots fed by practitioner calendars.

Holds the currently bookable openings, the slots already consumed by a
booking and the soft holds placed on slots during a two-phase confirm.
"""

import asyncio
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from loguru import logger

from src.config import PRACTITIONERS, TREATMENTS
from src.errors import NotFoundError, SlotUnavailableError, ValidationError
from src.models.booking import AvailabilitySlot, Booking, SlotHold
from src.stores.base import BookingRepository
from src.stores.locks import KeyedLock


class SlotCatalog:
    """
    In-memory slot catalog with per-slot locking.

    In production, this should be replaced with:
    - PostgreSQL for persistent slot storage
    - Redis for holds (with TTL support)
    """

    def __init__(self, bookings: Optional[BookingRepository] = None):
        self._slots: Dict[UUID, AvailabilitySlot] = {}
        self._consumed: Dict[UUID, AvailabilitySlot] = {}
        self._holds: Dict[UUID, SlotHold] = {}  # hold_id -> hold
        self._hold_by_slot: Dict[UUID, UUID] = {}  # slot_id -> hold_id
        self._publish_lock = asyncio.Lock()
        self.lock = KeyedLock()
        # Confirmed bookings; openings that collide with one are never offered
        self.bookings = bookings

    # Public accessors for testing
    @property
    def slots(self) -> Dict[UUID, AvailabilitySlot]:
        """Access to open slots dictionary."""
        return self._slots

    @property
    def holds(self) -> Dict[UUID, SlotHold]:
        """Access to holds dictionary."""
        return self._holds

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, slot_id: UUID) -> bool:
        return slot_id in self._slots

    async def publish(self, slot: AvailabilitySlot) -> AvailabilitySlot:
        """Add a newly opened slot. Rejects a second slot with the same claim key."""
        async with self._publish_lock:
            if slot.id in self._slots or slot.id in self._consumed:
                raise ValidationError(f"Slot {slot.id} was already published")
            for existing in self._slots.values():
                if existing.claim_key == slot.claim_key:
                    raise ValidationError(
                        f"{slot.resource_ref} already has an open slot on "
                        f"{slot.date.isoformat()} at {slot.time.strftime('%H:%M')}"
                    )
            booked = self.booked_conflict(slot)
            if booked is not None:
                raise ValidationError(
                    f"{slot.resource_ref} is already booked from "
                    f"{booked.slot.start.strftime('%H:%M')} to {booked.slot.end.strftime('%H:%M')} "
                    f"on {slot.date.isoformat()}",
                    booking_id=str(booked.id),
                )
            self._slots[slot.id] = slot
        logger.info(
            f"Published slot {slot.id} ({slot.resource_ref}, {slot.formatted_time}, "
            f"{slot.duration_minutes} min)"
        )
        return slot

    async def publish_many(self, slots: Iterable[AvailabilitySlot]) -> List[AvailabilitySlot]:
        return [await self.publish(slot) for slot in slots]

    def get(self, slot_id: UUID) -> Optional[AvailabilitySlot]:
        """Get an open slot by ID."""
        return self._slots.get(slot_id)

    def require(self, slot_id: UUID) -> AvailabilitySlot:
        slot = self._slots.get(slot_id)
        if slot is None:
            if slot_id in self._consumed:
                raise SlotUnavailableError(slot_id=str(slot_id))
            raise NotFoundError(f"Slot {slot_id} not found", slot_id=str(slot_id))
        return slot

    def is_consumed(self, slot_id: UUID) -> bool:
        return slot_id in self._consumed

    def booked_conflict(self, slot: AvailabilitySlot) -> Optional[Booking]:
        if self.bookings is None:
            return None
        return self.bookings.conflicts(slot)

    def snapshot(self, now: datetime, for_entry: Optional[UUID] = None) -> List[AvailabilitySlot]:
        """
        Bookable slots at ``now``, ordered by date, time and resource.

        Slots that already started are left out, as are slots held for an
        entry other than ``for_entry`` and slots that collide with a
        confirmed booking made after they were published.
        """
        self._cleanup_expired_holds(now)

        results = []
        for slot in self._slots.values():
            if slot.start < now:
                continue
            if self.booked_conflict(slot) is not None:
                continue
            hold_id = self._hold_by_slot.get(slot.id)
            if hold_id is not None and self._holds[hold_id].entry_id != for_entry:
                continue
            results.append(slot)

        results.sort(key=lambda s: (s.date, s.time, s.resource_ref))
        return results

    def search(
        self,
        now: datetime,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        resource_ref: Optional[str] = None,
        min_duration: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[AvailabilitySlot]:
        """Get open slots matching criteria."""
        results = []
        for slot in self.snapshot(now):
            if start_date and slot.date < start_date:
                continue
            if end_date and slot.date > end_date:
                continue
            if resource_ref and slot.resource_ref != resource_ref:
                continue
            if min_duration and slot.duration_minutes < min_duration:
                continue
            results.append(slot)

        return results[offset : offset + limit]

    def consume(self, slot_id: UUID) -> AvailabilitySlot:
        """Remove a slot from the catalog once a booking claimed it."""
        slot = self.require(slot_id)
        del self._slots[slot_id]
        self._consumed[slot_id] = slot
        hold_id = self._hold_by_slot.pop(slot_id, None)
        if hold_id is not None:
            self._holds.pop(hold_id, None)
        return slot

    def restore(self, slot: AvailabilitySlot) -> None:
        """Put a consumed slot back (rollback of a failed reservation)."""
        self._consumed.pop(slot.id, None)
        self._slots[slot.id] = slot

    def purge_past(self, now: datetime) -> int:
        """Drop slots whose start time has passed."""
        past = [slot_id for slot_id, slot in self._slots.items() if slot.start < now]
        for slot_id in past:
            del self._slots[slot_id]
            hold_id = self._hold_by_slot.pop(slot_id, None)
            if hold_id is not None:
                self._holds.pop(hold_id, None)
        return len(past)

    # ------------------------------------------------------------------
    # Holds
    # ------------------------------------------------------------------

    def active_hold(self, slot_id: UUID, now: datetime) -> Optional[SlotHold]:
        hold_id = self._hold_by_slot.get(slot_id)
        if hold_id is None:
            return None
        hold = self._holds[hold_id]
        if hold.is_expired(now):
            self.drop_hold(hold_id)
            return None
        return hold

    def add_hold(self, hold: SlotHold) -> SlotHold:
        if hold.slot_id not in self._slots:
            raise SlotUnavailableError(slot_id=str(hold.slot_id))
        if hold.slot_id in self._hold_by_slot:
            raise SlotUnavailableError(
                "Slot is already held for another client.", slot_id=str(hold.slot_id)
            )
        self._holds[hold.id] = hold
        self._hold_by_slot[hold.slot_id] = hold.id
        return hold

    def get_hold(self, hold_id: UUID) -> Optional[SlotHold]:
        return self._holds.get(hold_id)

    def drop_hold(self, hold_id: UUID) -> Optional[SlotHold]:
        hold = self._holds.pop(hold_id, None)
        if hold is not None and self._hold_by_slot.get(hold.slot_id) == hold_id:
            del self._hold_by_slot[hold.slot_id]
        return hold

    def holds_for_entry(self, entry_id: UUID) -> List[SlotHold]:
        return [hold for hold in self._holds.values() if hold.entry_id == entry_id]

    def release_holds_for_entry(self, entry_id: UUID) -> int:
        held = self.holds_for_entry(entry_id)
        for hold in held:
            self.drop_hold(hold.id)
        return len(held)

    def _cleanup_expired_holds(self, now: datetime) -> int:
        """Remove expired holds."""
        expired = [hold_id for hold_id, hold in self._holds.items() if hold.is_expired(now)]
        for hold_id in expired:
            self.drop_hold(hold_id)
        return len(expired)

    def cleanup_expired_holds(self, now: datetime) -> int:
        return self._cleanup_expired_holds(now)

    # ------------------------------------------------------------------
    # Sample data
    # ------------------------------------------------------------------

    def _initialize_sample_slots(self, start: Optional[datetime] = None, days: int = 14) -> None:
        """Fill the catalog with two weeks of weekday openings for demos and tests."""
        base_date = (start or datetime.now()).date() + timedelta(days=1)
        durations = sorted({treatment["duration_minutes"] for treatment in TREATMENTS})
        longest = durations[-1]

        for day_offset in range(days):
            day = base_date + timedelta(days=day_offset)

            # Skip weekends
            if day.weekday() >= 5:
                continue

            for index, (resource_ref, name) in enumerate(PRACTITIONERS):
                # Morning and afternoon openings, one long session per day
                openings = [
                    (time(9, 0), durations[index % len(durations)]),
                    (time(11, 0), 60),
                    (time(14, 0), longest),
                    (time(16, 30), 30),
                ]
                for start_time, duration in openings:
                    slot = AvailabilitySlot(
                        date=day,
                        time=start_time,
                        duration_minutes=duration,
                        resource_ref=resource_ref,
                        practitioner_name=name,
                    )
                    self._slots[slot.id] = slot

        logger.info(f"Initialized {len(self._slots)} availability slots")
