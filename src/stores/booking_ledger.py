"""
Booking Ledger - confirmed and cancelled bookings.

The ledger enforces the exclusivity guarantee: at most one confirmed
booking per ``(resource_ref, date, time)``, and no two confirmed bookings
overlapping on the same resource. :meth:`BookingLedger.claim` checks and
inserts without yielding to the event loop, so it is a single atomic write.
"""

from datetime import date, time
from typing import Dict, List, Optional, Tuple, Union
from uuid import UUID

from loguru import logger

from src.errors import NotFoundError, SlotUnavailableError
from src.models.booking import AvailabilitySlot, Booking, BookingStatus, SlotSnapshot

ClaimKey = Tuple[str, date, time]
SlotLike = Union[AvailabilitySlot, SlotSnapshot]


class BookingLedger:
    """In-memory booking ledger with a uniqueness index on confirmed claims."""

    def __init__(self):
        self._bookings: Dict[UUID, Booking] = {}
        self._claims: Dict[ClaimKey, UUID] = {}

    @property
    def bookings(self) -> Dict[UUID, Booking]:
        return self._bookings

    def __len__(self) -> int:
        return len(self._bookings)

    def conflicts(self, slot: SlotLike) -> Optional[Booking]:
        """The confirmed booking that ``slot`` would collide with, if any."""
        booking_id = self._claims.get(slot.claim_key)
        if booking_id is not None:
            return self._bookings[booking_id]
        for existing in self.confirmed_for_resource(slot.resource_ref):
            if existing.slot.overlaps(slot):
                return existing
        return None

    def claim(self, booking: Booking) -> Booking:
        """Insert a confirmed booking or raise if its slot is already taken."""
        existing = self.conflicts(booking.slot)
        if existing is not None:
            if existing.slot.claim_key == booking.slot.claim_key:
                raise SlotUnavailableError(slot_id=str(booking.slot.slot_id))
            raise SlotUnavailableError(
                f"{booking.slot.resource_ref} is already booked at an overlapping time.",
                slot_id=str(booking.slot.slot_id),
                conflicting_booking_id=str(existing.id),
            )

        self._bookings[booking.id] = booking
        self._claims[booking.slot.claim_key] = booking.id
        return booking

    def release(self, booking_id: UUID) -> Optional[Booking]:
        """Undo a claim that could not be completed."""
        booking = self._bookings.pop(booking_id, None)
        if booking is not None and self._claims.get(booking.slot.claim_key) == booking_id:
            del self._claims[booking.slot.claim_key]
        return booking

    def cancel(self, booking_id: UUID) -> Booking:
        """Mark a booking cancelled and free its claim."""
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found", booking_id=str(booking_id))
        if booking.status == BookingStatus.CANCELLED:
            return booking

        cancelled = booking.model_copy(update={"status": BookingStatus.CANCELLED})
        self._bookings[booking_id] = cancelled
        if self._claims.get(booking.slot.claim_key) == booking_id:
            del self._claims[booking.slot.claim_key]
        logger.info(f"Booking {booking_id} cancelled")
        return cancelled

    def get(self, booking_id: UUID) -> Optional[Booking]:
        return self._bookings.get(booking_id)

    def for_entry(self, entry_id: UUID) -> List[Booking]:
        return [b for b in self._bookings.values() if b.waitlist_entry_id == entry_id]

    def confirmed_for_resource(self, resource_ref: str) -> List[Booking]:
        return [
            b
            for b in self._bookings.values()
            if b.is_confirmed and b.slot.resource_ref == resource_ref
        ]

    def list(self, status: Optional[BookingStatus] = None) -> List[Booking]:
        results = [b for b in self._bookings.values() if status is None or b.status == status]
        results.sort(key=lambda b: (b.slot.date, b.slot.time, b.slot.resource_ref))
        return results
