"""
Repository interfaces consumed by the reservation coordinator and the
waitlist service.

The in-memory stores in this package implement them; a database-backed
implementation only has to honour the same contracts, in particular the
uniqueness constraint of :class:`BookingRepository.claim`.
"""

import asyncio
from datetime import datetime
from typing import AsyncContextManager, List, Optional, Protocol
from uuid import UUID

from src.models.booking import AvailabilitySlot, Booking, SlotHold
from src.models.waitlist import WaitlistEntry, WaitlistStatus


class SlotRepository(Protocol):
    def lock(self, slot_id: UUID) -> AsyncContextManager[asyncio.Lock]: ...

    def get(self, slot_id: UUID) -> Optional[AvailabilitySlot]: ...

    def is_consumed(self, slot_id: UUID) -> bool: ...

    def snapshot(
        self, now: datetime, for_entry: Optional[UUID] = None
    ) -> List[AvailabilitySlot]: ...

    def consume(self, slot_id: UUID) -> AvailabilitySlot: ...

    def restore(self, slot: AvailabilitySlot) -> None: ...

    def active_hold(self, slot_id: UUID, now: datetime) -> Optional[SlotHold]: ...

    def add_hold(self, hold: SlotHold) -> SlotHold: ...

    def get_hold(self, hold_id: UUID) -> Optional[SlotHold]: ...

    def drop_hold(self, hold_id: UUID) -> Optional[SlotHold]: ...

    def release_holds_for_entry(self, entry_id: UUID) -> int: ...


class WaitlistRepository(Protocol):
    def lock(self, entry_id: UUID) -> AsyncContextManager[asyncio.Lock]: ...

    def get(self, entry_id: UUID) -> Optional[WaitlistEntry]: ...

    def save(self, entry: WaitlistEntry) -> WaitlistEntry: ...

    def list(
        self,
        now: datetime,
        status: Optional[WaitlistStatus] = None,
        treatment_id: Optional[str] = None,
    ) -> List[WaitlistEntry]: ...


class BookingRepository(Protocol):
    def claim(self, booking: Booking) -> Booking: ...

    def conflicts(self, slot: AvailabilitySlot) -> Optional[Booking]: ...

    def release(self, booking_id: UUID) -> Optional[Booking]: ...

    def get(self, booking_id: UUID) -> Optional[Booking]: ...

    def for_entry(self, entry_id: UUID) -> List[Booking]: ...
