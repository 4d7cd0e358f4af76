"""
Reservation Coordinator - turns a (waitlist entry, slot) pair into a booking.

A booking is claimed while holding the entry lock and then the slot lock,
always in that order. Preconditions are re-checked inside the locks, since
the candidate list an operator clicked on is only a snapshot. The claim
itself is the ledger's uniqueness-guarded insert; every later step is
rolled back if it fails, so a reservation either fully happens or leaves
no trace.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional, Union
from uuid import UUID

from loguru import logger

from src.config import Settings, get_settings
from src.errors import (
    ExpiredEntryError,
    NotFoundError,
    SlotUnavailableError,
    ValidationError,
)
from src.models.booking import AvailabilitySlot, Booking, SlotHold, SlotSnapshot
from src.models.waitlist import WaitlistEntry, WaitlistStatus
from src.services.matching import MatchingEngine
from src.stores.base import BookingRepository, SlotRepository, WaitlistRepository


class ReservationCoordinator:
    """
    Books waitlist entries into slots with an exclusivity guarantee.

    Among concurrent attempts on the same slot exactly one succeeds; the
    others raise :class:`SlotUnavailableError`.
    """

    def __init__(
        self,
        catalog: SlotRepository,
        waitlist: WaitlistRepository,
        ledger: BookingRepository,
        matching: Optional[MatchingEngine] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._settings = settings or get_settings()
        self._catalog = catalog
        self._waitlist = waitlist
        self._ledger = ledger
        self._matching = matching or MatchingEngine.from_settings(self._settings)
        self._clock = clock

    async def book(
        self, entry_id: UUID, slot_id: UUID, confirm: bool = True
    ) -> Union[Booking, SlotHold]:
        """
        Book ``entry_id`` into ``slot_id``.

        With ``confirm=False`` the slot is only held for the configured
        hold duration and a :class:`SlotHold` is returned; confirm it later
        with :meth:`confirm_hold`.

        Raises:
            NotFoundError: Unknown entry or slot.
            ExpiredEntryError: The entry is past its expiry time.
            ValidationError: The entry is not waiting/contacted, or the slot
                is no longer a valid candidate for it.
            SlotUnavailableError: Another booking or hold got the slot first.
        """
        if not confirm:
            return await self.hold(entry_id, slot_id)

        async with self._waitlist.lock(entry_id):
            async with self._catalog.lock(slot_id):
                now = self._clock()
                entry = self._check_entry(entry_id, now)
                slot = self._check_slot(entry, slot_id, now)
                return self._commit(entry, slot, now)

    async def hold(self, entry_id: UUID, slot_id: UUID) -> SlotHold:
        """Reserve a slot for one entry for a bounded time without booking it."""
        async with self._waitlist.lock(entry_id):
            async with self._catalog.lock(slot_id):
                now = self._clock()
                entry = self._check_entry(entry_id, now)
                self._check_slot(entry, slot_id, now)

                existing = self._catalog.active_hold(slot_id, now)
                if existing is not None:
                    return existing

                # One hold per entry: a new hold gives back the previous one
                released = self._catalog.release_holds_for_entry(entry_id)
                if released:
                    logger.info(f"Released {released} earlier hold(s) of waitlist entry {entry_id}")

                hold = SlotHold(
                    slot_id=slot_id,
                    entry_id=entry_id,
                    created_at=now,
                    expires_at=now + timedelta(seconds=self._settings.hold_duration_seconds),
                )
                self._catalog.add_hold(hold)
                logger.info(
                    f"Slot {slot_id} held for waitlist entry {entry_id} until "
                    f"{hold.expires_at.isoformat()}"
                )
                return hold

    async def confirm_hold(self, hold_id: UUID) -> Booking:
        """Finalize a hold into a confirmed booking."""
        hold = self._catalog.get_hold(hold_id)
        if hold is None:
            raise NotFoundError(f"Hold {hold_id} not found", hold_id=str(hold_id))

        async with self._waitlist.lock(hold.entry_id):
            async with self._catalog.lock(hold.slot_id):
                now = self._clock()
                if self._catalog.get_hold(hold_id) is None:
                    raise NotFoundError(f"Hold {hold_id} not found", hold_id=str(hold_id))
                if hold.is_expired(now):
                    self._catalog.drop_hold(hold_id)
                    raise ValidationError(
                        f"Hold {hold_id} expired at {hold.expires_at.isoformat()}",
                        hold_id=str(hold_id),
                    )
                entry = self._check_entry(hold.entry_id, now)
                slot = self._check_slot(entry, hold.slot_id, now)
                return self._commit(entry, slot, now)

    async def release_hold(self, hold_id: UUID) -> SlotHold:
        hold = self._catalog.get_hold(hold_id)
        if hold is None:
            raise NotFoundError(f"Hold {hold_id} not found", hold_id=str(hold_id))

        async with self._catalog.lock(hold.slot_id):
            released = self._catalog.drop_hold(hold_id)
        if released is None:
            raise NotFoundError(f"Hold {hold_id} not found", hold_id=str(hold_id))
        logger.info(f"Hold {hold_id} on slot {hold.slot_id} released")
        return released

    def _check_entry(self, entry_id: UUID, now: datetime) -> WaitlistEntry:
        entry = self._waitlist.get(entry_id)
        if entry is None:
            raise NotFoundError(f"Waitlist entry {entry_id} not found", entry_id=str(entry_id))

        status = entry.effective_status(now)
        if status == WaitlistStatus.EXPIRED:
            raise ExpiredEntryError(
                f"Waitlist entry {entry_id} expired at {entry.expires_at.isoformat()}",
                entry_id=str(entry_id),
            )
        if not status.can_transition_to(WaitlistStatus.BOOKED):
            raise ValidationError(
                f"Waitlist entry {entry_id} is {status.value} and cannot be booked",
                entry_id=str(entry_id),
            )
        return entry

    def _check_slot(self, entry: WaitlistEntry, slot_id: UUID, now: datetime) -> AvailabilitySlot:
        slot = self._catalog.get(slot_id)
        if slot is None:
            if self._catalog.is_consumed(slot_id):
                logger.warning(f"Slot {slot_id} already taken; entry {entry.id} must pick another")
                raise SlotUnavailableError(slot_id=str(slot_id))
            raise NotFoundError(f"Slot {slot_id} not found", slot_id=str(slot_id))

        hold = self._catalog.active_hold(slot_id, now)
        if hold is not None and hold.entry_id != entry.id:
            logger.warning(f"Slot {slot_id} is held for entry {hold.entry_id}")
            raise SlotUnavailableError(
                "That slot is being held for another client.", slot_id=str(slot_id)
            )

        booked = self._ledger.conflicts(slot)
        if booked is not None:
            logger.warning(f"Slot {slot_id} collides with booking {booked.id}")
            raise SlotUnavailableError(
                slot_id=str(slot_id), conflicting_booking_id=str(booked.id)
            )

        if slot.start < now:
            raise ValidationError(f"Slot {slot_id} has already started", slot_id=str(slot_id))
        if not self._matching.is_candidate(entry, slot):
            raise ValidationError(
                f"Slot {slot_id} no longer matches the request of entry {entry.id}",
                slot_id=str(slot_id),
                entry_id=str(entry.id),
            )
        return slot

    def _commit(self, entry: WaitlistEntry, slot: AvailabilitySlot, now: datetime) -> Booking:
        booking = Booking(
            waitlist_entry_id=entry.id,
            client_ref=entry.client_ref,
            treatment_id=entry.treatment.id,
            slot=SlotSnapshot.from_slot(slot),
            created_at=now,
        )

        try:
            self._ledger.claim(booking)
        except SlotUnavailableError:
            logger.warning(f"Claim on slot {slot.id} lost for waitlist entry {entry.id}")
            raise

        try:
            self._waitlist.save(entry.model_copy(update={"status": WaitlistStatus.BOOKED}))
            self._catalog.consume(slot.id)
        except Exception:
            logger.exception(f"Reservation of slot {slot.id} for entry {entry.id} rolled back")
            self._ledger.release(booking.id)
            self._waitlist.save(entry)
            if self._catalog.is_consumed(slot.id):
                self._catalog.restore(slot)
            raise

        self._catalog.release_holds_for_entry(entry.id)
        logger.info(
            f"Booking {booking.id} confirmed: entry {entry.id} -> slot {slot.id} "
            f"({slot.resource_ref}, {slot.formatted_time})"
        )
        return booking
