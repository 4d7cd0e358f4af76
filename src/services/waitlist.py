"""
Waitlist Service - the operations the practitioner portal calls.

Wires the stores, the ranker, the matching engine, the reservation
coordinator and the notification dispatcher together. Collaborators are
passed in explicitly so tests can run against fresh in-memory stores and a
fixed clock.
"""

from datetime import date, datetime, time, timedelta
from typing import Callable, List, Optional, Union
from uuid import UUID

from loguru import logger
from pydantic import BaseModel, Field

from src.config import Settings, get_settings, get_treatment_by_id
from src.errors import ExpiredEntryError, NotFoundError, ValidationError
from src.models.booking import AvailabilitySlot, Booking, BookingStatus, SlotHold, SlotSnapshot
from src.models.waitlist import (
    ClientContact,
    ContactChannel,
    PriorityDirection,
    TreatmentRef,
    WaitlistEntry,
    WaitlistStatus,
)
from src.services.matching import MatchingEngine
from src.services.notification import (
    NotificationDispatcher,
    NotificationRequest,
    build_message,
    get_notification_dispatcher,
    resolve_recipient,
)
from src.services.ranking import PriorityRanker
from src.services.reservation import ReservationCoordinator
from src.stores.booking_ledger import BookingLedger
from src.stores.slot_catalog import SlotCatalog
from src.stores.waitlist_store import WaitlistStore


class WaitlistStats(BaseModel):
    """Dashboard counters for the waitlist."""

    total: int = 0
    waiting: int = 0
    contacted: int = 0
    booked: int = 0
    expired: int = 0
    removed: int = 0
    matching_slots: int = Field(default=0, description="Candidate slots summed over open entries")
    entries_with_matches: int = 0
    average_wait_days: float = 0.0


class SweepReport(BaseModel):
    """What a maintenance sweep changed."""

    ran_at: datetime
    expired_entries: List[UUID] = Field(default_factory=list)
    reopened_entries: List[UUID] = Field(default_factory=list)
    purged_slots: int = 0
    released_holds: int = 0


class WaitlistService:
    """
    Facade over the waitlist matching and reservation engine.
    """

    def __init__(
        self,
        catalog: Optional[SlotCatalog] = None,
        store: Optional[WaitlistStore] = None,
        ledger: Optional[BookingLedger] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings or get_settings()
        self.ledger = ledger if ledger is not None else BookingLedger()
        self.catalog = catalog if catalog is not None else SlotCatalog(self.ledger)
        if self.catalog.bookings is None:
            self.catalog.bookings = self.ledger
        self.store = store if store is not None else WaitlistStore()
        self.dispatcher = dispatcher or get_notification_dispatcher()
        self.clock = clock
        self.matching = MatchingEngine.from_settings(self.settings)
        self.ranker = PriorityRanker(self.store, self.settings, clock)
        self.reservations = ReservationCoordinator(
            self.catalog,
            self.store,
            self.ledger,
            matching=self.matching,
            settings=self.settings,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    async def create_entry(
        self,
        client_ref: str,
        treatment: Union[TreatmentRef, str],
        preferred_date: date,
        alternative_dates: Optional[List[date]] = None,
        preferred_time: Optional[time] = None,
        flexible_timing: bool = False,
        priority: int = 0,
        client: Optional[ClientContact] = None,
        expires_at: Optional[datetime] = None,
    ) -> WaitlistEntry:
        """Add a client's wait request. Treatments given by id come from the catalogue."""
        if isinstance(treatment, str):
            found = get_treatment_by_id(treatment)
            if found is None:
                raise ValidationError(f"Unknown treatment {treatment}", treatment_id=treatment)
            treatment = TreatmentRef(**found)

        now = self.clock()
        if expires_at is None:
            expires_at = now + timedelta(days=self.settings.default_entry_expiry_days)
        if expires_at <= now:
            raise ValidationError("Expiry must lie in the future")

        entry = WaitlistEntry(
            client_ref=client_ref,
            client=client,
            treatment=treatment,
            preferred_date=preferred_date,
            alternative_dates=alternative_dates or [],
            preferred_time=preferred_time,
            flexible_timing=flexible_timing,
            priority=priority,
            expires_at=expires_at,
            created_at=now,
        )
        return self.store.add(entry)

    def get_entry(self, entry_id: UUID) -> WaitlistEntry:
        """Entry with its effective status."""
        entry = self.store.require(entry_id)
        effective = entry.effective_status(self.clock())
        if effective != entry.status:
            entry.status = effective
        return entry

    def list_waitlist(
        self,
        status: Optional[WaitlistStatus] = None,
        treatment_id: Optional[str] = None,
    ) -> List[WaitlistEntry]:
        """Entries in rank order, expired ones reported as such even before a sweep."""
        return self.ranker.rank(self.store.list(self.clock(), status=status, treatment_id=treatment_id))

    async def adjust_priority(self, entry_id: UUID, direction: PriorityDirection) -> WaitlistEntry:
        return await self.ranker.adjust(entry_id, direction)

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def find_candidates(self, entry_id: UUID, limit: Optional[int] = None) -> List[AvailabilitySlot]:
        entry = self.store.require(entry_id)
        return self._candidates(entry, self.clock()).to_list(limit)

    def _candidates(self, entry: WaitlistEntry, now: datetime):
        return self.matching.find_candidates(entry, self.catalog.snapshot(now, for_entry=entry.id))

    def candidate_count(self, entry: WaitlistEntry) -> int:
        if not entry.effective_status(self.clock()).is_actionable:
            return 0
        return len(self._candidates(entry, self.clock()).to_list())

    # ------------------------------------------------------------------
    # Contact
    # ------------------------------------------------------------------

    async def contact(
        self,
        entry_id: UUID,
        channel: ContactChannel,
        slot_hint: Optional[UUID] = None,
        message: Optional[str] = None,
    ) -> WaitlistEntry:
        """
        Notify the client about a matching opening and mark the entry contacted.

        The notification goes out only when at least one candidate exists.
        ``slot_hint`` picks which candidate the message mentions; by default
        it is the earliest one. A contacted entry may be contacted again.
        """
        channel = ContactChannel(channel)
        async with self.store.lock(entry_id):
            now = self.clock()
            entry = self.store.require(entry_id)
            self._ensure_actionable(entry, now)

            candidates = self._candidates(entry, now).to_list()
            if not candidates:
                raise ValidationError(
                    f"No matching slots for waitlist entry {entry_id}", entry_id=str(entry_id)
                )

            slot = candidates[0]
            if slot_hint is not None:
                slot = next((s for s in candidates if s.id == slot_hint), None)
                if slot is None:
                    raise ValidationError(
                        f"Slot {slot_hint} is not a candidate for entry {entry_id}",
                        entry_id=str(entry_id),
                        slot_id=str(slot_hint),
                    )

            request = NotificationRequest(
                entry_id=entry.id,
                client_ref=entry.client_ref,
                channel=channel,
                recipient=resolve_recipient(entry, channel),
                message=message or build_message(entry, channel, slot),
                slot=SlotSnapshot.from_slot(slot),
                requested_at=now,
            )
            await self.dispatcher.dispatch(request)

            contacted = entry.model_copy(
                update={"status": WaitlistStatus.CONTACTED, "notified_at": now}
            )
            self.store.save(contacted)
            logger.info(f"Waitlist entry {entry_id} contacted by {channel.value} about slot {slot.id}")
            return contacted

    # ------------------------------------------------------------------
    # Reservation
    # ------------------------------------------------------------------

    async def book(
        self, entry_id: UUID, slot_id: UUID, confirm: bool = True
    ) -> Union[Booking, SlotHold]:
        return await self.reservations.book(entry_id, slot_id, confirm=confirm)

    async def confirm_hold(self, hold_id: UUID) -> Booking:
        return await self.reservations.confirm_hold(hold_id)

    async def release_hold(self, hold_id: UUID) -> SlotHold:
        return await self.reservations.release_hold(hold_id)

    async def remove(self, entry_id: UUID) -> None:
        """Withdraw an entry and release any slot held for it."""
        async with self.store.lock(entry_id):
            now = self.clock()
            entry = self.store.require(entry_id)
            if entry.status == WaitlistStatus.REMOVED:
                raise NotFoundError(f"Waitlist entry {entry_id} not found", entry_id=str(entry_id))
            self._ensure_actionable(entry, now)

            self.store.save(entry.model_copy(update={"status": WaitlistStatus.REMOVED}))
            released = self.catalog.release_holds_for_entry(entry_id)
            logger.info(f"Waitlist entry {entry_id} removed ({released} hold(s) released)")

    async def reopen(self, entry_id: UUID) -> WaitlistEntry:
        """Put a contacted entry back to waiting so it can be offered again."""
        async with self.store.lock(entry_id):
            now = self.clock()
            entry = self.store.require(entry_id)
            self._ensure_actionable(entry, now)
            if entry.status != WaitlistStatus.CONTACTED:
                raise ValidationError(
                    f"Waitlist entry {entry_id} is {entry.status.value}, not contacted",
                    entry_id=str(entry_id),
                )
            reopened = self._reopen(entry)
            logger.info(f"Waitlist entry {entry_id} reopened")
            return reopened

    def _reopen(self, entry: WaitlistEntry) -> WaitlistEntry:
        reopened = entry.model_copy(update={"status": WaitlistStatus.WAITING, "notified_at": None})
        self.store.save(reopened)
        self.catalog.release_holds_for_entry(entry.id)
        return reopened

    def _ensure_actionable(self, entry: WaitlistEntry, now: datetime) -> None:
        status = entry.effective_status(now)
        if status == WaitlistStatus.EXPIRED:
            raise ExpiredEntryError(
                f"Waitlist entry {entry.id} expired at {entry.expires_at.isoformat()}",
                entry_id=str(entry.id),
            )
        if not status.is_actionable:
            raise ValidationError(
                f"Waitlist entry {entry.id} is {status.value}", entry_id=str(entry.id)
            )

    # ------------------------------------------------------------------
    # Slots and bookings
    # ------------------------------------------------------------------

    async def publish_slot(self, slot: AvailabilitySlot) -> AvailabilitySlot:
        if slot.start < self.clock():
            raise ValidationError("Cannot publish a slot in the past")
        return await self.catalog.publish(slot)

    def list_slots(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        resource_ref: Optional[str] = None,
        min_duration: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[AvailabilitySlot]:
        return self.catalog.search(
            self.clock(),
            start_date=start_date,
            end_date=end_date,
            resource_ref=resource_ref,
            min_duration=min_duration,
            limit=limit,
            offset=offset,
        )

    def list_bookings(self, status: Optional[BookingStatus] = None) -> List[Booking]:
        return self.ledger.list(status)

    # ------------------------------------------------------------------
    # Reporting and maintenance
    # ------------------------------------------------------------------

    def stats(self) -> WaitlistStats:
        now = self.clock()
        entries = self.store.list(now)
        stats = WaitlistStats(total=len(entries))
        open_waits = []
        for entry in entries:
            setattr(stats, entry.status.value, getattr(stats, entry.status.value) + 1)
            if entry.status.is_actionable:
                open_waits.append(entry.wait_days(now))
                count = len(self._candidates(entry, now).to_list())
                stats.matching_slots += count
                if count:
                    stats.entries_with_matches += 1
        if open_waits:
            stats.average_wait_days = round(sum(open_waits) / len(open_waits), 1)
        return stats

    async def sweep(self) -> SweepReport:
        """
        Persist lazy expiries, revert unanswered contacts when configured,
        drop past slots and stale holds.
        """
        now = self.clock()
        report = SweepReport(ran_at=now)

        for overdue in self.store.overdue(now):
            async with self.store.lock(overdue.id):
                entry = self.store.get(overdue.id)
                if entry is None or entry.status.is_terminal or not entry.is_past_expiry(now):
                    continue
                self.store.save(entry.model_copy(update={"status": WaitlistStatus.EXPIRED}))
                report.released_holds += self.catalog.release_holds_for_entry(entry.id)
                report.expired_entries.append(entry.id)

        if self.settings.contact_response_hours:
            cutoff = now - timedelta(hours=self.settings.contact_response_hours)
            for contacted in self.store.list(now, status=WaitlistStatus.CONTACTED):
                if contacted.notified_at is None or contacted.notified_at > cutoff:
                    continue
                async with self.store.lock(contacted.id):
                    entry = self.store.get(contacted.id)
                    if entry is None or entry.status != WaitlistStatus.CONTACTED:
                        continue
                    self._reopen(entry)
                    report.reopened_entries.append(entry.id)

        report.purged_slots = self.catalog.purge_past(now)
        report.released_holds += self.catalog.cleanup_expired_holds(now)

        logger.info(
            f"Waitlist sweep: {len(report.expired_entries)} expired, "
            f"{len(report.reopened_entries)} reopened, {report.purged_slots} past slots purged, "
            f"{report.released_holds} holds released"
        )
        return report

    async def close(self) -> None:
        await self.dispatcher.close()


# Singleton instance
_waitlist_service: Optional[WaitlistService] = None


def get_waitlist_service() -> WaitlistService:
    """Get the singleton waitlist service instance."""
    global _waitlist_service
    if _waitlist_service is None:
        _waitlist_service = WaitlistService()
    return _waitlist_service
