"""
Matching Engine - finds the open slots a waitlist entry could be booked into.

Everything here is a pure function of the entry and the catalog snapshot it
is given. Removing consumed or held slots is the catalog's job.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, List, Optional, Tuple

from src.config import Settings
from src.models.booking import AvailabilitySlot
from src.models.waitlist import WaitlistEntry

DEFAULT_DAYS_BEFORE = 7
DEFAULT_DAYS_AFTER = 14


class CandidateSlots:
    """
    Lazy, restartable view over the candidate slots of one entry.

    Each iteration filters and orders the captured catalog afresh, so the
    result can be walked any number of times.
    """

    def __init__(self, engine: "MatchingEngine", entry: WaitlistEntry, catalog: Iterable[AvailabilitySlot]):
        self._engine = engine
        self._entry = entry
        self._catalog: Tuple[AvailabilitySlot, ...] = tuple(catalog)

    def __iter__(self) -> Iterator[AvailabilitySlot]:
        matching = (s for s in self._catalog if self._engine.is_candidate(self._entry, s))
        return iter(sorted(matching, key=self._engine.sort_key(self._entry)))

    def __bool__(self) -> bool:
        return any(self._engine.is_candidate(self._entry, s) for s in self._catalog)

    def first(self) -> Optional[AvailabilitySlot]:
        return next(iter(self), None)

    def to_list(self, limit: Optional[int] = None) -> List[AvailabilitySlot]:
        slots = list(self)
        return slots if limit is None else slots[:limit]


class MatchingEngine:
    """
    Applies the duration and date rules that make a slot a candidate.

    Args:
        days_before: How far before the preferred date a flexible entry accepts.
        days_after: How far after the preferred date a flexible entry accepts.
        prefer_closest_time: Order same-day slots by distance to the
            entry's preferred time instead of plain time of day.
    """

    def __init__(
        self,
        days_before: int = DEFAULT_DAYS_BEFORE,
        days_after: int = DEFAULT_DAYS_AFTER,
        prefer_closest_time: bool = False,
    ):
        if days_before < 0 or days_after < 0:
            raise ValueError("Flexible window bounds must not be negative")
        self.days_before = days_before
        self.days_after = days_after
        self.prefer_closest_time = prefer_closest_time

    @classmethod
    def from_settings(cls, settings: Settings) -> "MatchingEngine":
        return cls(
            days_before=settings.flexible_window_days_before,
            days_after=settings.flexible_window_days_after,
            prefer_closest_time=settings.prefer_closest_time,
        )

    def date_window(self, entry: WaitlistEntry) -> Tuple[date, date]:
        """Inclusive date range accepted by a flexible entry."""
        return (
            entry.preferred_date - timedelta(days=self.days_before),
            entry.preferred_date + timedelta(days=self.days_after),
        )

    def duration_fits(self, entry: WaitlistEntry, slot: AvailabilitySlot) -> bool:
        return slot.duration_minutes >= entry.treatment.duration_minutes

    def date_fits(self, entry: WaitlistEntry, slot_date: date) -> bool:
        if entry.flexible_timing:
            earliest, latest = self.date_window(entry)
            return earliest <= slot_date <= latest
        return slot_date == entry.preferred_date or slot_date in entry.alternative_dates

    def is_candidate(self, entry: WaitlistEntry, slot: AvailabilitySlot) -> bool:
        return self.duration_fits(entry, slot) and self.date_fits(entry, slot.date)

    def sort_key(self, entry: WaitlistEntry):
        if self.prefer_closest_time and entry.preferred_time is not None:
            preferred = datetime.combine(date.min, entry.preferred_time)

            def key(slot: AvailabilitySlot):
                distance = abs(datetime.combine(date.min, slot.time) - preferred)
                return (slot.date, distance, slot.time, slot.resource_ref)

            return key
        return lambda slot: (slot.date, slot.time, slot.resource_ref)

    def find_candidates(
        self, entry: WaitlistEntry, catalog: Iterable[AvailabilitySlot]
    ) -> CandidateSlots:
        return CandidateSlots(self, entry, catalog)


def find_candidates(
    entry: WaitlistEntry,
    catalog: Iterable[AvailabilitySlot],
    days_before: int = DEFAULT_DAYS_BEFORE,
    days_after: int = DEFAULT_DAYS_AFTER,
) -> CandidateSlots:
    """Candidate slots for ``entry`` using the given flexible window."""
    return MatchingEngine(days_before, days_after).find_candidates(entry, catalog)
