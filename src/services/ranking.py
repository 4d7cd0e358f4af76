"""
Priority Ranker - orders waitlist entries and applies manual adjustments.
"""

from datetime import datetime
from typing import Callable, Iterable, List, Optional
from uuid import UUID

from loguru import logger

from src.config import Settings, get_settings
from src.errors import NotFoundError
from src.models.waitlist import PriorityDirection, WaitlistEntry
from src.stores.base import WaitlistRepository


def rank_key(entry: WaitlistEntry):
    """Higher priority first, then earliest request, then id for a total order."""
    return (-entry.priority, entry.created_at, str(entry.id))


def rank(entries: Iterable[WaitlistEntry]) -> List[WaitlistEntry]:
    return sorted(entries, key=rank_key)


class PriorityRanker:
    """
    Ranks entries and moves them up or down the queue one step at a time.
    """

    def __init__(
        self,
        store: WaitlistRepository,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._store = store
        self._settings = settings or get_settings()
        self._clock = clock

    @staticmethod
    def rank(entries: Iterable[WaitlistEntry]) -> List[WaitlistEntry]:
        return rank(entries)

    async def adjust(self, entry_id: UUID, direction: PriorityDirection) -> WaitlistEntry:
        """
        Raise or lower an entry's priority by one.

        Lowering stops at 0. Only waiting or contacted entries can be
        adjusted; anything else is reported as not found.
        """
        direction = PriorityDirection(direction)
        async with self._store.lock(entry_id):
            entry = self._store.get(entry_id)
            if entry is None:
                raise NotFoundError(f"Waitlist entry {entry_id} not found", entry_id=str(entry_id))

            status = entry.effective_status(self._clock())
            if not status.is_actionable:
                raise NotFoundError(
                    f"Waitlist entry {entry_id} is {status.value}; priority can no longer change",
                    entry_id=str(entry_id),
                )

            if direction == PriorityDirection.UP:
                new_priority = entry.priority + 1
            else:
                new_priority = max(0, entry.priority - 1)

            if new_priority != entry.priority:
                entry = entry.model_copy(update={"priority": new_priority})
                self._store.save(entry)
                logger.info(f"Waitlist entry {entry_id} priority {direction.value} -> {new_priority}")
            return entry

    def stars(self, priority: int) -> int:
        """Number of priority stars to display."""
        return min(priority, self._settings.priority_display_cap)

    def band(self, priority: int) -> str:
        if priority >= self._settings.priority_high_threshold:
            return "high"
        if priority >= self._settings.priority_medium_threshold:
            return "medium"
        return "low"
