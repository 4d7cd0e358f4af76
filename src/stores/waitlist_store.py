"""
Waitlist Store - entries of clients waiting for an opening.
"""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from loguru import logger

from src.errors import NotFoundError, ValidationError
from src.models.waitlist import WaitlistEntry, WaitlistStatus
from src.stores.locks import KeyedLock


class WaitlistStore:
    """
    In-memory waitlist store.

    Reads hand out copies so callers work on a consistent snapshot; writes
    go through :meth:`save`, called by the ranker and the coordinator while
    they hold the entry lock.
    """

    def __init__(self):
        self._entries: Dict[UUID, WaitlistEntry] = {}
        self.lock = KeyedLock()

    # Public accessor for testing
    @property
    def entries(self) -> Dict[UUID, WaitlistEntry]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, entry: WaitlistEntry) -> WaitlistEntry:
        if entry.id in self._entries:
            raise ValidationError(f"Waitlist entry {entry.id} already exists")
        self._entries[entry.id] = entry.model_copy(deep=True)
        logger.info(
            f"Waitlist entry {entry.id} added for client {entry.client_ref} "
            f"({entry.treatment.name}, preferred {entry.preferred_date.isoformat()})"
        )
        return entry

    def get(self, entry_id: UUID) -> Optional[WaitlistEntry]:
        entry = self._entries.get(entry_id)
        return entry.model_copy(deep=True) if entry is not None else None

    def require(self, entry_id: UUID) -> WaitlistEntry:
        entry = self.get(entry_id)
        if entry is None:
            raise NotFoundError(f"Waitlist entry {entry_id} not found", entry_id=str(entry_id))
        return entry

    def save(self, entry: WaitlistEntry) -> WaitlistEntry:
        if entry.id not in self._entries:
            raise NotFoundError(f"Waitlist entry {entry.id} not found", entry_id=str(entry.id))
        self._entries[entry.id] = entry.model_copy(deep=True)
        return entry

    def list(
        self,
        now: datetime,
        status: Optional[WaitlistStatus] = None,
        treatment_id: Optional[str] = None,
    ) -> List[WaitlistEntry]:
        """
        Entries with lazy expiry applied, optionally filtered.

        The returned copies already carry their effective status.
        """
        results = []
        for stored in self._entries.values():
            effective = stored.effective_status(now)
            if status is not None and effective != status:
                continue
            if treatment_id is not None and stored.treatment.id != treatment_id:
                continue
            entry = stored.model_copy(deep=True)
            if effective != entry.status:
                entry.status = effective
            results.append(entry)
        return results

    def overdue(self, now: datetime) -> List[WaitlistEntry]:
        """Non-terminal entries whose expiry passed but was not yet persisted."""
        return [
            entry.model_copy(deep=True)
            for entry in self._entries.values()
            if not entry.status.is_terminal and entry.is_past_expiry(now)
        ]
