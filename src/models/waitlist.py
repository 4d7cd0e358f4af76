"""
Waitlist data models.
"""

from datetime import date as DateType
from datetime import datetime
from datetime import time as TimeType
from enum import Enum
from typing import Dict, FrozenSet, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator


class WaitlistStatus(str, Enum):
    """Status of a waitlist entry."""

    WAITING = "waiting"
    CONTACTED = "contacted"
    BOOKED = "booked"
    EXPIRED = "expired"
    REMOVED = "removed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_actionable(self) -> bool:
        """Whether the entry can still be contacted, re-prioritized or booked."""
        return self in ACTIONABLE_STATUSES

    def can_transition_to(self, target: "WaitlistStatus") -> bool:
        return target in ALLOWED_TRANSITIONS[self]


TERMINAL_STATUSES: FrozenSet[WaitlistStatus] = frozenset(
    {WaitlistStatus.BOOKED, WaitlistStatus.EXPIRED, WaitlistStatus.REMOVED}
)

ACTIONABLE_STATUSES: FrozenSet[WaitlistStatus] = frozenset(
    {WaitlistStatus.WAITING, WaitlistStatus.CONTACTED}
)

# contacted -> waiting only happens through an explicit reopen or the
# unanswered-contact revert in the sweep.
ALLOWED_TRANSITIONS: Dict[WaitlistStatus, FrozenSet[WaitlistStatus]] = {
    WaitlistStatus.WAITING: frozenset(
        {
            WaitlistStatus.CONTACTED,
            WaitlistStatus.BOOKED,
            WaitlistStatus.EXPIRED,
            WaitlistStatus.REMOVED,
        }
    ),
    WaitlistStatus.CONTACTED: frozenset(
        {
            WaitlistStatus.CONTACTED,
            WaitlistStatus.WAITING,
            WaitlistStatus.BOOKED,
            WaitlistStatus.EXPIRED,
            WaitlistStatus.REMOVED,
        }
    ),
    WaitlistStatus.BOOKED: frozenset(),
    WaitlistStatus.EXPIRED: frozenset(),
    WaitlistStatus.REMOVED: frozenset(),
}


class ContactChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"


class PriorityDirection(str, Enum):
    UP = "up"
    DOWN = "down"


class TreatmentRef(BaseModel):
    """Read-only reference to the requested treatment."""

    id: str = Field(min_length=1)
    name: str
    duration_minutes: int = Field(gt=0)
    price: Optional[str] = None

    model_config = {"frozen": True}


class ClientContact(BaseModel):
    """
    Contact details used when notifying a client about a match.
    """

    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("first_name", "last_name", "email", "phone", mode="before")
    @classmethod
    def strip_whitespace(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @property
    def full_name(self) -> Optional[str]:
        """Get the full name if both parts are available."""
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name or self.last_name


class WaitlistEntry(BaseModel):
    """
    A client's request to be booked into the next compatible opening.

    ``status`` holds the persisted state; readers should go through
    :meth:`effective_status`, which reports an entry past ``expires_at`` as
    expired even before the sweep has persisted it.
    """

    id: UUID = Field(default_factory=uuid4, frozen=True)
    client_ref: str = Field(min_length=1)
    client: Optional[ClientContact] = None
    treatment: TreatmentRef
    preferred_date: DateType
    alternative_dates: List[DateType] = Field(default_factory=list)
    preferred_time: Optional[TimeType] = None
    flexible_timing: bool = False
    priority: int = Field(default=0, ge=0)
    status: WaitlistStatus = WaitlistStatus.WAITING
    notified_at: Optional[datetime] = None
    expires_at: datetime
    created_at: datetime = Field(default_factory=datetime.now, frozen=True)

    model_config = {"validate_assignment": True}

    def is_past_expiry(self, now: datetime) -> bool:
        return now > self.expires_at

    def effective_status(self, now: datetime) -> WaitlistStatus:
        """Persisted status, with lazy expiry applied to non-terminal entries."""
        if not self.status.is_terminal and self.is_past_expiry(now):
            return WaitlistStatus.EXPIRED
        return self.status

    def wait_days(self, now: datetime) -> int:
        """Whole days since the request was made."""
        return max(0, (now.date() - self.created_at.date()).days)

    def wait_time_label(self, now: datetime) -> str:
        days = self.wait_days(now)
        if days == 0:
            return "Today"
        if days == 1:
            return "1 day"
        return f"{days} days"
