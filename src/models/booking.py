"""
Slot and booking data models.
"""

from datetime import date as DateType
from datetime import datetime, timedelta
from datetime import time as TimeType
from enum import Enum
from typing import Optional, Tuple
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class BookingStatus(str, Enum):
    """Lifecycle of a booking created by the reservation coordinator."""

    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class AvailabilitySlot(BaseModel):
    """
    Represents an open appointment slot published by a practitioner calendar.

    Slots are immutable once published; they leave the catalog when a
    reservation consumes them or when their start time passes.
    """

    id: UUID = Field(default_factory=uuid4, description="Unique slot identifier")
    date: DateType = Field(description="Calendar date of the slot")
    time: TimeType = Field(description="Start time of the slot")
    duration_minutes: int = Field(gt=0, description="Length of the opening in minutes")
    resource_ref: str = Field(min_length=1, description="Practitioner or room identifier")
    practitioner_name: Optional[str] = Field(default=None, description="Display name")

    model_config = {"frozen": True}

    @property
    def start(self) -> datetime:
        """Start of the slot as a datetime."""
        return datetime.combine(self.date, self.time)

    @property
    def end(self) -> datetime:
        """End of the slot as a datetime."""
        return self.start + timedelta(minutes=self.duration_minutes)

    @property
    def claim_key(self) -> Tuple[str, DateType, TimeType]:
        """Uniqueness key among confirmed bookings."""
        return (self.resource_ref, self.date, self.time)

    @property
    def formatted_time(self) -> str:
        """Get human-readable time format."""
        return f"{self.start.strftime('%A, %b %d, %Y')} at {self.time.strftime('%H:%M')}"

    def overlaps(self, other: "AvailabilitySlot | SlotSnapshot") -> bool:
        """Whether both slots use the same resource over intersecting time ranges."""
        if self.resource_ref != other.resource_ref:
            return False
        return self.start < other.end and other.start < self.end


class SlotSnapshot(BaseModel):
    """
    Slot fields frozen at booking time.

    Later catalog changes cannot rewrite booking history.
    """

    slot_id: UUID
    date: DateType
    time: TimeType
    duration_minutes: int
    resource_ref: str
    practitioner_name: Optional[str] = None

    model_config = {"frozen": True}

    @classmethod
    def from_slot(cls, slot: AvailabilitySlot) -> "SlotSnapshot":
        return cls(
            slot_id=slot.id,
            date=slot.date,
            time=slot.time,
            duration_minutes=slot.duration_minutes,
            resource_ref=slot.resource_ref,
            practitioner_name=slot.practitioner_name,
        )

    @property
    def start(self) -> datetime:
        return datetime.combine(self.date, self.time)

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    @property
    def claim_key(self) -> Tuple[str, DateType, TimeType]:
        return (self.resource_ref, self.date, self.time)

    def overlaps(self, other: "AvailabilitySlot | SlotSnapshot") -> bool:
        if self.resource_ref != other.resource_ref:
            return False
        return self.start < other.end and other.start < self.end


class Booking(BaseModel):
    """
    A confirmed appointment created by the reservation coordinator.
    """

    id: UUID = Field(default_factory=uuid4, description="Booking confirmation ID")
    waitlist_entry_id: Optional[UUID] = Field(
        default=None, description="Originating waitlist entry, if any"
    )
    client_ref: str = Field(description="External client identifier")
    treatment_id: str = Field(description="Booked treatment")
    slot: SlotSnapshot = Field(description="Slot as it was when booked")
    created_at: datetime = Field(default_factory=datetime.now)
    status: BookingStatus = Field(default=BookingStatus.CONFIRMED)

    @property
    def is_confirmed(self) -> bool:
        return self.status == BookingStatus.CONFIRMED


class SlotHold(BaseModel):
    """
    Time-bounded soft reservation of a slot for one waitlist entry.
    """

    id: UUID = Field(default_factory=uuid4, description="Hold identifier")
    slot_id: UUID
    entry_id: UUID
    created_at: datetime = Field(default_factory=datetime.now)
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now
