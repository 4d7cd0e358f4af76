"""
Data models for the Clinic Waitlist service.
"""

from .booking import AvailabilitySlot, Booking, BookingStatus, SlotHold, SlotSnapshot
from .waitlist import (
    ClientContact,
    ContactChannel,
    PriorityDirection,
    TreatmentRef,
    WaitlistEntry,
    WaitlistStatus,
)

__all__ = [
    "AvailabilitySlot",
    "Booking",
    "BookingStatus",
    "SlotHold",
    "SlotSnapshot",
    "ClientContact",
    "ContactChannel",
    "PriorityDirection",
    "TreatmentRef",
    "WaitlistEntry",
    "WaitlistStatus",
]
