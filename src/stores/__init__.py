"""
Storage layer for the Clinic Waitlist service.
"""

from .booking_ledger import BookingLedger
from .locks import KeyedLock
from .slot_catalog import SlotCatalog
from .waitlist_store import WaitlistStore

__all__ = [
    "BookingLedger",
    "KeyedLock",
    "SlotCatalog",
    "WaitlistStore",
]
