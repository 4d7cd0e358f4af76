"""
Services layer for the Clinic Waitlist service.
"""

from .matching import CandidateSlots, MatchingEngine, find_candidates
from .notification import (
    HttpNotificationDispatcher,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    NotificationRequest,
)
from .ranking import PriorityRanker, rank
from .reservation import ReservationCoordinator
from .waitlist import SweepReport, WaitlistService, WaitlistStats

__all__ = [
    "CandidateSlots",
    "MatchingEngine",
    "find_candidates",
    "HttpNotificationDispatcher",
    "LoggingNotificationDispatcher",
    "NotificationDispatcher",
    "NotificationRequest",
    "PriorityRanker",
    "rank",
    "ReservationCoordinator",
    "SweepReport",
    "WaitlistService",
    "WaitlistStats",
]
