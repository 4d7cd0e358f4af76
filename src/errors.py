"""
Error taxonomy for the waitlist and reservation engine.

Every error carries a machine-readable ``error_code`` and the HTTP status
the API layer answers with.
"""

from typing import Any, Dict


class WaitlistError(Exception):
    """Base class for all waitlist engine errors."""

    error_code: str = "WAITLIST_ERROR"
    status_code: int = 500

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for an API error body."""
        return {
            "success": False,
            "message": self.message,
            "error_code": self.error_code,
        }


class ValidationError(WaitlistError):
    """Malformed or stale reference, or entry not in an actionable status."""

    error_code = "VALIDATION_ERROR"
    status_code = 422


class NotFoundError(ValidationError):
    """Unknown entry, slot, hold or booking id."""

    error_code = "NOT_FOUND"
    status_code = 404


class ExpiredEntryError(ValidationError):
    """Operation attempted on an entry past its expiry time."""

    error_code = "ENTRY_EXPIRED"
    status_code = 410


class SlotUnavailableError(WaitlistError):
    """Lost a race for a slot. Recompute candidates and pick another one."""

    error_code = "SLOT_UNAVAILABLE"
    status_code = 409

    def __init__(self, message: str = "Someone else just took that slot.", **details: Any):
        super().__init__(message, **details)


class NotificationError(WaitlistError):
    """The external notification service rejected or failed the request."""

    error_code = "NOTIFICATION_FAILED"
    status_code = 502
