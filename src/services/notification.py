"""
Notification Dispatcher - client for the external messaging service.

Sending email and SMS is not done here: the dispatcher hands a
notification request to the messaging service and reports whether it was
accepted. Failures are surfaced to the caller, never retried.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

import httpx
from loguru import logger
from pydantic import BaseModel, Field

from src.config import Settings, get_settings
from src.errors import NotificationError
from src.models.booking import AvailabilitySlot, SlotSnapshot
from src.models.waitlist import ContactChannel, WaitlistEntry


class NotificationRequest(BaseModel):
    """Request to contact a client about a matching opening."""

    entry_id: UUID
    client_ref: str
    channel: ContactChannel
    recipient: Optional[str] = Field(default=None, description="Email address or phone number")
    message: str
    slot: Optional[SlotSnapshot] = None
    requested_at: datetime = Field(default_factory=datetime.now)


def build_message(
    entry: WaitlistEntry,
    channel: ContactChannel,
    slot: Optional[AvailabilitySlot] = None,
) -> str:
    """Default message text for a waitlist offer."""
    first_name = entry.client.first_name if entry.client and entry.client.first_name else "there"
    if channel == ContactChannel.SMS:
        text = f"Hi {first_name}, we have availability for your treatment. Call us to book!"
    else:
        text = (
            f"Hi {first_name}, we have availability for your {entry.treatment.name} "
            f"treatment. Please contact us to confirm."
        )
    if slot is not None:
        text += f" Next opening: {slot.formatted_time}."
    return text


def resolve_recipient(entry: WaitlistEntry, channel: ContactChannel) -> Optional[str]:
    if entry.client is None:
        return None
    return entry.client.phone if channel == ContactChannel.SMS else entry.client.email


class NotificationDispatcher:
    """Base dispatcher. Subclasses deliver the request somewhere."""

    async def dispatch(self, request: NotificationRequest) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        """Release any resources held by the dispatcher."""


class LoggingNotificationDispatcher(NotificationDispatcher):
    """
    Dispatcher that only logs the request.

    Used when no messaging service URL is configured.
    """

    async def dispatch(self, request: NotificationRequest) -> None:
        logger.info("=" * 60)
        logger.info("WAITLIST NOTIFICATION")
        logger.info("=" * 60)
        logger.info(f"Entry: {request.entry_id}")
        logger.info(f"Client: {request.client_ref}")
        logger.info(f"Channel: {request.channel.value} -> {request.recipient or 'unknown'}")
        logger.info(f"Message: {request.message}")
        if request.slot is not None:
            logger.info(
                f"Slot: {request.slot.date.isoformat()} {request.slot.time.strftime('%H:%M')} "
                f"with {request.slot.practitioner_name or request.slot.resource_ref}"
            )
        logger.info("=" * 60)


class HttpNotificationDispatcher(NotificationDispatcher):
    """
    Async client for the messaging API.

    Implements connection pooling for efficient concurrent requests.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client with connection pooling."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.settings.notification_api_url,
                timeout=httpx.Timeout(self.settings.notification_api_timeout),
                limits=httpx.Limits(
                    max_connections=self.settings.connection_pool_size,
                    max_keepalive_connections=self.settings.connection_pool_size // 2,
                ),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def dispatch(self, request: NotificationRequest) -> None:
        """
        Post the notification request to the messaging API.

        Raises:
            NotificationError: The service answered with an error status or
                could not be reached.
        """
        client = await self._get_client()

        try:
            response = await client.post(
                "/api/v1/notifications",
                json=request.model_dump(mode="json"),
            )
            response.raise_for_status()
            logger.info(
                f"Notification for entry {request.entry_id} accepted via {request.channel.value}"
            )

        except httpx.HTTPStatusError as e:
            logger.error(f"Messaging API rejected notification: {e}")
            raise NotificationError(
                f"Messaging service answered {e.response.status_code}",
                entry_id=str(request.entry_id),
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Request error sending notification: {e}")
            raise NotificationError(
                "Messaging service unreachable", entry_id=str(request.entry_id)
            ) from e


# Singleton instance for reuse
_notification_dispatcher: Optional[NotificationDispatcher] = None


def get_notification_dispatcher() -> NotificationDispatcher:
    """Get the singleton dispatcher, HTTP-backed when a URL is configured."""
    global _notification_dispatcher
    if _notification_dispatcher is None:
        settings = get_settings()
        if settings.notification_api_url:
            _notification_dispatcher = HttpNotificationDispatcher(settings)
        else:
            _notification_dispatcher = LoggingNotificationDispatcher()
    return _notification_dispatcher
