"""Notification adapter for Context Reminders.

Scheduled alerts are keyed by reminder ID so they can be replaced or
cancelled later. Immediate alerts carry no ID: they report matches the
sweep has already detected.
"""

from datetime import datetime
from typing import Optional

import httpx

from config import settings
from logger_config import setup_logger

logger = setup_logger(__name__, 'notifications.log')


class NotificationError(Exception):
    """Raised when the notification gateway rejects or cannot be reached."""


class NotificationAdapter:
    """Interface of the OS/push notification service."""

    async def schedule_at(
        self,
        user_id: str,
        reminder_id: str,
        when: datetime,
        title: str,
        body: str
    ) -> None:
        """Schedule an alert at `when`, replacing any schedule under reminder_id."""
        raise NotImplementedError

    async def fire_now(self, user_id: str, title: str, body: str) -> None:
        """Deliver an alert immediately."""
        raise NotImplementedError

    async def cancel(self, reminder_id: str) -> None:
        """Cancel the scheduled alert under reminder_id, if any."""
        raise NotImplementedError


class PushGatewayNotifier(NotificationAdapter):
    """Notification adapter backed by an HTTP push gateway.

    Gateway endpoints:
        PUT    /notifications/scheduled/{id}   upsert a scheduled alert
        DELETE /notifications/scheduled/{id}   cancel a scheduled alert
        POST   /notifications/send             deliver now
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or settings.NOTIFICATION_API_URL).rstrip('/')
        self.timeout = timeout or settings.NOTIFICATION_TIMEOUT
        self.transport = transport

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> None:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(method, url, json=payload)
        except httpx.TimeoutException as e:
            logger.error(f"Timeout calling notification gateway {method} {path}")
            raise NotificationError(f"Notification gateway timed out: {method} {path}") from e
        except httpx.RequestError as e:
            logger.error(f"Network error calling notification gateway {method} {path}: {str(e)}")
            raise NotificationError(f"Notification gateway unreachable: {str(e)}") from e

        # A cancel for an unknown ID is not an error
        if method == 'DELETE' and response.status_code == 404:
            return

        if response.status_code >= 300:
            logger.error(
                f"Notification gateway {method} {path} failed. "
                f"Status: {response.status_code}, Response: {response.text}"
            )
            raise NotificationError(
                f"Notification gateway returned {response.status_code} for {method} {path}"
            )

    async def schedule_at(self, user_id, reminder_id, when, title, body):
        logger.info(f"Scheduling notification {reminder_id} for user {user_id} at {when.isoformat()}")
        await self._request('PUT', f"/notifications/scheduled/{reminder_id}", {
            "user_id": user_id,
            "trigger_at": when.isoformat(),
            "title": title,
            "body": body
        })

    async def fire_now(self, user_id, title, body):
        logger.info(f"Sending notification to user {user_id}: '{title}'")
        await self._request('POST', "/notifications/send", {
            "user_id": user_id,
            "title": title,
            "body": body
        })

    async def cancel(self, reminder_id):
        logger.info(f"Cancelling notification {reminder_id}")
        await self._request('DELETE', f"/notifications/scheduled/{reminder_id}")
