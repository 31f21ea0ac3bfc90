"""Push notification dispatch through Firebase Cloud Messaging."""

from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import UUID

import httpx
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskme.config import Settings, get_settings
from taskme.exceptions import PushDeliveryError, PushTokenMissingError
from taskme.models.user import User

logger = structlog.get_logger()


@dataclass
class PushMessage:
    """A single push addressed to one device token."""

    token: str
    title: str
    body: str
    data: dict[str, str] = field(default_factory=dict)


class PushGateway(Protocol):
    """Anything that can deliver a ``PushMessage``."""

    async def send(self, message: PushMessage) -> str | None:
        ...


def build_fcm_payload(message: PushMessage) -> dict[str, Any]:
    """Build an FCM HTTP v1 request body.

    High priority on every platform so reminders show up while the app is
    in the background.
    """
    return {
        "message": {
            "token": message.token,
            "notification": {
                "title": message.title,
                "body": message.body,
            },
            "data": {str(k): str(v) for k, v in message.data.items()},
            "android": {
                "priority": "high",
                "notification": {"sound": "default"},
            },
            "apns": {
                "headers": {"apns-priority": "10"},
                "payload": {"aps": {"sound": "default", "badge": 1}},
            },
            "webpush": {
                "headers": {"Urgency": "high"},
                "notification": {
                    "requireInteraction": True,
                    "vibrate": [200, 100, 200],
                },
            },
        }
    }


class FCMPushGateway:
    """Sends pushes with the FCM HTTP v1 API."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self.url = settings.fcm_endpoint.format(project_id=settings.fcm_project_id)
        self.access_token = settings.fcm_access_token.get_secret_value()
        self.timeout = settings.fcm_timeout_seconds
        self._client = client

    async def send(self, message: PushMessage) -> str | None:
        """Deliver one message.

        Returns:
            The FCM message name on success

        Raises:
            PushDeliveryError: on transport errors and non-2xx responses
        """
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json; UTF-8",
        }
        payload = build_fcm_payload(message)

        try:
            if self._client is not None:
                response = await self._client.post(self.url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.error("fcm_timeout", url=self.url)
            raise PushDeliveryError(reason="timeout") from e
        except httpx.HTTPStatusError as e:
            logger.error(
                "fcm_rejected",
                status=e.response.status_code,
                body=e.response.text[:500],
            )
            raise PushDeliveryError(status=e.response.status_code, reason=e.response.text[:500]) from e
        except httpx.HTTPError as e:
            logger.error("fcm_unreachable", error=str(e))
            raise PushDeliveryError(reason=str(e)) from e

        name = response.json().get("name")
        logger.info("fcm_sent", message_name=name)
        return name


class LoggingPushGateway:
    """Stand-in used when FCM credentials are not configured."""

    async def send(self, message: PushMessage) -> str | None:
        logger.info(
            "push_logged",
            title=message.title,
            body=message.body,
            data=message.data,
        )
        return None


_gateway: PushGateway | None = None


def get_push_gateway() -> PushGateway:
    """Dependency returning the process-wide push gateway."""
    global _gateway
    if _gateway is None:
        settings = get_settings()
        if settings.push_enabled:
            _gateway = FCMPushGateway(settings)
        else:
            logger.warning("fcm_not_configured_using_logging_gateway")
            _gateway = LoggingPushGateway()
    return _gateway


class PushNotifier:
    """Resolves a user's token and pushes to it."""

    def __init__(self, db: AsyncSession, gateway: PushGateway):
        self.db = db
        self.gateway = gateway

    async def resolve_token(self, user_id: UUID) -> str | None:
        result = await self.db.execute(select(User.fcm_token).where(User.id == user_id))
        token = result.scalar_one_or_none()
        return token or None

    async def notify_user(
        self,
        user_id: UUID,
        title: str,
        body: str,
        data: dict[str, str] | None = None,
    ) -> str | None:
        """Push to a user's registered device.

        Raises:
            PushTokenMissingError: if the user has no token
            PushDeliveryError: if the gateway fails
        """
        token = await self.resolve_token(user_id)
        if not token:
            raise PushTokenMissingError()
        return await self.gateway.send(
            PushMessage(token=token, title=title, body=body, data=data or {})
        )
