"""Direct push dispatch endpoint."""

from uuid import UUID

import structlog
from fastapi import APIRouter
from pydantic import BaseModel, Field

from taskme.api.deps import Gateway
from taskme.api.v1.auth import CurrentUser
from taskme.db.session import DBSession
from taskme.services.push import PushNotifier

router = APIRouter()
logger = structlog.get_logger()


class PushRequest(BaseModel):
    """Push addressed to a user; their latest registered token is used."""

    user_id: UUID
    title: str = Field(..., max_length=200)
    body: str = Field(..., max_length=1000)
    data: dict[str, str] = Field(default_factory=dict)


class PushResponse(BaseModel):
    success: bool
    message_id: str | None = None


@router.post("/send", response_model=PushResponse)
async def send_push(
    request: PushRequest,
    db: DBSession,
    current_user: CurrentUser,
    gateway: Gateway,
) -> PushResponse:
    """Send a push to another user.

    Responds 404 when the recipient never registered a token and 502 when
    the gateway rejects the message.
    """
    message_id = await PushNotifier(db, gateway).notify_user(
        request.user_id, request.title, request.body, request.data
    )
    logger.info(
        "push_sent_on_request",
        sender_id=str(current_user.id),
        recipient_id=str(request.user_id),
    )
    return PushResponse(success=True, message_id=message_id)
