"""Task chat endpoints."""

from uuid import UUID

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from taskme.api.deps import Feed, Gateway
from taskme.api.v1.auth import CurrentUser
from taskme.db.session import DBSession
from taskme.schemas import MessageRead
from taskme.services.messaging import MessageService

router = APIRouter()


class MessageCreate(BaseModel):
    content: str = Field(..., max_length=5000)


class MarkReadResponse(BaseModel):
    updated: int


@router.get("/tasks/{task_id}/messages", response_model=list[MessageRead])
async def list_messages(
    task_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
) -> list[MessageRead]:
    """Chat of a task, oldest first."""
    messages = await MessageService(db).list_messages(task_id, current_user.id)
    return [MessageRead.from_message(m) for m in messages]


@router.post(
    "/tasks/{task_id}/messages",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    task_id: UUID,
    message_data: MessageCreate,
    db: DBSession,
    current_user: CurrentUser,
    gateway: Gateway,
    feed: Feed,
) -> MessageRead:
    """Post to a task's chat and push the other members."""
    message = await MessageService(db, gateway, feed).send_message(
        task_id, current_user, message_data.content
    )
    return MessageRead.from_message(message)


@router.post("/tasks/{task_id}/messages/read", response_model=MarkReadResponse)
async def mark_messages_read(
    task_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
    feed: Feed,
) -> MarkReadResponse:
    updated = await MessageService(db, feed=feed).mark_read(task_id, current_user.id)
    return MarkReadResponse(updated=updated)


@router.delete("/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(
    message_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
    feed: Feed,
) -> None:
    """Delete a single message. Its sender or the task owner may do this."""
    await MessageService(db, feed=feed).delete_message(message_id, current_user.id)
