"""Shared read models.

These are the in-memory snapshots handed to HTTP responses, live task
views and websocket frames. They are detached from the ORM session.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from taskme.models.notification import Notification
from taskme.models.task import Message, Task


class TaskRead(BaseModel):
    """Snapshot of a task as shown in a user's task list."""

    id: UUID
    title: str
    details: str
    type: str
    date_time: str
    priority: str
    reminder_minutes: int
    repeat: str
    completed: bool
    status: str
    reminder_sent: bool
    user_id: UUID
    participants: list[UUID]
    shared_with: list[UUID]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_task(cls, task: Task) -> "TaskRead":
        return cls(
            id=task.id,
            title=task.title,
            details=task.details or "",
            type=task.task_type,
            date_time=task.date_time,
            priority=task.priority,
            reminder_minutes=task.reminder_minutes or 0,
            repeat=task.repeat or "none",
            completed=bool(task.completed),
            status=task.status,
            reminder_sent=bool(task.reminder_sent),
            user_id=task.user_id,
            participants=task.participant_ids,
            shared_with=list(task.shared_with),
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class MessageRead(BaseModel):
    """Chat message."""

    id: UUID
    task_id: UUID
    sender_id: UUID
    sender_name: str
    content: str
    timestamp: datetime
    read: bool

    class Config:
        from_attributes = True

    @classmethod
    def from_message(cls, message: Message) -> "MessageRead":
        return cls.model_validate(message)


class NotificationRead(BaseModel):
    """Inbox entry."""

    id: UUID
    user_id: UUID
    notification_type: str
    message: str
    task_id: UUID | None
    sender_id: UUID | None
    read: bool
    read_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True

    @classmethod
    def from_notification(cls, notification: Notification) -> "NotificationRead":
        return cls.model_validate(notification)
