"""In-app notification inbox model."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from taskme.db.base import BaseModel


class Notification(BaseModel):
    """
    User-facing inbox entry, distinct from push notifications.

    Created as a side effect of another action (sharing a task, ...) and
    only ever mutated to flip ``read``.
    """

    __tablename__ = "notifications"

    # Notification content
    notification_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="Type of notification (task_shared, ...)",
    )
    message: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Localized notification text",
    )

    # Recipient
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Sender (if applicable)
    sender_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Associated task. No FK: the inbox entry outlives a deleted task.
    task_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        index=True,
    )

    # Status
    read: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        index=True,
    )
    read_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Notification {self.notification_type} user={self.user_id}>"
