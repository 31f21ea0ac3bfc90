"""Task, sharing and chat models."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.ext.associationproxy import AssociationProxy, association_proxy
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskme.db.base import BaseModel, utcnow

TASK_TYPES = ("meeting", "work", "travel", "family", "shopping", "company", "outing", "gathering", "other")
TASK_PRIORITIES = ("high", "medium", "low")
TASK_STATUSES = ("in_progress", "delayed", "completed", "cancelled")
REPEAT_TYPES = ("none", "daily", "weekly", "monthly")


class Task(BaseModel):
    """A schedulable item owned by one user and optionally shared with others."""

    __tablename__ = "tasks"

    # Basic info
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    details: Mapped[str] = mapped_column(Text, nullable=False, default="")
    task_type: Mapped[str] = mapped_column(
        "type", String(50), nullable=False, default="other"
    )  # meeting, work, travel, family, shopping, company, outing, gathering, other
    priority: Mapped[str] = mapped_column(
        String(20), nullable=False, default="medium"
    )  # high, medium, low

    # Scheduling. ISO-8601 UTC string; string order is chronological order.
    date_time: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    reminder_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    repeat: Mapped[str] = mapped_column(
        String(20), nullable=False, default="none"
    )  # none, daily, weekly, monthly

    # Progress
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="in_progress"
    )  # in_progress, delayed, completed, cancelled
    reminder_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Ownership and sharing
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    participants: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Relationships
    shares: Mapped[list["TaskShare"]] = relationship(
        "TaskShare", back_populates="task", lazy="selectin",
        cascade="all, delete-orphan", passive_deletes=True,
        order_by="TaskShare.created_at",
    )

    shared_with: AssociationProxy[list[UUID]] = association_proxy(
        "shares", "user_id", creator=lambda user_id: TaskShare(user_id=user_id)
    )

    @property
    def participant_ids(self) -> list[UUID]:
        """Participants as UUIDs, in insertion order."""
        return [UUID(str(p)) for p in (self.participants or [])]

    def has_member(self, user_id: UUID) -> bool:
        """Owner, shared-with user or participant."""
        return (
            self.user_id == user_id
            or user_id in self.shared_with
            or user_id in self.participant_ids
        )

    def audience(self) -> set[UUID]:
        """Everyone whose task list shows this task."""
        return {self.user_id, *self.shared_with}

    def __repr__(self) -> str:
        try:
            return f"<Task {self.title[:30]}>"
        except Exception:
            try:
                return f"<Task id={self.id}>"
            except Exception:
                return "<Task detached>"


class TaskShare(BaseModel):
    """Membership row backing ``Task.shared_with``."""

    __tablename__ = "task_shares"
    __table_args__ = (
        UniqueConstraint("task_id", "user_id", name="uq_task_share_task_user"),
    )

    task_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    task: Mapped["Task"] = relationship("Task", back_populates="shares")

    def __repr__(self) -> str:
        return f"<TaskShare task={self.task_id} user={self.user_id}>"


class Message(BaseModel):
    """Chat entry attached to a task."""

    __tablename__ = "messages"

    task_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sender_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Snapshot of the sender's display name at send time
    sender_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Message {self.id} on task={self.task_id}>"
