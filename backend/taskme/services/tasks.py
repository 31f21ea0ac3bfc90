"""Task service: creation, edits, status changes and the owned/shared queries."""

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskme.config import get_settings
from taskme.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from taskme.models.task import TASK_STATUSES, Message, Task, TaskShare
from taskme.services.changes import ChangeFeed, get_change_feed, messages_topic, tasks_topic
from taskme.utils.datetimes import next_occurrence, normalize_date_time

logger = structlog.get_logger()

EDITABLE_FIELDS = ("title", "details", "task_type", "priority", "date_time", "reminder_minutes", "repeat")


def clean_date_time(value: Any) -> str:
    """Normalize user input, mapping parse failures to a validation error."""
    try:
        return normalize_date_time(value)
    except (TypeError, ValueError) as e:
        raise ValidationError("invalid_date_time") from e


class TaskService:
    """Service for task lifecycle operations."""

    def __init__(self, db: AsyncSession, feed: ChangeFeed | None = None):
        self.db = db
        self.feed = feed or get_change_feed()

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get_task(self, task_id: UUID) -> Task | None:
        result = await self.db.execute(select(Task).where(Task.id == task_id))
        return result.scalar_one_or_none()

    async def get_accessible(self, task_id: UUID, user_id: UUID) -> Task:
        """Fetch a task the user owns, was shared or participates in.

        Raises:
            NotFoundError: if the task does not exist
            PermissionDeniedError: if the user is not a member
        """
        task = await self.get_task(task_id)
        if task is None:
            raise NotFoundError("task_not_found")
        if not task.has_member(user_id):
            raise PermissionDeniedError("not_task_participant")
        return task

    async def get_owned(self, task_id: UUID, user_id: UUID) -> Task:
        """Fetch a task and require the user to own it."""
        task = await self.get_task(task_id)
        if task is None:
            raise NotFoundError("task_not_found")
        if task.user_id != user_id:
            raise PermissionDeniedError("not_task_owner")
        return task

    async def list_owned(self, user_id: UUID) -> list[Task]:
        """Tasks owned by the user, ascending by date-time."""
        result = await self.db.execute(
            select(Task).where(Task.user_id == user_id).order_by(Task.date_time.asc())
        )
        return list(result.scalars().all())

    async def list_shared(self, user_id: UUID) -> list[Task]:
        """Tasks whose ``shared_with`` contains the user, ascending by date-time."""
        result = await self.db.execute(
            select(Task)
            .join(TaskShare, TaskShare.task_id == Task.id)
            .where(TaskShare.user_id == user_id)
            .order_by(Task.date_time.asc())
        )
        return list(result.scalars().unique().all())

    async def _has_task_at(
        self, owner_id: UUID, date_time: str, exclude_id: UUID | None = None
    ) -> bool:
        query = select(Task.id).where(Task.user_id == owner_id, Task.date_time == date_time)
        if exclude_id is not None:
            query = query.where(Task.id != exclude_id)
        result = await self.db.execute(query.limit(1))
        return result.first() is not None

    # =========================================================================
    # Writes
    # =========================================================================

    async def create_task(
        self,
        owner_id: UUID,
        title: str,
        date_time: Any,
        details: str = "",
        task_type: str = "other",
        priority: str = "medium",
        reminder_minutes: int | None = None,
        repeat: str = "none",
    ) -> Task:
        """Create a task for ``owner_id``.

        Raises:
            ValidationError: empty title, bad date-time, or another task of the
                owner already at the same date-time
        """
        title = (title or "").strip()
        if not title:
            raise ValidationError("title_required")

        normalized = clean_date_time(date_time)
        if await self._has_task_at(owner_id, normalized):
            raise ValidationError("duplicate_task_time")

        if reminder_minutes is None:
            reminder_minutes = get_settings().default_reminder_minutes

        task = Task(
            title=title,
            details=details or "",
            task_type=task_type,
            priority=priority,
            date_time=normalized,
            reminder_minutes=reminder_minutes,
            repeat=repeat or "none",
            completed=False,
            status="in_progress",
            reminder_sent=False,
            user_id=owner_id,
            participants=[],
            shares=[],
        )
        self.db.add(task)
        await self.db.commit()

        self.publish(task, "task_created")
        logger.info(
            "task_created",
            task_id=str(task.id),
            user_id=str(owner_id),
            date_time=normalized,
        )
        return task

    async def update_task(self, task_id: UUID, user_id: UUID, **changes: Any) -> Task:
        """Apply an owner edit.

        Moving the date-time or changing the lead time re-arms the reminder.
        """
        task = await self.get_owned(task_id, user_id)

        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Not editable: {sorted(unknown)}")

        if "title" in changes:
            title = (changes["title"] or "").strip()
            if not title:
                raise ValidationError("title_required")
            changes["title"] = title

        rearm = False
        if "date_time" in changes:
            normalized = clean_date_time(changes["date_time"])
            if normalized != task.date_time:
                if await self._has_task_at(task.user_id, normalized, exclude_id=task.id):
                    raise ValidationError("duplicate_task_time")
                rearm = True
            changes["date_time"] = normalized
        if "reminder_minutes" in changes and changes["reminder_minutes"] != task.reminder_minutes:
            rearm = True

        for field, value in changes.items():
            setattr(task, field, value)
        if rearm:
            task.reminder_sent = False

        await self.db.commit()

        self.publish(task, "task_updated")
        logger.info(
            "task_updated",
            task_id=str(task.id),
            fields=sorted(changes),
            reminder_rearmed=rearm,
        )
        return task

    async def set_status(
        self, task_id: UUID, user_id: UUID, status: str
    ) -> tuple[Task, Task | None]:
        """Change a task's status; owner and participants may do this.

        Completing a repeating task creates its next occurrence, which is
        returned alongside the task.
        """
        if status not in TASK_STATUSES:
            raise ValidationError("invalid_status")

        task = await self.get_accessible(task_id, user_id)
        was_completed = task.completed

        task.status = status
        task.completed = status == "completed"
        await self.db.commit()

        self.publish(task, "task_status_changed")
        logger.info(
            "task_status_changed",
            task_id=str(task.id),
            user_id=str(user_id),
            status=status,
        )

        following = None
        if task.completed and not was_completed:
            following = await self._spawn_next_occurrence(task)
        return task, following

    async def _spawn_next_occurrence(self, task: Task) -> Task | None:
        date_time = next_occurrence(task.date_time, task.repeat)
        if date_time is None:
            return None
        if await self._has_task_at(task.user_id, date_time):
            logger.info(
                "recurrence_already_scheduled",
                task_id=str(task.id),
                date_time=date_time,
            )
            return None

        following = Task(
            title=task.title,
            details=task.details,
            task_type=task.task_type,
            priority=task.priority,
            date_time=date_time,
            reminder_minutes=task.reminder_minutes,
            repeat=task.repeat,
            completed=False,
            status="in_progress",
            reminder_sent=False,
            user_id=task.user_id,
            participants=list(task.participants or []),
            shares=[TaskShare(user_id=user_id) for user_id in task.shared_with],
        )
        self.db.add(following)
        await self.db.commit()

        self.publish(following, "task_created")
        logger.info(
            "recurrence_created",
            task_id=str(task.id),
            next_task_id=str(following.id),
            repeat=task.repeat,
            date_time=date_time,
        )
        return following

    async def delete_task(self, task_id: UUID, user_id: UUID) -> None:
        """Remove a task with its chat and share rows. Owner only."""
        task = await self.get_owned(task_id, user_id)
        audience = task.audience()

        await self.db.execute(delete(Message).where(Message.task_id == task.id))
        await self.db.delete(task)
        await self.db.commit()

        self.feed.publish_many((tasks_topic(uid) for uid in audience), "task_deleted")
        self.feed.publish(messages_topic(task_id), "task_deleted")
        logger.info("task_deleted", task_id=str(task_id), user_id=str(user_id))

    def publish(self, task: Task, reason: str) -> None:
        """Signal every task list the task appears in."""
        self.feed.publish_many((tasks_topic(uid) for uid in task.audience()), reason)
