"""Task endpoints."""

from typing import Literal
from uuid import UUID

import structlog
from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from taskme.api.deps import Feed, SessionFactory
from taskme.api.v1.auth import CurrentUser
from taskme.db.session import DBSession
from taskme.schemas import TaskRead
from taskme.services.task_view import build_task_view, filter_tasks
from taskme.services.tasks import TaskService

router = APIRouter()
logger = structlog.get_logger()

TaskType = Literal["meeting", "work", "travel", "family", "shopping", "company", "outing", "gathering", "other"]
TaskPriority = Literal["high", "medium", "low"]
TaskStatus = Literal["in_progress", "delayed", "completed", "cancelled"]
RepeatType = Literal["none", "daily", "weekly", "monthly"]


class TaskCreate(BaseModel):
    """Schema for creating a task."""

    title: str = Field(..., max_length=500)
    details: str = ""
    type: TaskType = "other"
    date_time: str
    priority: TaskPriority = "medium"
    reminder_minutes: int | None = Field(None, ge=0)
    repeat: RepeatType = "none"


class TaskUpdate(BaseModel):
    """Schema for editing a task. Omitted fields are left unchanged."""

    title: str | None = Field(None, max_length=500)
    details: str | None = None
    type: TaskType | None = None
    date_time: str | None = None
    priority: TaskPriority | None = None
    reminder_minutes: int | None = Field(None, ge=0)
    repeat: RepeatType | None = None


class StatusUpdate(BaseModel):
    status: TaskStatus


class StatusChangeResponse(BaseModel):
    task: TaskRead
    next_task: TaskRead | None = None


@router.post("", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    db: DBSession,
    current_user: CurrentUser,
    feed: Feed,
) -> TaskRead:
    """Create a new task owned by the current user."""
    task = await TaskService(db, feed).create_task(
        owner_id=current_user.id,
        title=task_data.title,
        date_time=task_data.date_time,
        details=task_data.details,
        task_type=task_data.type,
        priority=task_data.priority,
        reminder_minutes=task_data.reminder_minutes,
        repeat=task_data.repeat,
    )
    return TaskRead.from_task(task)


@router.get("", response_model=list[TaskRead])
async def list_tasks(
    current_user: CurrentUser,
    session_factory: SessionFactory,
    feed: Feed,
    search: str | None = Query(None, max_length=200),
) -> list[TaskRead]:
    """Owned and shared tasks merged into one list ordered by date-time."""
    view = build_task_view(current_user.id, session_factory, feed)
    tasks = await view.snapshot()
    return filter_tasks(tasks, search)


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(task_id: UUID, db: DBSession, current_user: CurrentUser) -> TaskRead:
    task = await TaskService(db).get_accessible(task_id, current_user.id)
    return TaskRead.from_task(task)


@router.patch("/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: UUID,
    updates: TaskUpdate,
    db: DBSession,
    current_user: CurrentUser,
    feed: Feed,
) -> TaskRead:
    """Edit a task. Owner only."""
    changes = {k: v for k, v in updates.model_dump(exclude_unset=True).items() if v is not None}
    if "type" in changes:
        changes["task_type"] = changes.pop("type")

    task = await TaskService(db, feed).update_task(task_id, current_user.id, **changes)
    return TaskRead.from_task(task)


@router.post("/{task_id}/status", response_model=StatusChangeResponse)
async def change_status(
    task_id: UUID,
    update: StatusUpdate,
    db: DBSession,
    current_user: CurrentUser,
    feed: Feed,
) -> StatusChangeResponse:
    """Mark a task completed, delayed, in progress or cancelled."""
    task, following = await TaskService(db, feed).set_status(task_id, current_user.id, update.status)
    return StatusChangeResponse(
        task=TaskRead.from_task(task),
        next_task=TaskRead.from_task(following) if following else None,
    )


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
    feed: Feed,
) -> None:
    """Delete a task and its chat. Owner only."""
    await TaskService(db, feed).delete_task(task_id, current_user.id)
