"""Task sharing endpoints."""

from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel

from taskme.api.deps import Feed, Locale
from taskme.api.v1.auth import CurrentUser
from taskme.db.session import DBSession
from taskme.exceptions import NotFoundError
from taskme.schemas import TaskRead
from taskme.services.sharing import SharingService
from taskme.services.tasks import TaskService

router = APIRouter()


class ShareRequest(BaseModel):
    """Share a task with a registered user."""

    user_id: UUID


@router.post("/{task_id}/share", response_model=TaskRead)
async def share_task(
    task_id: UUID,
    request: ShareRequest,
    db: DBSession,
    current_user: CurrentUser,
    feed: Feed,
    locale: Locale,
) -> TaskRead:
    """Add a user to the task's members, notify them and announce it in the chat."""
    await SharingService(db, feed).share_task(task_id, current_user, request.user_id, locale)

    # Re-fetch: a failed side effect may have expired the loaded instance
    task = await TaskService(db, feed).get_task(task_id)
    if task is None:
        raise NotFoundError("task_not_found")
    return TaskRead.from_task(task)


@router.delete("/{task_id}/share/{user_id}", response_model=TaskRead)
async def remove_participant(
    task_id: UUID,
    user_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
    feed: Feed,
) -> TaskRead:
    """Remove a user from the task's members. Owner only."""
    task = await SharingService(db, feed).remove_participant(task_id, current_user.id, user_id)
    return TaskRead.from_task(task)
