"""Notification inbox endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query
from pydantic import BaseModel

from taskme.api.deps import Feed
from taskme.api.v1.auth import CurrentUser
from taskme.db.session import DBSession
from taskme.schemas import NotificationRead
from taskme.services.notification import NotificationService

router = APIRouter()


class NotificationListResponse(BaseModel):
    items: list[NotificationRead]
    unread_count: int


class MarkAllReadResponse(BaseModel):
    updated: int


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    db: DBSession,
    current_user: CurrentUser,
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
) -> NotificationListResponse:
    """The current user's inbox, newest first."""
    service = NotificationService(db)
    notifications = await service.list_for_user(current_user.id, unread_only=unread_only, limit=limit)
    return NotificationListResponse(
        items=[NotificationRead.from_notification(n) for n in notifications],
        unread_count=await service.unread_count(current_user.id),
    )


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(db: DBSession, current_user: CurrentUser, feed: Feed) -> MarkAllReadResponse:
    updated = await NotificationService(db, feed).mark_all_read(current_user.id)
    return MarkAllReadResponse(updated=updated)


@router.post("/{notification_id}/read", response_model=NotificationRead)
async def mark_read(
    notification_id: UUID,
    db: DBSession,
    current_user: CurrentUser,
    feed: Feed,
) -> NotificationRead:
    notification = await NotificationService(db, feed).mark_read(notification_id, current_user.id)
    return NotificationRead.from_notification(notification)
