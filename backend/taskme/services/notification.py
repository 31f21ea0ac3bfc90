"""Notification service for creating in-app notifications."""

from uuid import UUID

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskme.db.base import utcnow
from taskme.exceptions import NotFoundError
from taskme.models.notification import Notification
from taskme.services.changes import ChangeFeed, get_change_feed, notifications_topic

logger = structlog.get_logger()


class NotificationService:
    """Service for creating and managing user notifications."""

    def __init__(self, db: AsyncSession, feed: ChangeFeed | None = None):
        self.db = db
        self.feed = feed or get_change_feed()

    async def notify(
        self,
        user_id: UUID,
        notification_type: str,
        message: str,
        task_id: UUID | None = None,
        sender_id: UUID | None = None,
    ) -> Notification | None:
        """
        Create a notification for a user.

        Args:
            user_id: The recipient user's ID
            notification_type: Type of notification (e.g., 'task_shared')
            message: Localized notification text
            task_id: Optional task the notification points at
            sender_id: Optional sender/actor user ID

        Returns:
            Created Notification, or None for a self-notification
        """
        # Don't notify users about their own actions
        if sender_id and sender_id == user_id:
            logger.debug(
                "skipping_self_notification",
                user_id=str(user_id),
                notification_type=notification_type,
            )
            return None

        notification = Notification(
            user_id=user_id,
            notification_type=notification_type,
            message=message,
            task_id=task_id,
            sender_id=sender_id,
            read=False,
        )
        self.db.add(notification)
        await self.db.commit()

        self.feed.publish(notifications_topic(user_id), "notification_created")
        logger.info(
            "notification_created",
            notification_id=str(notification.id),
            user_id=str(user_id),
            notification_type=notification_type,
        )

        return notification

    async def list_for_user(
        self,
        user_id: UUID,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[Notification]:
        """Newest first."""
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.read.is_(False))
        query = query.order_by(Notification.created_at.desc()).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def unread_count(self, user_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.read.is_(False),
            )
        )
        return result.scalar() or 0

    async def mark_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        """Flip one notification to read.

        Raises:
            NotFoundError: if it does not exist or belongs to someone else
        """
        result = await self.db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError("notification_not_found")

        if not notification.read:
            notification.read = True
            notification.read_at = utcnow()
            await self.db.commit()
            self.feed.publish(notifications_topic(user_id), "notification_read")

        return notification

    async def mark_all_read(self, user_id: UUID) -> int:
        """Mark every unread notification of the user read; returns how many changed."""
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True, read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        if result.rowcount:
            self.feed.publish(notifications_topic(user_id), "notifications_read")
        return result.rowcount
