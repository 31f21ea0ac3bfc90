"""Task sharing with notification and chat side effects."""

from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from taskme.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from taskme.i18n import translate
from taskme.models.task import Task
from taskme.models.user import User
from taskme.services.accounts import AccountService
from taskme.services.changes import ChangeFeed, get_change_feed, tasks_topic
from taskme.services.messaging import MessageService, sender_display_name
from taskme.services.notification import NotificationService
from taskme.services.tasks import TaskService

logger = structlog.get_logger()


class SharingService:
    """Adds and removes task members.

    The membership change is committed first. The inbox notification and the
    chat announcement that follow are separate best-effort writes: a failure
    in either is logged and the share stands.
    """

    def __init__(self, db: AsyncSession, feed: ChangeFeed | None = None):
        self.db = db
        self.feed = feed or get_change_feed()
        self.tasks = TaskService(db, self.feed)
        self.notifications = NotificationService(db, self.feed)
        self.messages = MessageService(db, feed=self.feed)
        self.accounts = AccountService(db)

    async def share_task(
        self,
        task_id: UUID,
        actor: User,
        target_user_id: UUID,
        locale: str | None = None,
    ) -> Task:
        """Share a task with another user.

        Raises:
            NotFoundError: unknown task or target user
            PermissionDeniedError: actor is neither owner nor participant
            ValidationError: target is the task owner
        """
        task = await self.tasks.get_task(task_id)
        if task is None:
            raise NotFoundError("task_not_found")
        if not task.has_member(actor.id):
            raise PermissionDeniedError("not_task_participant")
        if target_user_id == task.user_id:
            raise ValidationError("cannot_share_with_owner")

        target = await self.accounts.get_user(target_user_id)

        added = False
        if target.id not in task.shared_with:
            task.shared_with.append(target.id)
            added = True
        if target.id not in task.participant_ids:
            task.participants = [*(task.participants or []), str(target.id)]
            added = True
        await self.db.commit()

        self.tasks.publish(task, "task_shared")
        logger.info(
            "task_shared",
            task_id=str(task.id),
            actor_id=str(actor.id),
            target_id=str(target.id),
            membership_changed=added,
        )

        # A failed side effect rolls the session back, which expires loaded
        # instances; everything needed afterwards is read up front.
        task_id, title = task.id, task.title
        actor_id, actor_name = actor.id, sender_display_name(actor, locale)
        target_id, target_name = target.id, sender_display_name(target, locale)

        await self._notify_target(task_id, title, actor_id, target_id, locale)
        await self._announce(task_id, actor_id, actor_name, target_id, target_name, locale)
        return task

    async def _notify_target(
        self,
        task_id: UUID,
        title: str,
        actor_id: UUID,
        target_id: UUID,
        locale: str | None,
    ) -> None:
        try:
            await self.notifications.notify(
                user_id=target_id,
                notification_type="task_shared",
                message=translate("share_notification", locale, title=title),
                task_id=task_id,
                sender_id=actor_id,
            )
        except Exception as e:
            await self.db.rollback()
            logger.warning(
                "share_notification_failed",
                task_id=str(task_id),
                target_id=str(target_id),
                error=str(e),
            )

    async def _announce(
        self,
        task_id: UUID,
        actor_id: UUID,
        actor_name: str,
        target_id: UUID,
        target_name: str,
        locale: str | None,
    ) -> None:
        try:
            await self.messages.append(
                task_id,
                actor_id,
                actor_name,
                translate("share_announcement", locale, name=target_name),
            )
        except Exception as e:
            await self.db.rollback()
            logger.warning(
                "share_announcement_failed",
                task_id=str(task_id),
                target_id=str(target_id),
                error=str(e),
            )

    async def remove_participant(self, task_id: UUID, actor_id: UUID, user_id: UUID) -> Task:
        """Drop a user from both membership lists. Owner only."""
        task = await self.tasks.get_owned(task_id, actor_id)

        if user_id in task.shared_with:
            task.shared_with.remove(user_id)
        task.participants = [p for p in (task.participants or []) if p != str(user_id)]
        await self.db.commit()

        self.tasks.publish(task, "participant_removed")
        # The removed user's list no longer contains the task
        self.feed.publish(tasks_topic(user_id), "participant_removed")
        logger.info(
            "participant_removed",
            task_id=str(task.id),
            actor_id=str(actor_id),
            user_id=str(user_id),
        )
        return task
