"""Per-task chat and new-message push fan-out."""

from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskme.exceptions import NotFoundError, PermissionDeniedError, PushTokenMissingError, ValidationError
from taskme.i18n import translate
from taskme.models.task import Message, Task
from taskme.models.user import User
from taskme.schemas import MessageRead
from taskme.services.changes import ChangeFeed, LiveQuery, get_change_feed, messages_topic
from taskme.services.push import PushGateway, PushNotifier
from taskme.services.tasks import TaskService

logger = structlog.get_logger()

PREVIEW_LENGTH = 100


def message_recipients(task: Task, sender_id: UUID) -> list[UUID]:
    """Everyone who should be pushed about a new message, in a stable order.

    Participants first (in the order they joined), then the owner; the
    sender is never included. With no participants this is just the owner.
    """
    recipients: list[UUID] = []
    for user_id in [*task.participant_ids, task.user_id]:
        if user_id != sender_id and user_id not in recipients:
            recipients.append(user_id)
    return recipients


def message_preview(content: str) -> str:
    content = " ".join(content.split())
    if len(content) <= PREVIEW_LENGTH:
        return content
    return content[: PREVIEW_LENGTH - 1] + "…"


def sender_display_name(user: User, locale: str | None = None) -> str:
    return user.display_name or translate("default_user_name", locale)


class MessageService:
    """Service for task chat messages."""

    def __init__(
        self,
        db: AsyncSession,
        gateway: PushGateway | None = None,
        feed: ChangeFeed | None = None,
    ):
        self.db = db
        self.gateway = gateway
        self.feed = feed or get_change_feed()
        self.tasks = TaskService(db, self.feed)

    async def append(
        self, task_id: UUID, sender_id: UUID, sender_name: str, content: str
    ) -> Message:
        """Persist a message on the task's chat without any push."""
        message = Message(
            task_id=task_id,
            sender_id=sender_id,
            sender_name=sender_name,
            content=content,
            read=False,
        )
        self.db.add(message)
        await self.db.commit()

        self.feed.publish(messages_topic(task_id), "message_created")
        return message

    async def send_message(self, task_id: UUID, sender: User, content: str) -> Message:
        """Post a chat message and push it to the other members.

        The message is committed before any push is attempted; push failures
        are logged and never undo it.
        """
        content = (content or "").strip()
        if not content:
            raise ValidationError("content_required")

        task = await self.tasks.get_accessible(task_id, sender.id)
        message = await self.append(task.id, sender.id, sender_display_name(sender), content)
        logger.info(
            "message_sent",
            message_id=str(message.id),
            task_id=str(task.id),
            sender_id=str(sender.id),
        )

        if self.gateway is not None:
            await self._push_to_recipients(task, sender, message)
        return message

    async def _push_to_recipients(self, task: Task, sender: User, message: Message) -> None:
        notifier = PushNotifier(self.db, self.gateway)
        title = translate("new_message_title")
        body = translate(
            "new_message_body",
            sender=message.sender_name,
            preview=message_preview(message.content),
        )
        data = {"task_id": str(task.id), "message_id": str(message.id), "type": "new_message"}

        for recipient_id in message_recipients(task, sender.id):
            try:
                await notifier.notify_user(recipient_id, title, body, data)
            except PushTokenMissingError:
                logger.debug(
                    "message_push_no_token",
                    task_id=str(task.id),
                    recipient_id=str(recipient_id),
                )
            except Exception as e:
                logger.warning(
                    "message_push_failed",
                    task_id=str(task.id),
                    recipient_id=str(recipient_id),
                    error=str(e),
                )

    async def list_messages(self, task_id: UUID, user_id: UUID) -> list[Message]:
        """Chat of a task, oldest first."""
        await self.tasks.get_accessible(task_id, user_id)
        return await fetch_messages(self.db, task_id)

    async def mark_read(self, task_id: UUID, user_id: UUID) -> int:
        """Mark the messages other members sent as read."""
        await self.tasks.get_accessible(task_id, user_id)
        result = await self.db.execute(
            update(Message)
            .where(
                Message.task_id == task_id,
                Message.sender_id != user_id,
                Message.read.is_(False),
            )
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        if result.rowcount:
            self.feed.publish(messages_topic(task_id), "messages_read")
        return result.rowcount

    async def delete_message(self, message_id: UUID, user_id: UUID) -> None:
        """Delete one message. Its sender or the task owner may do this."""
        result = await self.db.execute(select(Message).where(Message.id == message_id))
        message = result.scalar_one_or_none()
        if message is None:
            raise NotFoundError("message_not_found")

        if message.sender_id != user_id:
            task = await self.tasks.get_task(message.task_id)
            if task is None or task.user_id != user_id:
                raise PermissionDeniedError("not_message_sender")

        task_id = message.task_id
        await self.db.delete(message)
        await self.db.commit()

        self.feed.publish(messages_topic(task_id), "message_deleted")
        logger.info("message_deleted", message_id=str(message_id), task_id=str(task_id))


async def fetch_messages(db: AsyncSession, task_id: UUID) -> list[Message]:
    result = await db.execute(
        select(Message).where(Message.task_id == task_id).order_by(Message.timestamp.asc())
    )
    return list(result.scalars().all())


def live_messages(
    task_id: UUID,
    session_factory: async_sessionmaker[AsyncSession],
    feed: ChangeFeed | None = None,
) -> LiveQuery[MessageRead]:
    """Live chat of a task; every refresh reads in a fresh session."""

    async def fetch() -> list[MessageRead]:
        async with session_factory() as session:
            return [MessageRead.from_message(m) for m in await fetch_messages(session, task_id)]

    return LiveQuery("messages", feed or get_change_feed(), messages_topic(task_id), fetch)
