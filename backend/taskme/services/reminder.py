"""Periodic reminder scan.

Every invocation reads the open tasks, finds those whose reminder window
contains ``now`` and pushes one reminder per task to the owner's device.
The ``reminder_sent`` flag is claimed with a conditional update before
dispatching, so two overlapping scans never both send.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from taskme.config import get_settings
from taskme.i18n import translate
from taskme.models.task import Task
from taskme.services.changes import ChangeFeed, tasks_topic
from taskme.services.push import PushGateway, PushMessage, PushNotifier
from taskme.utils.datetimes import parse_date_time

logger = structlog.get_logger()


def reminder_time(task: Task) -> datetime:
    """Instant the reminder for ``task`` becomes due.

    Raises:
        ValueError: if the task's date-time cannot be parsed
    """
    return parse_date_time(task.date_time) - timedelta(minutes=task.reminder_minutes or 0)


def is_reminder_due(task: Task, now: datetime, window: timedelta) -> bool:
    """True if ``now`` falls in the task's reminder window and nothing was sent yet."""
    if task.reminder_sent:
        return False
    starts_at = reminder_time(task)
    return starts_at <= now < starts_at + window


@dataclass
class ReminderScanResult:
    """Counters for one scan."""

    scanned: int = 0
    due: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "scanned": self.scanned,
            "due": self.due,
            "sent": self.sent,
            "skipped": self.skipped,
            "failed": self.failed,
        }


class ReminderScanner:
    """Finds due reminders and dispatches them."""

    def __init__(
        self,
        db: AsyncSession,
        gateway: PushGateway,
        feed: ChangeFeed | None = None,
        window: timedelta | None = None,
    ):
        self.db = db
        self.gateway = gateway
        self.feed = feed
        self.notifier = PushNotifier(db, gateway)
        if window is None:
            window = timedelta(seconds=get_settings().reminder_window_seconds)
        self.window = window

    async def scan(self, now: datetime | None = None) -> ReminderScanResult:
        """Run one pass over all open tasks."""
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        result = await self.db.execute(select(Task).where(Task.completed.is_(False)))
        tasks = list(result.scalars().all())

        outcome = ReminderScanResult(scanned=len(tasks))
        # Ids are read up front: a rollback expires every loaded task
        entries = [(task, task.id, task.user_id) for task in tasks]
        expired = False
        for task, task_id, user_id in entries:
            try:
                if expired:
                    await self.db.refresh(task)
                due = is_reminder_due(task, now, self.window)
            except ValueError:
                logger.warning(
                    "reminder_unparseable_date_time",
                    task_id=str(task_id),
                    date_time=task.date_time,
                )
                outcome.skipped += 1
                continue
            except Exception as e:
                expired = await self._recover() or expired
                outcome.failed += 1
                logger.error("reminder_task_reload_failed", task_id=str(task_id), error=str(e))
                continue
            if not due:
                continue

            outcome.due += 1
            try:
                status = await self._dispatch(task)
            except Exception as e:
                expired = await self._recover() or expired
                outcome.failed += 1
                logger.error(
                    "reminder_dispatch_failed",
                    task_id=str(task_id),
                    user_id=str(user_id),
                    error=str(e),
                )
                continue

            if status == "sent":
                outcome.sent += 1
            else:
                outcome.skipped += 1

        logger.info("reminder_scan_finished", **outcome.as_dict())
        return outcome

    async def _recover(self) -> bool:
        """Roll back a transaction a failed task left open. True if one was."""
        if not self.db.in_transaction():
            return False
        await self.db.rollback()
        return True

    async def _dispatch(self, task: Task) -> str:
        token = await self.notifier.resolve_token(task.user_id)
        if not token:
            logger.debug("reminder_no_push_token", task_id=str(task.id), user_id=str(task.user_id))
            return "no_token"

        if not await self._claim(task):
            logger.debug("reminder_already_claimed", task_id=str(task.id))
            return "claimed_elsewhere"

        message = PushMessage(
            token=token,
            title=translate("reminder_title"),
            body=translate("reminder_body", title=task.title),
            data={"task_id": str(task.id), "type": "task_reminder"},
        )
        try:
            await self.gateway.send(message)
        except Exception:
            await self._release(task)
            raise

        set_committed_value(task, "reminder_sent", True)
        if self.feed is not None:
            self.feed.publish_many(
                (tasks_topic(user_id) for user_id in task.audience()), "reminder_sent"
            )
        logger.info("reminder_sent", task_id=str(task.id), user_id=str(task.user_id))
        return "sent"

    async def _claim(self, task: Task) -> bool:
        """Set ``reminder_sent`` only if it is still false; True if this scan won."""
        result = await self.db.execute(
            update(Task)
            .where(Task.id == task.id, Task.reminder_sent.is_(False))
            .values(reminder_sent=True)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount == 1

    async def _release(self, task: Task) -> None:
        await self.db.execute(
            update(Task)
            .where(Task.id == task.id)
            .values(reminder_sent=False)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info("reminder_claim_released", task_id=str(task.id))
