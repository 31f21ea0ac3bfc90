"""Transient alerts derived from successive task snapshots.

Two families of alerts exist:

- transition alerts (``TaskAdded``, ``TaskCompleted``) fire once when a
  task appears in, or becomes completed between, two consecutive
  snapshots;
- condition alerts (``ReminderDue``, ``Overdue``) hold while a task is due
  soon or past due. They are raised once per condition and retracted when
  the condition stops holding. Dismissing one keeps it quiet until the
  condition clears.

Alerts are keyed by ``(kind, task_id)``.
"""

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import ClassVar
from uuid import UUID

import structlog

from taskme.config import get_settings
from taskme.i18n import translate
from taskme.schemas import TaskRead
from taskme.utils.datetimes import parse_date_time

logger = structlog.get_logger()

AlertKey = tuple[str, UUID]


@dataclass(frozen=True)
class AlertEvent:
    task_id: UUID
    title: str

    kind: ClassVar[str] = "alert"
    message_key: ClassVar[str] = ""
    condition: ClassVar[bool] = False

    @property
    def key(self) -> AlertKey:
        return (self.kind, self.task_id)

    def message(self, locale: str | None = None) -> str:
        return translate(self.message_key, locale, title=self.title)

    def to_dict(self, locale: str | None = None) -> dict[str, str]:
        return {
            "kind": self.kind,
            "task_id": str(self.task_id),
            "title": self.title,
            "message": self.message(locale),
        }


@dataclass(frozen=True)
class TaskAdded(AlertEvent):
    kind: ClassVar[str] = "task_added"
    message_key: ClassVar[str] = "alert_task_added"


@dataclass(frozen=True)
class TaskCompleted(AlertEvent):
    kind: ClassVar[str] = "task_completed"
    message_key: ClassVar[str] = "alert_task_completed"


@dataclass(frozen=True)
class ReminderDue(AlertEvent):
    kind: ClassVar[str] = "reminder_due"
    message_key: ClassVar[str] = "alert_reminder_due"
    condition: ClassVar[bool] = True


@dataclass(frozen=True)
class Overdue(AlertEvent):
    kind: ClassVar[str] = "overdue"
    message_key: ClassVar[str] = "alert_overdue"
    condition: ClassVar[bool] = True


ALERT_KINDS: dict[str, type[AlertEvent]] = {
    cls.kind: cls for cls in (TaskAdded, TaskCompleted, ReminderDue, Overdue)
}


class AlertCoordinator:
    """Owns the alert queue of one task view."""

    def __init__(self, upcoming: timedelta | None = None):
        if upcoming is None:
            upcoming = timedelta(minutes=get_settings().upcoming_alert_minutes)
        self.upcoming = upcoming
        self._previous: dict[UUID, TaskRead] | None = None
        self._active: dict[AlertKey, AlertEvent] = {}
        self._dismissed: set[AlertKey] = set()
        self._pending: deque[AlertEvent] = deque()

    @property
    def pending(self) -> list[AlertEvent]:
        return list(self._pending)

    def observe(self, tasks: list[TaskRead], now: datetime | None = None) -> list[AlertEvent]:
        """Compare ``tasks`` to the previous snapshot and the clock.

        Returns the alerts raised by this observation; they are also queued.
        """
        now = now or datetime.now(timezone.utc)
        raised: list[AlertEvent] = []

        if self._previous is not None:
            for task in tasks:
                before = self._previous.get(task.id)
                if before is None:
                    raised.append(TaskAdded(task.id, task.title))
                elif task.completed and not before.completed:
                    raised.append(TaskCompleted(task.id, task.title))
        self._previous = {task.id: task for task in tasks}

        holding: dict[AlertKey, AlertEvent] = {}
        for task in tasks:
            alert = self._condition_for(task, now)
            if alert is not None:
                holding[alert.key] = alert

        for key in list(self._active):
            if key not in holding:
                self._retract(key)
        self._dismissed &= set(holding)

        for key, alert in holding.items():
            if key in self._active or key in self._dismissed:
                continue
            self._active[key] = alert
            raised.append(alert)

        self._pending.extend(raised)
        return raised

    def _condition_for(self, task: TaskRead, now: datetime) -> AlertEvent | None:
        if task.completed or task.status == "cancelled":
            return None
        try:
            due = parse_date_time(task.date_time)
        except ValueError:
            logger.debug("alert_unparseable_date_time", task_id=str(task.id))
            return None
        if due < now:
            return Overdue(task.id, task.title)
        if due - now <= self.upcoming:
            return ReminderDue(task.id, task.title)
        return None

    def _retract(self, key: AlertKey) -> None:
        self._active.pop(key, None)
        self._pending = deque(alert for alert in self._pending if alert.key != key)

    def dismiss(self, kind: str, task_id: UUID) -> bool:
        """Drop an alert; condition alerts stay suppressed while they hold."""
        key = (kind, task_id)
        before = len(self._pending)
        self._pending = deque(alert for alert in self._pending if alert.key != key)
        if key in self._active:
            del self._active[key]
            self._dismissed.add(key)
            return True
        return len(self._pending) != before

    def drain(self) -> list[AlertEvent]:
        """Hand over every queued alert."""
        alerts = list(self._pending)
        self._pending.clear()
        return alerts
