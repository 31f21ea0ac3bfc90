"""SQLAlchemy models package."""

from taskme.models.notification import Notification
from taskme.models.task import (
    REPEAT_TYPES,
    TASK_PRIORITIES,
    TASK_STATUSES,
    TASK_TYPES,
    Message,
    Task,
    TaskShare,
)
from taskme.models.user import User

__all__ = [
    # Users
    "User",
    # Tasks & chat
    "Task",
    "TaskShare",
    "Message",
    "TASK_TYPES",
    "TASK_PRIORITIES",
    "TASK_STATUSES",
    "REPEAT_TYPES",
    # Notifications
    "Notification",
]
