"""Business logic services."""

from taskme.services.accounts import AccountService
from taskme.services.alerts import AlertCoordinator
from taskme.services.changes import ChangeFeed, LiveQuery, change_feed
from taskme.services.messaging import MessageService
from taskme.services.notification import NotificationService
from taskme.services.push import FCMPushGateway, LoggingPushGateway, PushGateway, PushMessage
from taskme.services.reminder import ReminderScanner
from taskme.services.sharing import SharingService
from taskme.services.task_view import TaskSyncView, build_task_view, merge_task_snapshots
from taskme.services.tasks import TaskService

__all__ = [
    "AccountService",
    "AlertCoordinator",
    "ChangeFeed",
    "LiveQuery",
    "change_feed",
    "MessageService",
    "NotificationService",
    "PushGateway",
    "PushMessage",
    "FCMPushGateway",
    "LoggingPushGateway",
    "ReminderScanner",
    "SharingService",
    "TaskService",
    "TaskSyncView",
    "build_task_view",
    "merge_task_snapshots",
]
