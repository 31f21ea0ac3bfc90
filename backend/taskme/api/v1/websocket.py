"""WebSocket endpoints for real-time updates.

Each socket authenticates with the ``token`` query parameter (a JWT access
token) and then receives JSON frames:

- ``/ws/tasks``: ``{"type": "tasks", "tasks": [...]}`` whenever the merged
  task list changes, and ``{"type": "alert", ...}`` for task alerts. The
  client may send ``{"type": "dismiss", "kind": ..., "task_id": ...}``.
- ``/ws/tasks/{task_id}/messages``: ``{"type": "messages", "messages": [...]}``
- ``/ws/notifications``: ``{"type": "notifications", "items": [...], "unread_count": n}``

Failures are reported as ``{"type": "error", "code": ..., "detail": ...}``.
"""

import asyncio
import json
from collections.abc import Coroutine
from typing import Any, Dict, Set
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskme.api.v1.auth import authenticate_token
from taskme.db.session import get_session_factory
from taskme.exceptions import TaskMeError, TaskStreamError
from taskme.i18n import resolve_locale
from taskme.models.user import User
from taskme.schemas import NotificationRead
from taskme.services.alerts import AlertCoordinator
from taskme.services.changes import ChangeFeed, LiveQuery, get_change_feed, notifications_topic
from taskme.services.messaging import live_messages
from taskme.services.notification import NotificationService
from taskme.services.task_view import build_task_view
from taskme.services.tasks import TaskService

router = APIRouter(prefix="/ws", tags=["websocket"])
logger = structlog.get_logger()

# Condition alerts depend on the clock, not only on task changes
ALERT_TICK_SECONDS = 30.0


class ConnectionManager:
    """Tracks open WebSocket connections per user."""

    def __init__(self):
        # Map of user_id -> set of websocket connections
        self.user_connections: Dict[str, Set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, user_id: str):
        """Accept and register a websocket connection."""
        await websocket.accept()
        self.user_connections.setdefault(user_id, set()).add(websocket)
        logger.info("websocket_connected", user_id=user_id, path=websocket.url.path)

    def disconnect(self, websocket: WebSocket, user_id: str):
        """Unregister a websocket connection."""
        connections = self.user_connections.get(user_id)
        if connections is not None:
            connections.discard(websocket)
            if not connections:
                del self.user_connections[user_id]
        logger.info("websocket_disconnected", user_id=user_id, path=websocket.url.path)

    def connection_count(self, user_id: str | None = None) -> int:
        if user_id is not None:
            return len(self.user_connections.get(user_id, ()))
        return sum(len(c) for c in self.user_connections.values())


# Global connection manager instance
manager = ConnectionManager()


async def _authenticate(
    websocket: WebSocket,
    token: str,
    session_factory: async_sessionmaker[AsyncSession],
) -> User | None:
    async with session_factory() as session:
        try:
            return await authenticate_token(token, session)
        except TaskMeError as e:
            logger.info("websocket_auth_failed", code=e.code)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return None


async def _send_error(websocket: WebSocket, error: TaskMeError, locale: str) -> None:
    await websocket.send_json(
        {"type": "error", "code": error.code, "detail": error.localized(locale)}
    )


async def _receive_frame(websocket: WebSocket) -> dict[str, Any] | None:
    """Next client frame as a JSON object; anything else is dropped as None."""
    raw = await websocket.receive_text()
    try:
        data = json.loads(raw)
    except ValueError:
        logger.debug("websocket_bad_frame", path=websocket.url.path, reason="not_json")
        return None
    if not isinstance(data, dict):
        logger.debug("websocket_bad_frame", path=websocket.url.path, reason="not_an_object")
        return None
    return data


async def _drain_incoming(websocket: WebSocket) -> None:
    """Consume client frames until the client goes away."""
    while True:
        data = await _receive_frame(websocket)
        if data is not None and data.get("type") == "ping":
            await websocket.send_json({"type": "pong"})


async def _run_until_first_exit(*coros: Coroutine[Any, Any, None]) -> None:
    """Run coroutines side by side; stop all when one finishes or fails."""
    tasks = [asyncio.create_task(coro) for coro in coros]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
    for task in done:
        task.result()


@router.websocket("/tasks")
async def tasks_stream(
    websocket: WebSocket,
    token: str = Query(...),
    locale: str | None = Query(None),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """Live merged task list plus task alerts for the connected user."""
    user = await _authenticate(websocket, token, session_factory)
    if user is None:
        return
    locale = resolve_locale(locale)
    user_id = str(user.id)

    await manager.connect(websocket, user_id)
    view = build_task_view(user.id, session_factory, feed)
    alerts = AlertCoordinator()

    async def send_alerts() -> None:
        for alert in alerts.drain():
            await websocket.send_json({"type": "alert", **alert.to_dict(locale)})

    async def forward_tasks() -> None:
        async for tasks in view.updates():
            await websocket.send_json(
                {"type": "tasks", "tasks": [task.model_dump(mode="json") for task in tasks]}
            )
            alerts.observe(tasks)
            await send_alerts()

    async def tick() -> None:
        while True:
            await asyncio.sleep(ALERT_TICK_SECONDS)
            if view.ready:
                alerts.observe(view.tasks)
                await send_alerts()

    async def receive() -> None:
        while True:
            data = await _receive_frame(websocket)
            if data is None:
                continue
            if data.get("type") == "dismiss":
                try:
                    alerts.dismiss(str(data.get("kind", "")), UUID(str(data.get("task_id"))))
                except ValueError:
                    logger.debug("websocket_bad_dismiss", user_id=user_id, data=data)
            elif data.get("type") == "ping":
                await websocket.send_json({"type": "pong"})

    try:
        await _run_until_first_exit(forward_tasks(), tick(), receive())
    except WebSocketDisconnect:
        pass
    except TaskStreamError as e:
        await _send_error(websocket, e, locale)
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
    finally:
        await view.close()
        manager.disconnect(websocket, user_id)


@router.websocket("/tasks/{task_id}/messages")
async def messages_stream(
    websocket: WebSocket,
    task_id: UUID,
    token: str = Query(...),
    locale: str | None = Query(None),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """Live chat of one task."""
    user = await _authenticate(websocket, token, session_factory)
    if user is None:
        return
    locale = resolve_locale(locale)
    user_id = str(user.id)

    await manager.connect(websocket, user_id)
    try:
        async with session_factory() as session:
            await TaskService(session, feed).get_accessible(task_id, user.id)
    except TaskMeError as e:
        await _send_error(websocket, e, locale)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        manager.disconnect(websocket, user_id)
        return

    query = live_messages(task_id, session_factory, feed)

    async def forward_messages() -> None:
        async for update in query.updates():
            if update.error is not None:
                await _send_error(websocket, TaskMeError("internal_error"), locale)
                continue
            await websocket.send_json(
                {
                    "type": "messages",
                    "messages": [m.model_dump(mode="json") for m in update.snapshot or []],
                }
            )

    try:
        await _run_until_first_exit(forward_messages(), _drain_incoming(websocket))
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(websocket, user_id)


@router.websocket("/notifications")
async def notifications_stream(
    websocket: WebSocket,
    token: str = Query(...),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """Live notification inbox of the connected user."""
    user = await _authenticate(websocket, token, session_factory)
    if user is None:
        return
    user_id = str(user.id)

    async def fetch() -> list[NotificationRead]:
        async with session_factory() as session:
            items = await NotificationService(session, feed).list_for_user(user.id)
            return [NotificationRead.from_notification(n) for n in items]

    query = LiveQuery("notifications", feed, notifications_topic(user.id), fetch)

    async def forward_notifications() -> None:
        async for update in query.updates():
            if update.error is not None:
                continue
            items = update.snapshot or []
            await websocket.send_json(
                {
                    "type": "notifications",
                    "items": [n.model_dump(mode="json") for n in items],
                    "unread_count": sum(1 for n in items if not n.read),
                }
            )

    await manager.connect(websocket, user_id)
    try:
        await _run_until_first_exit(forward_notifications(), _drain_incoming(websocket))
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(websocket, user_id)
