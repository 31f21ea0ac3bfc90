"""Merged live view of a user's own and shared tasks.

Two live queries feed the view: the tasks the user owns and the tasks
shared with them. Each query's latest snapshot replaces that query's
previous contribution, and the merged list is recomputed from the two
current snapshots.
"""

import asyncio
from collections.abc import AsyncIterator
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskme.exceptions import TaskStreamError
from taskme.schemas import TaskRead
from taskme.services.changes import ChangeFeed, LiveQuery, SnapshotUpdate, get_change_feed, tasks_topic
from taskme.services.tasks import TaskService

logger = structlog.get_logger()

OWNED = "owned"
SHARED = "shared"


def merge_task_snapshots(owned: list[TaskRead], shared: list[TaskRead]) -> list[TaskRead]:
    """Owned tasks plus shared tasks not already owned, ordered by date-time.

    Owned entries win on id collisions. The sort is stable, so equal
    date-times keep owned-before-shared order.
    """
    owned_ids = {task.id for task in owned}
    merged = [*owned, *(task for task in shared if task.id not in owned_ids)]
    return sorted(merged, key=lambda task: task.date_time)


def filter_tasks(tasks: list[TaskRead], search: str | None) -> list[TaskRead]:
    """Case-insensitive match on title, details or type tag."""
    if not search or not search.strip():
        return tasks
    needle = search.strip().casefold()
    return [
        task
        for task in tasks
        if needle in task.title.casefold()
        or needle in task.details.casefold()
        or needle in task.type.casefold()
    ]


class TaskSyncView:
    """Combines the owned and shared streams into one ordered task list."""

    def __init__(self, owned: LiveQuery[TaskRead], shared: LiveQuery[TaskRead]):
        self.queries = {OWNED: owned, SHARED: shared}
        self._snapshots: dict[str, list[TaskRead] | None] = {OWNED: None, SHARED: None}
        self._updates: asyncio.Queue[tuple[str, SnapshotUpdate[TaskRead]]] = asyncio.Queue()
        self._consumers: list[asyncio.Task] = []

    @property
    def ready(self) -> bool:
        """Both streams have produced their first snapshot."""
        return all(snapshot is not None for snapshot in self._snapshots.values())

    @property
    def tasks(self) -> list[TaskRead]:
        return merge_task_snapshots(self._snapshots[OWNED] or [], self._snapshots[SHARED] or [])

    def apply(self, source: str, snapshot: list[TaskRead]) -> list[TaskRead]:
        """Replace one stream's contribution and return the merged list."""
        self._snapshots[source] = list(snapshot)
        return self.tasks

    def fail(self, source: str, error: Exception) -> None:
        """Handle a stream refresh failure.

        Before the stream's first snapshot the failure is fatal; afterwards
        the last good snapshot is kept.
        """
        if self._snapshots[source] is None:
            logger.error("task_stream_initial_fetch_failed", source=source, error=str(error))
            raise TaskStreamError(source) from error
        logger.warning(
            "task_stream_refresh_failed",
            source=source,
            error=str(error),
            retained=len(self._snapshots[source] or []),
        )

    def start(self) -> None:
        if self._consumers:
            return
        for source, query in self.queries.items():
            self._consumers.append(
                asyncio.create_task(self._consume(source, query), name=f"task-view-{source}")
            )

    async def _consume(self, source: str, query: LiveQuery[TaskRead]) -> None:
        async for update in query.updates():
            await self._updates.put((source, update))

    async def updates(self) -> AsyncIterator[list[TaskRead]]:
        """Yield the merged list every time either stream refreshes.

        Nothing is yielded until both streams delivered their first snapshot.

        Raises:
            TaskStreamError: if a stream fails before its first snapshot
        """
        self.start()
        while True:
            source, update = await self._updates.get()
            if update.error is not None:
                self.fail(source, update.error)
                continue
            self.apply(source, update.snapshot or [])
            if self.ready:
                yield self.tasks

    async def snapshot(self) -> list[TaskRead]:
        """One merged list, then tear down."""
        updates = self.updates()
        try:
            return await anext(updates)
        finally:
            await updates.aclose()
            await self.close()

    async def close(self) -> None:
        """Cancel both stream consumers; their subscriptions are released."""
        consumers, self._consumers = self._consumers, []
        for consumer in consumers:
            consumer.cancel()
        if consumers:
            await asyncio.gather(*consumers, return_exceptions=True)


def build_task_view(
    user_id: UUID,
    session_factory: async_sessionmaker[AsyncSession],
    feed: ChangeFeed | None = None,
) -> TaskSyncView:
    """Wire the owned and shared queries of ``user_id`` into a view."""
    feed = feed or get_change_feed()

    async def fetch_owned() -> list[TaskRead]:
        async with session_factory() as session:
            tasks = await TaskService(session, feed).list_owned(user_id)
            return [TaskRead.from_task(task) for task in tasks]

    async def fetch_shared() -> list[TaskRead]:
        async with session_factory() as session:
            tasks = await TaskService(session, feed).list_shared(user_id)
            return [TaskRead.from_task(task) for task in tasks]

    topic = tasks_topic(user_id)
    return TaskSyncView(
        LiveQuery("owned_tasks", feed, topic, fetch_owned),
        LiveQuery("shared_tasks", feed, topic, fetch_shared),
    )
