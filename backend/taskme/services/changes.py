"""In-process change feed and live queries.

Writers publish a change signal on a topic after they commit; a
``LiveQuery`` listening on that topic re-runs its query and yields a fresh
snapshot. Signals carry no data: each refresh reads the store, so several
writes that land between two refreshes collapse into one refresh.

Topics:
- ``tasks:<user_id>``          any task visible to the user changed
- ``messages:<task_id>``       chat of a task changed
- ``notifications:<user_id>``  inbox of a user changed
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar
from uuid import UUID

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


def tasks_topic(user_id: UUID) -> str:
    return f"tasks:{user_id}"


def messages_topic(task_id: UUID) -> str:
    return f"messages:{task_id}"


def notifications_topic(user_id: UUID) -> str:
    return f"notifications:{user_id}"


class Subscription:
    """One consumer's handle on a topic."""

    def __init__(self, feed: "ChangeFeed", topic: str):
        self.feed = feed
        self.topic = topic
        # Single-slot queue: a pending signal already means "refresh"
        self._signals: asyncio.Queue[str] = asyncio.Queue(maxsize=1)
        self.closed = False

    def signal(self, reason: str) -> None:
        if not self._signals.full():
            self._signals.put_nowait(reason)

    async def wait(self) -> str:
        """Block until the next change signal."""
        return await self._signals.get()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.feed.unsubscribe(self)


class ChangeFeed:
    """Topic registry for change signals."""

    def __init__(self) -> None:
        self._subscribers: dict[str, set[Subscription]] = {}

    def subscribe(self, topic: str) -> Subscription:
        subscription = Subscription(self, topic)
        self._subscribers.setdefault(topic, set()).add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscribers = self._subscribers.get(subscription.topic)
        if subscribers is None:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._subscribers[subscription.topic]

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))

    def publish(self, topic: str, reason: str = "changed") -> None:
        for subscription in list(self._subscribers.get(topic, ())):
            subscription.signal(reason)

    def publish_many(self, topics: Iterable[str], reason: str = "changed") -> None:
        for topic in set(topics):
            self.publish(topic, reason)


@dataclass
class SnapshotUpdate(Generic[T]):
    """One refresh result: either a snapshot or the error that prevented it."""

    snapshot: list[T] | None = None
    error: Exception | None = None


class LiveQuery(Generic[T]):
    """Re-run ``fetch`` every time ``topic`` is signalled.

    The subscription is taken before the initial fetch so no change made
    while that fetch is in flight is lost.
    """

    def __init__(
        self,
        name: str,
        feed: ChangeFeed,
        topic: str,
        fetch: Callable[[], Awaitable[list[T]]],
    ):
        self.name = name
        self.feed = feed
        self.topic = topic
        self.fetch = fetch

    async def updates(self) -> AsyncIterator[SnapshotUpdate[T]]:
        subscription = self.feed.subscribe(self.topic)
        try:
            while True:
                try:
                    snapshot = await self.fetch()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.warning(
                        "live_query_fetch_failed",
                        query=self.name,
                        topic=self.topic,
                        error=str(e),
                    )
                    yield SnapshotUpdate(error=e)
                else:
                    yield SnapshotUpdate(snapshot=snapshot)
                await subscription.wait()
        finally:
            subscription.close()


# Global change feed instance
change_feed = ChangeFeed()


def get_change_feed() -> ChangeFeed:
    """Dependency returning the process-wide change feed."""
    return change_feed
