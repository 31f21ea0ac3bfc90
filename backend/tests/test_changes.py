"""Change feed and live queries."""

import asyncio

import pytest

from taskme.services.changes import ChangeFeed, LiveQuery


class TestChangeFeed:
    async def test_publish_reaches_subscribers_of_the_topic_only(self):
        feed = ChangeFeed()
        mine = feed.subscribe("tasks:a")
        other = feed.subscribe("tasks:b")

        feed.publish("tasks:a", "task_created")

        assert await asyncio.wait_for(mine.wait(), timeout=1) == "task_created"
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(other.wait(), timeout=0.05)

    async def test_signals_coalesce(self):
        feed = ChangeFeed()
        subscription = feed.subscribe("tasks:a")

        feed.publish("tasks:a", "first")
        feed.publish("tasks:a", "second")
        feed.publish("tasks:a", "third")

        assert await subscription.wait() == "first"
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(subscription.wait(), timeout=0.05)

    def test_close_unsubscribes(self):
        feed = ChangeFeed()
        subscription = feed.subscribe("tasks:a")
        assert feed.subscriber_count("tasks:a") == 1

        subscription.close()
        subscription.close()

        assert feed.subscriber_count("tasks:a") == 0


class TestLiveQuery:
    async def test_refetches_on_signal(self):
        feed = ChangeFeed()
        rows = ["a"]

        async def fetch():
            return list(rows)

        updates = LiveQuery("letters", feed, "letters", fetch).updates()
        first = await anext(updates)
        assert first.snapshot == ["a"]

        rows.append("b")
        feed.publish("letters")
        second = await asyncio.wait_for(anext(updates), timeout=1)
        assert second.snapshot == ["a", "b"]

        await updates.aclose()
        assert feed.subscriber_count("letters") == 0

    async def test_fetch_error_is_reported_and_the_query_keeps_going(self):
        feed = ChangeFeed()
        calls = 0

        async def fetch():
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("database is locked")
            return ["ok"]

        updates = LiveQuery("flaky", feed, "flaky", fetch).updates()
        failed = await anext(updates)
        assert isinstance(failed.error, RuntimeError)
        assert failed.snapshot is None

        feed.publish("flaky")
        recovered = await asyncio.wait_for(anext(updates), timeout=1)
        assert recovered.snapshot == ["ok"]
        await updates.aclose()

    async def test_subscribes_before_initial_fetch(self):
        feed = ChangeFeed()

        async def fetch():
            # A write landing while the first fetch runs must not be lost
            feed.publish("race")
            return []

        updates = LiveQuery("race", feed, "race", fetch).updates()
        await anext(updates)
        second = await asyncio.wait_for(anext(updates), timeout=1)
        assert second.snapshot == []
        await updates.aclose()
