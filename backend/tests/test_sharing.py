"""Sharing a task: membership lists, inbox notification and chat announcement."""

import pytest
import pytest_asyncio
from sqlalchemy import select

from taskme.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from taskme.models.notification import Notification
from taskme.models.task import Message, Task
from taskme.services.changes import tasks_topic
from taskme.services.notification import NotificationService
from taskme.services.sharing import SharingService
from taskme.services.tasks import TaskService


async def _reload(session_factory, task_id) -> Task:
    async with session_factory() as session:
        return await session.get(Task, task_id)


async def _rows(session_factory, model, **filters):
    async with session_factory() as session:
        query = select(model).filter_by(**filters)
        return list((await session.execute(query)).scalars().all())


@pytest_asyncio.fixture
async def shared_setup(db, feed, make_user):
    owner = await make_user(name="Owner")
    friend = await make_user(name="Friend")
    task = await TaskService(db, feed).create_task(owner.id, "Plan trip", "2024-07-01T09:00:00Z")
    return owner, friend, task


class TestShareTask:
    async def test_share_updates_both_lists(self, db, feed, session_factory, shared_setup):
        owner, friend, task = shared_setup

        await SharingService(db, feed).share_task(task.id, owner, friend.id)

        stored = await _reload(session_factory, task.id)
        assert stored.shared_with == [friend.id]
        assert stored.participant_ids == [friend.id]

    async def test_share_notifies_target_once(self, db, feed, session_factory, shared_setup):
        owner, friend, task = shared_setup

        await SharingService(db, feed).share_task(task.id, owner, friend.id, locale="en")

        notifications = await _rows(session_factory, Notification, user_id=friend.id)
        assert len(notifications) == 1
        assert notifications[0].notification_type == "task_shared"
        assert notifications[0].task_id == task.id
        assert notifications[0].sender_id == owner.id
        assert notifications[0].message == 'The task "Plan trip" was shared with you'

    async def test_share_announces_in_chat(self, db, feed, session_factory, shared_setup):
        owner, friend, task = shared_setup

        await SharingService(db, feed).share_task(task.id, owner, friend.id, locale="en")

        messages = await _rows(session_factory, Message, task_id=task.id)
        assert len(messages) == 1
        assert messages[0].sender_id == owner.id
        assert messages[0].sender_name == "Owner"
        assert messages[0].content == "This task was shared with Friend"

    async def test_reshare_keeps_membership_unique(self, db, feed, session_factory, shared_setup):
        owner, friend, task = shared_setup
        sharing = SharingService(db, feed)

        await sharing.share_task(task.id, owner, friend.id)
        await sharing.share_task(task.id, owner, friend.id)

        stored = await _reload(session_factory, task.id)
        assert stored.shared_with == [friend.id]
        assert stored.participant_ids == [friend.id]
        assert len(await _rows(session_factory, Message, task_id=task.id)) == 2

    async def test_share_signals_both_task_lists(self, db, feed, shared_setup):
        owner, friend, task = shared_setup
        owner_sub = feed.subscribe(tasks_topic(owner.id))
        friend_sub = feed.subscribe(tasks_topic(friend.id))

        await SharingService(db, feed).share_task(task.id, owner, friend.id)

        assert await owner_sub.wait() == "task_shared"
        assert await friend_sub.wait() == "task_shared"

    async def test_participant_may_share_further(self, db, feed, session_factory, make_user, shared_setup):
        owner, friend, task = shared_setup
        third = await make_user(name="Third")
        sharing = SharingService(db, feed)

        await sharing.share_task(task.id, owner, friend.id)
        await sharing.share_task(task.id, friend, third.id)

        stored = await _reload(session_factory, task.id)
        assert set(stored.shared_with) == {friend.id, third.id}

    async def test_outsider_cannot_share(self, db, feed, make_user, shared_setup):
        _, friend, task = shared_setup
        outsider = await make_user()

        with pytest.raises(PermissionDeniedError):
            await SharingService(db, feed).share_task(task.id, outsider, friend.id)

    async def test_cannot_share_with_owner(self, db, feed, shared_setup):
        owner, _, task = shared_setup

        with pytest.raises(ValidationError) as excinfo:
            await SharingService(db, feed).share_task(task.id, owner, owner.id)
        assert excinfo.value.message_key == "cannot_share_with_owner"

    async def test_unknown_target_or_task(self, db, feed, shared_setup):
        from uuid import uuid4

        owner, friend, task = shared_setup
        sharing = SharingService(db, feed)

        with pytest.raises(NotFoundError):
            await sharing.share_task(task.id, owner, uuid4())
        with pytest.raises(NotFoundError):
            await sharing.share_task(uuid4(), owner, friend.id)

    async def test_failed_notification_keeps_share_and_message(
        self, db, feed, session_factory, shared_setup, monkeypatch
    ):
        owner, friend, task = shared_setup
        # A rollback expires loaded instances; keep plain ids
        task_id, friend_id = task.id, friend.id

        async def broken_notify(self, *args, **kwargs):
            raise RuntimeError("inbox unavailable")

        monkeypatch.setattr(NotificationService, "notify", broken_notify)

        await SharingService(db, feed).share_task(task_id, owner, friend_id)

        stored = await _reload(session_factory, task_id)
        assert stored.shared_with == [friend_id]
        assert await _rows(session_factory, Notification, user_id=friend_id) == []
        assert len(await _rows(session_factory, Message, task_id=task_id)) == 1


class TestRemoveParticipant:
    async def test_owner_removes_from_both_lists(self, db, feed, session_factory, shared_setup):
        owner, friend, task = shared_setup
        sharing = SharingService(db, feed)
        await sharing.share_task(task.id, owner, friend.id)
        friend_sub = feed.subscribe(tasks_topic(friend.id))

        await sharing.remove_participant(task.id, owner.id, friend.id)

        stored = await _reload(session_factory, task.id)
        assert stored.shared_with == []
        assert stored.participants == []
        assert await friend_sub.wait() == "participant_removed"

    async def test_only_owner_may_remove(self, db, feed, shared_setup):
        owner, friend, task = shared_setup
        sharing = SharingService(db, feed)
        await sharing.share_task(task.id, owner, friend.id)

        with pytest.raises(PermissionDeniedError):
            await sharing.remove_participant(task.id, friend.id, friend.id)
