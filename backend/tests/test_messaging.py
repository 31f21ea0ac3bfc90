"""Task chat and new-message pushes."""

from uuid import uuid4

import pytest
import pytest_asyncio

from taskme.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from taskme.models.task import Task
from taskme.services.changes import messages_topic
from taskme.services.messaging import (
    MessageService,
    message_preview,
    message_recipients,
)
from taskme.services.sharing import SharingService
from taskme.services.tasks import TaskService


class TestRecipients:
    def test_participants_then_owner_without_sender(self):
        owner, first, second = uuid4(), uuid4(), uuid4()
        task = Task(user_id=owner, participants=[str(first), str(second)])

        assert message_recipients(task, first) == [second, owner]
        assert message_recipients(task, owner) == [first, second]

    def test_no_participants_means_owner_only(self):
        owner = uuid4()
        task = Task(user_id=owner, participants=[])

        assert message_recipients(task, uuid4()) == [owner]
        assert message_recipients(task, owner) == []

    def test_duplicates_collapse(self):
        owner, member = uuid4(), uuid4()
        task = Task(user_id=owner, participants=[str(member), str(member), str(owner)])

        assert message_recipients(task, uuid4()) == [member, owner]

    def test_preview_is_trimmed(self):
        assert message_preview("  see\n you  there ") == "see you there"
        long = message_preview("x" * 150)
        assert len(long) == 100
        assert long.endswith("…")


@pytest_asyncio.fixture
async def chat(db, feed, make_user):
    owner = await make_user(name="Owner", push_token="token-owner")
    first = await make_user(name="First", push_token="token-first")
    second = await make_user(name="Second", push_token="token-second")
    task = await TaskService(db, feed).create_task(owner.id, "Team dinner", "2024-07-01T18:00:00Z")
    sharing = SharingService(db, feed)
    await sharing.share_task(task.id, owner, first.id)
    await sharing.share_task(task.id, owner, second.id)
    return owner, first, second, task


class TestSendMessage:
    async def test_pushes_everyone_but_sender(self, db, feed, push_gateway, chat):
        owner, first, second, task = chat

        message = await MessageService(db, push_gateway, feed).send_message(task.id, first, "On my way")

        assert message.sender_name == "First"
        assert sorted(m.token for m in push_gateway.sent) == ["token-owner", "token-second"]
        push = push_gateway.sent_to("token-owner")[0]
        assert push.body == "First: On my way"
        assert push.data == {
            "task_id": str(task.id),
            "message_id": str(message.id),
            "type": "new_message",
        }

    async def test_push_failure_keeps_message(self, db, feed, push_gateway, chat):
        owner, first, second, task = chat
        push_gateway.failing_tokens.add("token-owner")
        service = MessageService(db, push_gateway, feed)

        await service.send_message(task.id, first, "Running late")

        messages = await service.list_messages(task.id, owner.id)
        assert [m.content for m in messages][-1] == "Running late"
        assert len(push_gateway.sent_to("token-second")) == 1

    async def test_recipient_without_token_is_skipped(self, db, feed, push_gateway, make_user, chat):
        owner, first, second, task = chat
        silent = await make_user(name="Silent")
        await SharingService(db, feed).share_task(task.id, owner, silent.id)

        await MessageService(db, push_gateway, feed).send_message(task.id, owner, "Hello")

        assert sorted(m.token for m in push_gateway.sent) == ["token-first", "token-second"]

    async def test_empty_content_rejected(self, db, feed, push_gateway, chat):
        _, first, _, task = chat

        with pytest.raises(ValidationError):
            await MessageService(db, push_gateway, feed).send_message(task.id, first, "   ")
        assert push_gateway.sent == []

    async def test_outsider_cannot_post(self, db, feed, push_gateway, make_user, chat):
        *_, task = chat
        outsider = await make_user()

        with pytest.raises(PermissionDeniedError):
            await MessageService(db, push_gateway, feed).send_message(task.id, outsider, "hi")

    async def test_signals_chat_topic(self, db, feed, push_gateway, chat):
        _, first, _, task = chat
        subscription = feed.subscribe(messages_topic(task.id))

        await MessageService(db, push_gateway, feed).send_message(task.id, first, "ping")

        assert await subscription.wait() == "message_created"


class TestReadAndDelete:
    async def test_mark_read_only_touches_others_messages(self, db, feed, chat):
        owner, first, _, task = chat
        service = MessageService(db, feed=feed)
        await service.send_message(task.id, first, "one")
        await service.send_message(task.id, owner, "two")

        # The share announcements and "two" are the owner's own
        assert await service.mark_read(task.id, owner.id) == 1
        assert await service.mark_read(task.id, owner.id) == 0

    async def test_delete_removes_only_that_message(self, db, feed, chat):
        _, first, _, task = chat
        service = MessageService(db, feed=feed)
        keep = await service.send_message(task.id, first, "keep")
        drop = await service.send_message(task.id, first, "drop")

        await service.delete_message(drop.id, first.id)

        remaining = [m.id for m in await service.list_messages(task.id, first.id)]
        assert keep.id in remaining
        assert drop.id not in remaining

    async def test_owner_may_delete_any_message(self, db, feed, chat):
        owner, first, _, task = chat
        service = MessageService(db, feed=feed)
        message = await service.send_message(task.id, first, "oops")

        await service.delete_message(message.id, owner.id)

        with pytest.raises(NotFoundError):
            await service.delete_message(message.id, owner.id)

    async def test_other_participant_may_not_delete(self, db, feed, chat):
        _, first, second, task = chat
        service = MessageService(db, feed=feed)
        message = await service.send_message(task.id, first, "mine")

        with pytest.raises(PermissionDeniedError):
            await service.delete_message(message.id, second.id)
