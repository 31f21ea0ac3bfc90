"""Alert coordination over successive task snapshots."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from taskme.schemas import TaskRead
from taskme.services.alerts import AlertCoordinator, Overdue, ReminderDue, TaskAdded, TaskCompleted

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
FAR = "2024-06-10T12:00:00.000Z"


def task(date_time: str = FAR, **overrides) -> TaskRead:
    values = dict(
        id=uuid4(),
        title="Task",
        details="",
        type="other",
        date_time=date_time,
        priority="medium",
        reminder_minutes=10,
        repeat="none",
        completed=False,
        status="in_progress",
        reminder_sent=False,
        user_id=uuid4(),
        participants=[],
        shared_with=[],
        created_at=NOW,
        updated_at=NOW,
    )
    values.update(overrides)
    return TaskRead(**values)


def coordinator() -> AlertCoordinator:
    return AlertCoordinator(upcoming=timedelta(minutes=60))


class TestTransitions:
    def test_first_snapshot_raises_no_transitions(self):
        alerts = coordinator()
        assert alerts.observe([task()], NOW) == []

    def test_added_and_completed(self):
        alerts = coordinator()
        existing = task(title="Existing")
        alerts.observe([existing], NOW)

        added = task(title="New")
        raised = alerts.observe([existing, added], NOW)
        assert raised == [TaskAdded(added.id, "New")]

        done = existing.model_copy(update={"completed": True, "status": "completed"})
        raised = alerts.observe([done, added], NOW)
        assert raised == [TaskCompleted(existing.id, "Existing")]

    def test_drain_empties_queue(self):
        alerts = coordinator()
        alerts.observe([], NOW)
        alerts.observe([task()], NOW)

        assert len(alerts.drain()) == 1
        assert alerts.drain() == []


class TestConditions:
    def test_due_soon_raised_once(self):
        alerts = coordinator()
        soon = task("2024-06-01T12:30:00.000Z", title="Soon")

        assert alerts.observe([soon], NOW) == [ReminderDue(soon.id, "Soon")]
        assert alerts.observe([soon], NOW + timedelta(minutes=1)) == []

    def test_due_becomes_overdue(self):
        alerts = coordinator()
        soon = task("2024-06-01T12:30:00.000Z", title="Soon")
        alerts.observe([soon], NOW)

        raised = alerts.observe([soon], NOW + timedelta(minutes=31))

        assert raised == [Overdue(soon.id, "Soon")]
        assert [a.kind for a in alerts.pending] == ["overdue"]

    def test_completion_retracts_condition(self):
        alerts = coordinator()
        late = task("2024-06-01T11:00:00.000Z")
        alerts.observe([late], NOW)
        assert [a.kind for a in alerts.pending] == ["overdue"]

        done = late.model_copy(update={"completed": True, "status": "completed"})
        alerts.observe([done], NOW)

        assert [a.kind for a in alerts.pending] == ["task_completed"]

    def test_cancelled_tasks_raise_nothing(self):
        alerts = coordinator()
        assert alerts.observe([task("2024-06-01T11:00:00.000Z", status="cancelled")], NOW) == []

    def test_dismissed_condition_stays_quiet_until_it_clears(self):
        alerts = coordinator()
        late = task("2024-06-01T11:00:00.000Z")
        alerts.observe([late], NOW)

        assert alerts.dismiss("overdue", late.id) is True
        assert alerts.pending == []
        assert alerts.observe([late], NOW + timedelta(minutes=5)) == []

        moved = late.model_copy(update={"date_time": FAR})
        alerts.observe([moved], NOW)
        back = late.model_copy()
        assert alerts.observe([back], NOW) == [Overdue(late.id, "Task")]

    def test_dismiss_unknown(self):
        assert coordinator().dismiss("overdue", uuid4()) is False

    def test_message_is_localized(self):
        alert = ReminderDue(uuid4(), "Dentist")
        assert alert.message("en") == "Task coming up: Dentist"
        assert alert.to_dict("en")["kind"] == "reminder_due"
