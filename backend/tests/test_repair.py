"""Repair of malformed task rows."""

from uuid import uuid4

from sqlalchemy import select

from taskme.models.task import Task
from taskme.scripts.repair_tasks import repair_task, repair_tasks


def transient(**overrides) -> Task:
    values = dict(
        title="Old row",
        date_time="2024-06-01T10:00:00.000Z",
        participants=[],
        completed=False,
        status="in_progress",
        user_id=uuid4(),
    )
    values.update(overrides)
    return Task(**values)


class TestRepairTask:
    def test_clean_row_untouched(self):
        assert repair_task(transient()) == (False, False)

    def test_participants_cleaned(self):
        member = uuid4()
        task = transient(participants=[str(member), "not-a-uuid", str(member)])

        changed, _ = repair_task(task)

        assert changed
        assert task.participants == [str(member)]

    def test_non_list_participants_reset(self):
        task = transient(participants={"a": 1})
        repair_task(task)
        assert task.participants == []

    def test_date_time_normalized(self):
        task = transient(date_time="2024-06-01T13:00:00+03:00")
        assert repair_task(task) == (True, False)
        assert task.date_time == "2024-06-01T10:00:00.000Z"

    def test_unparseable_date_time_reported(self):
        task = transient(date_time="next tuesday")
        assert repair_task(task) == (False, True)
        assert task.date_time == "next tuesday"

    def test_completed_status_reconciled(self):
        done = transient(completed=True)
        repair_task(done)
        assert done.status == "completed"

        marked = transient(status="completed")
        repair_task(marked)
        assert marked.completed is True


class TestRepairTasks:
    async def test_commits_fixes(self, db, session_factory, make_user):
        owner = await make_user()
        db.add(transient(user_id=owner.id, date_time="2024-06-01T10:00:00Z"))
        await db.commit()

        report = await repair_tasks(db)

        assert report.checked == 1
        assert len(report.repaired) == 1
        async with session_factory() as session:
            stored = (await session.execute(select(Task))).scalar_one()
            assert stored.date_time == "2024-06-01T10:00:00.000Z"

    async def test_dry_run_writes_nothing(self, db, session_factory, make_user):
        owner = await make_user()
        db.add(transient(user_id=owner.id, date_time="2024-06-01T10:00:00Z"))
        await db.commit()

        report = await repair_tasks(db, dry_run=True)

        assert len(report.repaired) == 1
        async with session_factory() as session:
            stored = (await session.execute(select(Task))).scalar_one()
            assert stored.date_time == "2024-06-01T10:00:00Z"
