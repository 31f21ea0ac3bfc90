"""Repair task rows written by older clients.

Fixes, per task:
- ``participants`` that is not a list of user-id strings (reset or cleaned)
- ``date_time`` not in the canonical UTC form (normalized; unparseable
  values are reported and left alone)
- ``completed``/``status`` disagreeing with each other

Usage:
    python -m taskme.scripts.repair_tasks [--dry-run]
"""

import argparse
import asyncio
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskme.db.session import async_session_factory
from taskme.models.task import Task
from taskme.utils.datetimes import normalize_date_time


@dataclass
class RepairReport:
    checked: int = 0
    repaired: list[UUID] = field(default_factory=list)
    unparseable: list[UUID] = field(default_factory=list)


def _clean_participants(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    cleaned: list[str] = []
    for item in value:
        try:
            user_id = str(UUID(str(item)))
        except ValueError:
            continue
        if user_id not in cleaned:
            cleaned.append(user_id)
    return cleaned


def repair_task(task: Task) -> tuple[bool, bool]:
    """Fix one task in place. Returns (changed, date_time_unparseable)."""
    changed = False
    unparseable = False

    participants = _clean_participants(task.participants)
    if participants != task.participants:
        task.participants = participants
        changed = True

    try:
        normalized = normalize_date_time(task.date_time)
    except (TypeError, ValueError):
        unparseable = True
    else:
        if normalized != task.date_time:
            task.date_time = normalized
            changed = True

    if task.completed and task.status != "completed":
        task.status = "completed"
        changed = True
    elif task.status == "completed" and not task.completed:
        task.completed = True
        changed = True

    return changed, unparseable


async def repair_tasks(db: AsyncSession, dry_run: bool = False) -> RepairReport:
    """Check every task and commit the fixes unless ``dry_run``."""
    report = RepairReport()
    result = await db.execute(select(Task))
    for task in result.scalars().all():
        report.checked += 1
        changed, unparseable = repair_task(task)
        if unparseable:
            report.unparseable.append(task.id)
        if changed:
            report.repaired.append(task.id)
            print(f"  Repaired task: {task.id}")

    if dry_run:
        await db.rollback()
    else:
        await db.commit()
    return report


async def run(dry_run: bool) -> None:
    async with async_session_factory() as db:
        try:
            report = await repair_tasks(db, dry_run)
        except Exception as e:
            print(f"Error repairing tasks: {e}")
            await db.rollback()
            raise

    print("\nSummary:")
    print(f"  Checked: {report.checked}")
    print(f"  Repaired: {len(report.repaired)}")
    for task_id in report.unparseable:
        print(f"  Unparseable date_time: {task_id}")
    if dry_run:
        print("\n(Dry run - no changes made)")


def main():
    parser = argparse.ArgumentParser(description="Repair malformed task rows")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be repaired without writing",
    )
    args = parser.parse_args()
    asyncio.run(run(args.dry_run))


if __name__ == "__main__":
    main()
