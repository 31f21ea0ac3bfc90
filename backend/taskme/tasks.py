"""Celery background tasks."""

import asyncio

import structlog

from taskme.worker import celery_app

logger = structlog.get_logger()


@celery_app.task(bind=True, name="taskme.tasks.send_task_reminders")
def send_task_reminders(self) -> dict:
    """
    Push the reminders that are due right now.

    Scheduled by Celery Beat every ``REMINDER_SCAN_INTERVAL_SECONDS``.
    Overlapping runs are safe: each task's reminder is claimed with a
    conditional update before it is sent.

    Returns:
        Dict with status and the scan counters
    """
    async def _process():
        from taskme.config import get_settings
        from taskme.db.session import create_engine_from_url, create_session_factory
        from taskme.services.push import get_push_gateway
        from taskme.services.reminder import ReminderScanner

        # asyncio.run opens a new loop per invocation; pooled connections
        # cannot cross loops, so each run gets its own engine.
        engine = create_engine_from_url(get_settings().database_url)
        try:
            async with create_session_factory(engine)() as db:
                scanner = ReminderScanner(db, get_push_gateway())
                result = await scanner.scan()
                return result.as_dict()
        finally:
            await engine.dispose()

    try:
        counts = asyncio.run(_process())
        logger.info("task_reminders_processed", **counts)
        return {"status": "success", **counts}
    except Exception as e:
        logger.error("task_reminders_failed", error=str(e))
        return {"status": "error", "error": str(e)}
