import logging
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()
_session_factory: Any = None
_dispatcher: Any = None


async def _flag_overdue_wht() -> None:
    """Job: flag boxes whose WHT certificate is past due."""
    try:
        async with _session_factory() as db:
            from docbox.boxes.wht import flag_overdue_wht

            count = await flag_overdue_wht(db, _dispatcher)
            if count > 0:
                logger.info("Flagged %d boxes with overdue WHT", count)
    except Exception:
        logger.exception("Error flagging overdue WHT boxes")


async def _process_overdue_tasks() -> None:
    """Job: remind and escalate overdue tasks."""
    try:
        async with _session_factory() as db:
            from docbox.tasks.service import process_overdue_tasks

            result = await process_overdue_tasks(db, dispatcher=_dispatcher)
            if any(result.values()):
                logger.info(
                    "Overdue tasks: %d reminders, %d escalated, %d overdue",
                    result["reminders"], result["escalated"], result["overdue"],
                )
    except Exception:
        logger.exception("Error processing overdue tasks")


def setup_scheduler(session_factory: Any, settings: Any, dispatcher: Any = None) -> None:
    """Register all periodic jobs and start the scheduler."""
    global _session_factory, _dispatcher
    _session_factory = session_factory
    _dispatcher = dispatcher

    scheduler.add_job(
        _flag_overdue_wht,
        CronTrigger(hour=settings.sweep_hour, minute=0),
        id="flag_overdue_wht",
        replace_existing=True,
    )

    scheduler.add_job(
        _process_overdue_tasks,
        CronTrigger(hour=settings.sweep_hour, minute=15),
        id="process_overdue_tasks",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Background scheduler started with %d jobs", len(scheduler.get_jobs()))


def shutdown_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
