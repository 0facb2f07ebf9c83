"""Scheduler for the retry queue drain and the overdue-home sweep."""

import logging
from functools import partial

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from homecare.core.config import settings
from homecare.core.scheduler_tracker import retry_job_with_backoff
from homecare.domain.rule import RuleSet
from homecare.services import retry_service


logger = logging.getLogger(__name__)

RETRY_JOB_NAME = "task_generation_retries"
SWEEP_JOB_NAME = "overdue_home_sweep"
JOB_NAMES = (RETRY_JOB_NAME, SWEEP_JOB_NAME)

# Global scheduler instance
scheduler = AsyncIOScheduler(timezone="UTC")


async def run_task_generation_retries(rules: RuleSet) -> None:
    """Drain a batch of the plan generation queue.

    Runs every ``settings.retry_interval_minutes`` minutes.
    """
    logger.info("Running task generation retries job")
    processed = await retry_service.process_pending_retries(settings.retry_batch_size, rules=rules)
    logger.info("Completed task generation retries job: %d succeeded", processed)


async def run_overdue_home_sweep() -> None:
    """Queue plan generation for homes whose plans are missing or stale.

    Runs daily at ``settings.overdue_sweep_hour`` (UTC).
    """
    logger.info("Running overdue home sweep job")
    scheduled = await retry_service.schedule_overdue_homes()
    logger.info("Completed overdue home sweep job: %d homes queued", scheduled)


def start_scheduler(rules: RuleSet) -> None:
    """Start the scheduler and register all jobs.

    This should be called during FastAPI app startup.
    """
    logger.info("Starting scheduler")

    scheduler.add_job(
        partial(retry_job_with_backoff, partial(run_task_generation_retries, rules), RETRY_JOB_NAME),
        trigger=IntervalTrigger(minutes=settings.retry_interval_minutes),
        id=RETRY_JOB_NAME,
        name="Process Task Generation Retries",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    logger.info(f"Scheduled task generation retries job: every {settings.retry_interval_minutes} minutes")

    scheduler.add_job(
        partial(retry_job_with_backoff, run_overdue_home_sweep, SWEEP_JOB_NAME),
        trigger=CronTrigger(hour=settings.overdue_sweep_hour, minute=0, timezone="UTC"),
        id=SWEEP_JOB_NAME,
        name="Schedule Overdue Home Task Generation",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    logger.info(f"Scheduled overdue home sweep job: daily at {settings.overdue_sweep_hour}:00 UTC")

    scheduler.start()
    logger.info("Scheduler started successfully")


def stop_scheduler() -> None:
    """Stop the scheduler.

    This should be called during FastAPI app shutdown.
    """
    logger.info("Stopping scheduler")
    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")
