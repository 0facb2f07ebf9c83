"""Run history and dead-lettering for the plan-maintenance scheduled jobs."""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any, NamedTuple

from homecare.core.config import constants


logger = logging.getLogger(__name__)

CONSECUTIVE_FAILURE_THRESHOLD = 3


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass
class JobRuns:
    """Run counters for one scheduled job (retry drain or overdue sweep)."""

    last_success: str | None = None
    last_failure: str | None = None
    last_error: str | None = None
    consecutive_failures: int = 0
    success_count: int = 0
    failure_count: int = 0
    current_run_started: str | None = None


class DeadLetter(NamedTuple):
    """A job that kept failing across scheduler runs."""

    job_name: str
    error: str
    context: str
    timestamp: str


class JobTracker:
    """In-process run history for the scheduler's jobs, read by /health/scheduler."""

    def __init__(self) -> None:
        self._runs: dict[str, JobRuns] = {}
        self._dead_letters: deque[DeadLetter] = deque(maxlen=constants.TRACKER_DEAD_LETTER_QUEUE_MAXLEN)

    def _runs_for(self, job_name: str) -> JobRuns:
        return self._runs.setdefault(job_name, JobRuns())

    async def record_job_start(self, job_name: str) -> None:
        """Mark a run of ``job_name`` as in progress."""
        self._runs_for(job_name).current_run_started = _now_iso()

    async def record_job_success(self, job_name: str) -> None:
        """Close the current run as successful and reset the failure streak."""
        runs = self._runs_for(job_name)
        runs.last_success = _now_iso()
        runs.consecutive_failures = 0
        runs.success_count += 1
        runs.current_run_started = None

    async def record_job_failure(self, job_name: str, error: str) -> int:
        """Close the current run as failed.

        Returns:
            Length of the failure streak, including this run
        """
        runs = self._runs_for(job_name)
        runs.last_failure = _now_iso()
        runs.last_error = error[: constants.TRACKER_ERROR_MAX_CHARS]
        runs.consecutive_failures += 1
        runs.failure_count += 1
        runs.current_run_started = None
        return runs.consecutive_failures

    async def get_job_status(self, job_name: str) -> dict[str, Any]:
        """Return the run history of a job; jobs that never ran report empty counters."""
        runs = self._runs.get(job_name, JobRuns())
        return {
            "job_name": job_name,
            **asdict(runs),
            "currently_running": runs.current_run_started is not None,
        }

    async def add_to_dead_letter_queue(self, job_name: str, error: str, context: str) -> None:
        """Park a job whose failure streak reached the threshold."""
        entry = DeadLetter(job_name=job_name, error=error, context=context, timestamp=_now_iso())
        self._dead_letters.append(entry)
        logger.error("Scheduled job dead-lettered", extra=entry._asdict())

    def get_dead_letter_queue(self) -> list[dict[str, str]]:
        """Return dead-lettered jobs, oldest first."""
        return [entry._asdict() for entry in self._dead_letters]


job_tracker = JobTracker()


async def retry_job_with_backoff(
    job_func: Callable[[], Awaitable[Any]],
    job_name: str,
    max_retries: int = 3,
    base_delay: float = 2.0,
) -> None:
    """Run a scheduled job, retrying within the same run before recording a failure.

    Attempt ``n`` (0-based) that fails waits ``base_delay ** n`` seconds before
    the next one. When every attempt fails the run is recorded as failed, and a
    job failing ``CONSECUTIVE_FAILURE_THRESHOLD`` runs in a row is dead-lettered.
    Errors are never raised to APScheduler.
    """
    await job_tracker.record_job_start(job_name)

    last_error = None
    for attempt in range(max_retries):
        try:
            await job_func()
        except Exception as e:
            last_error = str(e)
            logger.warning("Job %s attempt %d/%d failed: %s", job_name, attempt + 1, max_retries, last_error)
            if attempt < max_retries - 1:
                await asyncio.sleep(base_delay**attempt)
            continue

        await job_tracker.record_job_success(job_name)
        logger.info("Job %s succeeded on attempt %d", job_name, attempt + 1)
        return

    streak = await job_tracker.record_job_failure(job_name, f"Failed after {max_retries} attempts: {last_error}")
    logger.error("Job %s failed this run", job_name, extra={"error": last_error, "consecutive_failures": streak})

    if streak >= CONSECUTIVE_FAILURE_THRESHOLD:
        await job_tracker.add_to_dead_letter_queue(
            job_name=job_name,
            error=last_error or "Unknown error",
            context=f"Failed {streak} consecutive times",
        )
