"""Persisted queue of plan (re)generation requests, its processor and the overdue-home sweep."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from homecare.core import db_client
from homecare.core.config import constants
from homecare.core.db_client import sanitize_param
from homecare.core.logging import log_with_context, span
from homecare.domain.retry import RetryRecord, RetryStatus
from homecare.domain.rule import RuleSet
from homecare.services import home_service, maintenance_service


logger = logging.getLogger(__name__)

COLLECTION = "task_generation_retries"


def _iso(moment: datetime) -> str:
    return moment.astimezone(UTC).isoformat()


async def _find_active(home_id: str) -> dict[str, Any] | None:
    return await db_client.get_first_record(
        collection=COLLECTION,
        filter_query=(
            f'home_id = "{sanitize_param(home_id)}" '
            f'&& (status = "{RetryStatus.PENDING}" || status = "{RetryStatus.PROCESSING}")'
        ),
        sort="+created_at,+id",
    )


async def has_active_retry(*, home_id: str) -> bool:
    """Return True when the home already has a pending or in-progress request."""
    return await _find_active(home_id) is not None


async def enqueue_task_generation(*, home_id: str, now: datetime | None = None) -> RetryRecord:
    """Queue a plan generation request for a home.

    At most one active request exists per home: when one is already pending or
    being processed it is returned instead of creating another.

    Args:
        home_id: Home whose plan should be generated
        now: Queue time (defaults to the current UTC time)

    Returns:
        The new or already active retry record
    """
    with span("retry_service.enqueue_task_generation"):
        existing = await _find_active(home_id)
        if existing:
            logger.info("Home %s already has an active retry %s", home_id, existing["id"])
            return RetryRecord.model_validate(existing)

        record = await db_client.create_record(
            collection=COLLECTION,
            data={
                "home_id": home_id,
                "status": RetryStatus.PENDING,
                "attempts": 0,
                "created_at": _iso(now or datetime.now(UTC)),
            },
        )
        logger.info("Queued task generation retry %s for home %s", record["id"], home_id)
        return RetryRecord.model_validate(record)


async def _release_stale_claims(now: datetime) -> int:
    """Return claims abandoned by a crashed or stalled worker to the queue."""
    cutoff = _iso(now - timedelta(minutes=constants.RETRY_CLAIM_TIMEOUT_MINUTES))
    stale = await db_client.list_records(
        collection=COLLECTION,
        filter_query=f'status = "{RetryStatus.PROCESSING}" && claimed_at < "{cutoff}"',
        per_page=constants.DEFAULT_PER_PAGE_LIMIT,
    )

    released = 0
    for record in stale:
        if await db_client.update_record_if(
            collection=COLLECTION,
            record_id=record["id"],
            data={"status": RetryStatus.PENDING, "claimed_at": None},
            expected={"status": RetryStatus.PROCESSING, "claimed_at": record["claimed_at"]},
        ):
            released += 1

    if released:
        logger.warning("Released %d stale retry claims", released)
    return released


async def dequeue_batch(limit: int, *, now: datetime | None = None) -> list[RetryRecord]:
    """Claim up to ``limit`` pending requests, oldest first.

    Only requests with attempts left are eligible. Each one is moved from pending
    to processing with a conditional update, so a request claimed by a concurrent
    run is skipped rather than processed twice.

    Returns:
        The records claimed by this call, in queue order
    """
    now = now or datetime.now(UTC)
    await _release_stale_claims(now)

    candidates = await db_client.list_records(
        collection=COLLECTION,
        filter_query=f'status = "{RetryStatus.PENDING}" && attempts < "{constants.RETRY_MAX_ATTEMPTS}"',
        sort="+created_at,+id",
        per_page=limit,
    )

    claimed = []
    claimed_at = _iso(now)
    for record in candidates:
        won = await db_client.update_record_if(
            collection=COLLECTION,
            record_id=record["id"],
            data={"status": RetryStatus.PROCESSING, "claimed_at": claimed_at},
            expected={"status": RetryStatus.PENDING},
        )
        if won:
            record.update(status=RetryStatus.PROCESSING, claimed_at=claimed_at)
            claimed.append(RetryRecord.model_validate(record))
        else:
            logger.debug("Retry %s was claimed by another worker", record["id"])
    return claimed


async def _record_failure(retry: RetryRecord, error: Exception, now: datetime) -> None:
    attempts = retry.attempts + 1
    status = RetryStatus.FAILED if attempts >= constants.RETRY_MAX_ATTEMPTS else RetryStatus.PENDING
    await db_client.update_record(
        collection=COLLECTION,
        record_id=retry.id,
        data={
            "status": status,
            "attempts": attempts,
            "last_attempt": _iso(now),
            "error": str(error),
            "claimed_at": None,
        },
    )
    log_with_context(
        logger,
        "error",
        "Task generation retry failed",
        retry_id=retry.id,
        home_id=retry.home_id,
        attempts=attempts,
        status=str(status),
        error=str(error),
    )


async def _record_completion(retry: RetryRecord, now: datetime) -> bool:
    """Mark a retry completed once its plan has been stored.

    The plan is already persisted at this point, so a failed write is logged and
    the record is left claimed rather than counted as a failed attempt.
    """
    try:
        await db_client.update_record(
            collection=COLLECTION,
            record_id=retry.id,
            data={"status": RetryStatus.COMPLETED, "completed_at": _iso(now), "claimed_at": None},
        )
    except (db_client.DatabaseError, db_client.RecordNotFoundError) as e:
        log_with_context(
            logger,
            "error",
            "Could not mark task generation retry completed",
            retry_id=retry.id,
            home_id=retry.home_id,
            error=str(e),
        )
        return False
    return True


async def process_pending_retries(limit: int = 10, *, rules: RuleSet, now: datetime | None = None) -> int:
    """Drain up to ``limit`` queued requests, regenerating each home's plan.

    Requests are handled one at a time; a failure only affects its own record.
    A missing home fails the request immediately. Any other failure counts as an
    attempt, and the request fails for good once it reaches the attempt cap.

    Args:
        limit: Maximum number of requests to process
        rules: Rule set for the rule-based fallback
        now: Reference time (defaults to the current UTC time)

    Returns:
        Number of requests completed successfully
    """
    now = now or datetime.now(UTC)

    with span("retry_service.process_pending_retries"):
        batch = await dequeue_batch(limit, now=now)
        logger.info("Processing %d task generation retries", len(batch))

        success_count = 0
        for retry in batch:
            try:
                home = await home_service.get_home(home_id=retry.home_id)
                if home is None:
                    logger.warning("Home %s not found for retry %s", retry.home_id, retry.id)
                    await db_client.update_record(
                        collection=COLLECTION,
                        record_id=retry.id,
                        data={"status": RetryStatus.FAILED, "error": "Home not found", "claimed_at": None},
                    )
                    continue

                result = await maintenance_service.generate_maintenance_plan(
                    home, rules=rules, use_ai=True, force_generation=True, now=now
                )
            except Exception as e:
                try:
                    await _record_failure(retry, e, now)
                except (db_client.DatabaseError, db_client.RecordNotFoundError) as update_error:
                    logger.error("Could not record failure for retry %s: %s", retry.id, update_error)
                continue

            logger.info("Generated %d tasks for home %s (retry %s)", len(result.tasks), home.id, retry.id)
            if await _record_completion(retry, now):
                success_count += 1

        logger.info("Completed %d of %d task generation retries", success_count, len(batch))
        return success_count


async def schedule_overdue_homes(*, now: datetime | None = None) -> int:
    """Queue plan generation for every home whose owner's plan is missing or stale.

    Homes that already have an active request are skipped, so repeated sweeps do
    not duplicate work. A failure to queue one home is logged and does not stop
    the sweep.

    Returns:
        Number of homes queued
    """
    now = now or datetime.now(UTC)

    with span("retry_service.schedule_overdue_homes"):
        users = await home_service.list_users_due_for_generation(now=now)
        logger.info("Found %d users that may need task regeneration", len(users))

        scheduled = 0
        for user in users:
            for home in await home_service.list_homes_for_user(user_id=user.id):
                try:
                    if await has_active_retry(home_id=home.id):
                        logger.debug("Home %s already has an active retry, skipping", home.id)
                        continue
                    await enqueue_task_generation(home_id=home.id, now=now)
                    scheduled += 1
                except db_client.DatabaseError as e:
                    logger.error("Error scheduling task regeneration for home %s: %s", home.id, e)

        logger.info("Scheduled task generation for %d homes", scheduled)
        return scheduled
