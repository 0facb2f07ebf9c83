"""Home and owner lookups, plus the owner's plan-generation timestamp."""

import logging
from datetime import UTC, datetime
from typing import Any

from homecare.core import db_client
from homecare.core.config import constants
from homecare.core.db_client import sanitize_param
from homecare.core.frequency_parser import add_months
from homecare.core.logging import span
from homecare.domain.home import Home, User


logger = logging.getLogger(__name__)


def _to_utc_iso(moment: datetime) -> str:
    return moment.astimezone(UTC).isoformat()


def _home_from_record(record: dict[str, Any]) -> Home:
    details = record.pop("details", None) or {}
    record.pop("created_at", None)
    return Home.model_validate({**details, **record})


def generation_cutoff(now: datetime) -> datetime:
    """Moment before which a previous plan counts as stale."""
    now = now.astimezone(UTC)
    cutoff_date = add_months(now.date(), -constants.REGENERATION_INTERVAL_MONTHS)
    return now.replace(year=cutoff_date.year, month=cutoff_date.month, day=cutoff_date.day)


async def create_user(*, name: str, email: str | None = None, now: datetime | None = None) -> User:
    """Create a home owner."""
    record = await db_client.create_record(
        collection="users",
        data={"name": name, "email": email, "created_at": _to_utc_iso(now or datetime.now(UTC))},
    )
    logger.info("Created user %s", record["id"])
    return User.model_validate(record)


async def get_user(*, user_id: str) -> User | None:
    """Return the user, or None when it does not exist."""
    try:
        record = await db_client.get_record(collection="users", record_id=user_id)
    except db_client.RecordNotFoundError:
        return None
    return User.model_validate(record)


async def create_home(
    *,
    user_id: str,
    year_built: int,
    square_footage: int,
    location: str = "",
    name: str | None = None,
    home_type: str | None = None,
    now: datetime | None = None,
    **attributes: Any,
) -> Home:
    """Register a home.

    Feature attributes (``roof_type``, ``windows``, ``yard_garden``, ...) are passed
    as keyword arguments and may be nested.

    Raises:
        db_client.DatabaseError: If the owner does not exist or the insert fails
    """
    with span("home_service.create_home"):
        data = {
            "user_id": user_id,
            "name": name,
            "year_built": year_built,
            "square_footage": square_footage,
            "location": location,
            "home_type": home_type,
            "details": attributes,
            "created_at": _to_utc_iso(now or datetime.now(UTC)),
        }
        record = await db_client.create_record(collection="homes", data=data)
        logger.info("Created home %s for user %s", record["id"], user_id)
        return _home_from_record(record)


async def get_home(*, home_id: str) -> Home | None:
    """Return the home with its feature attributes, or None when it does not exist."""
    try:
        record = await db_client.get_record(collection="homes", record_id=home_id)
    except db_client.RecordNotFoundError:
        return None
    return _home_from_record(record)


async def list_homes_for_user(*, user_id: str) -> list[Home]:
    """Return every home owned by the user."""
    homes: list[Home] = []
    page = 1
    while True:
        records = await db_client.list_records(
            collection="homes",
            filter_query=f'user_id = "{sanitize_param(user_id)}"',
            page=page,
            per_page=constants.DEFAULT_PER_PAGE_LIMIT,
        )
        homes.extend(_home_from_record(record) for record in records)
        if len(records) < constants.DEFAULT_PER_PAGE_LIMIT:
            return homes
        page += 1


async def list_users_due_for_generation(*, now: datetime | None = None) -> list[User]:
    """Return users who never had a plan generated, or whose last plan is stale."""
    cutoff = _to_utc_iso(generation_cutoff(now or datetime.now(UTC)))
    users: list[User] = []
    page = 1
    while True:
        records = await db_client.list_records(
            collection="users",
            filter_query=f'(last_tasks_generated_at = null || last_tasks_generated_at < "{cutoff}")',
            page=page,
            per_page=constants.DEFAULT_PER_PAGE_LIMIT,
        )
        users.extend(User.model_validate(record) for record in records)
        if len(records) < constants.DEFAULT_PER_PAGE_LIMIT:
            return users
        page += 1


async def should_generate_tasks(*, user_id: str, now: datetime | None = None) -> bool:
    """Decide whether a new plan is due for the user's homes.

    A plan is due when the user has never had one generated or the last one is
    older than the regeneration interval. Unknown users, and users that cannot be
    looked up, are not due.
    """
    try:
        user = await get_user(user_id=user_id)
    except db_client.DatabaseError as e:
        logger.error("Could not look up user %s for task generation: %s", user_id, e)
        return False

    if user is None:
        logger.warning("User %s not found, skipping task generation", user_id)
        return False
    if user.last_tasks_generated_at is None:
        return True

    last_generated = user.last_tasks_generated_at
    if last_generated.tzinfo is None:
        last_generated = last_generated.replace(tzinfo=UTC)
    return last_generated < generation_cutoff(now or datetime.now(UTC))


async def update_task_generation_timestamp(*, user_id: str, now: datetime | None = None) -> bool:
    """Record that a plan was just generated for the user.

    Returns:
        False when the user does not exist (logged, not raised)
    """
    try:
        await db_client.update_record(
            collection="users",
            record_id=user_id,
            data={"last_tasks_generated_at": _to_utc_iso(now or datetime.now(UTC))},
        )
    except db_client.RecordNotFoundError:
        logger.warning("Cannot stamp task generation time, user %s not found", user_id)
        return False
    return True
