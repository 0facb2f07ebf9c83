"""Task persistence: lookups used for deduplication and batch inserts."""

import logging
from datetime import UTC, datetime

from homecare.core import db_client
from homecare.core.config import constants
from homecare.core.db_client import sanitize_param
from homecare.core.logging import span
from homecare.domain.task import Task, TaskCreate


logger = logging.getLogger(__name__)

COLLECTION = "tasks"


async def find_by_home_and_name(*, home_id: str, task_name: str) -> Task | None:
    """Return the task with this name for the home, if one exists."""
    record = await db_client.get_first_record(
        collection=COLLECTION,
        filter_query=f'home_id = "{sanitize_param(home_id)}" && task_name = "{sanitize_param(task_name)}"',
    )
    return Task.model_validate(record) if record else None


async def insert_many(*, tasks: list[TaskCreate], now: datetime | None = None) -> list[Task]:
    """Persist a batch of tasks in a single transaction.

    An empty batch is a no-op.

    Raises:
        db_client.DatabaseError: If the batch could not be stored (nothing is stored)
    """
    if not tasks:
        return []

    with span("task_service.insert_many"):
        created_at = (now or datetime.now(UTC)).isoformat()
        records = [{**task.model_dump(mode="json"), "created_at": created_at} for task in tasks]
        created = await db_client.create_records(collection=COLLECTION, records=records)

        logger.info("Inserted %d tasks for home %s", len(created), tasks[0].home_id)
        return [Task.model_validate(record) for record in created]


async def list_tasks_for_home(*, home_id: str) -> list[Task]:
    """Return every task belonging to a home, oldest first."""
    tasks: list[Task] = []
    page = 1
    while True:
        records = await db_client.list_records(
            collection=COLLECTION,
            filter_query=f'home_id = "{sanitize_param(home_id)}"',
            sort="+created_at,+id",
            page=page,
            per_page=constants.DEFAULT_PER_PAGE_LIMIT,
        )
        tasks.extend(Task.model_validate(record) for record in records)
        if len(records) < constants.DEFAULT_PER_PAGE_LIMIT:
            return tasks
        page += 1
