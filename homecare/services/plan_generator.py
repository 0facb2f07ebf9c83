"""Rule-based maintenance plan generation."""

import logging
from datetime import UTC, datetime

from homecare.core.config import constants
from homecare.core.frequency_parser import compute_due_date
from homecare.core.logging import span
from homecare.domain.home import Home
from homecare.domain.rule import RuleSet, TaskTemplate
from homecare.domain.task import Task, TaskCategory, TaskCreate, TaskPriority
from homecare.services import rule_engine, task_service


logger = logging.getLogger(__name__)


def build_task(template: TaskTemplate, *, home_id: str, now: datetime) -> TaskCreate:
    """Materialise a rule's task template for a home, filling in defaults."""
    return TaskCreate(
        home_id=home_id,
        task_name=template.task_name,
        description=template.description or f"Maintenance task: {template.task_name}",
        frequency=template.frequency,
        due_date=compute_due_date(template.frequency, now),
        why=template.why,
        estimated_time=template.estimated_time or constants.DEFAULT_ESTIMATED_TIME_MINUTES,
        estimated_cost=template.estimated_cost or constants.DEFAULT_ESTIMATED_COST,
        category=template.category or TaskCategory.MAINTENANCE,
        priority=template.priority or TaskPriority.MEDIUM,
        steps=list(template.steps),
        completed=False,
    )


async def generate_rule_based_plan(home: Home, rules: RuleSet, *, now: datetime | None = None) -> list[Task]:
    """Create the tasks whose rules match the home and that it does not already have.

    Rules are evaluated in order. A task name that already exists for the home,
    or that an earlier rule in this run already produced, is skipped. New tasks
    are stored in a single batch.

    Args:
        home: Home to plan for
        rules: Rule set to evaluate
        now: Reference time for due dates (defaults to the current UTC time)

    Returns:
        The newly created tasks (empty when nothing new matched)

    Raises:
        db_client.DatabaseError: If a lookup or the batch insert fails
    """
    now = now or datetime.now(UTC)

    with span("plan_generator.generate_rule_based_plan"):
        attributes = home.attributes()
        pending: list[TaskCreate] = []
        seen_names: set[str] = set()

        for rule in rules:
            if not rule_engine.rule_matches(rule, attributes):
                continue

            task_name = rule.task.task_name
            if task_name in seen_names:
                continue
            seen_names.add(task_name)

            existing = await task_service.find_by_home_and_name(home_id=home.id, task_name=task_name)
            if existing:
                logger.debug("Task %s already exists for home %s", task_name, home.id)
                continue

            pending.append(build_task(rule.task, home_id=home.id, now=now))

        created = await task_service.insert_many(tasks=pending, now=now)
        logger.info("Rule-based plan for home %s: %d new tasks", home.id, len(created))
        return created
