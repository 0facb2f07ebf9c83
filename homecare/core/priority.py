"""Priority derivation from due dates."""

from datetime import UTC, date, datetime, time

from homecare.core.config import constants
from homecare.domain.task import TaskPriority


def days_until(due_date: str | date, now: datetime) -> float:
    """Fractional days from ``now`` until midnight of ``due_date`` (negative when past)."""
    due = date.fromisoformat(due_date) if isinstance(due_date, str) else due_date
    due_at = datetime.combine(due, time.min, tzinfo=now.tzinfo)
    return (due_at - now).total_seconds() / 86400


def classify_priority(due_date: str | date, now: datetime | None = None) -> TaskPriority:
    """Derive a priority tier from how soon a task is due.

    Raises:
        ValueError: If ``due_date`` is not an ISO date
    """
    now = now or datetime.now(UTC)
    remaining = days_until(due_date, now)

    if remaining < constants.PRIORITY_HIGH_WITHIN_DAYS:
        return TaskPriority.HIGH
    if remaining < constants.PRIORITY_MEDIUM_WITHIN_DAYS:
        return TaskPriority.MEDIUM
    return TaskPriority.LOW
