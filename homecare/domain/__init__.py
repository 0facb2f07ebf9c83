"""Domain models and DTOs."""

from homecare.domain.home import Home, User
from homecare.domain.plan import PlanResult, PlanSource
from homecare.domain.retry import RetryRecord, RetryStatus
from homecare.domain.rule import Condition, Rule, RuleSet, TaskTemplate, load_rules, parse_rules
from homecare.domain.task import Task, TaskCategory, TaskCreate, TaskPriority


__all__ = [
    "Condition",
    "Home",
    "PlanResult",
    "PlanSource",
    "RetryRecord",
    "RetryStatus",
    "Rule",
    "RuleSet",
    "Task",
    "TaskCategory",
    "TaskCreate",
    "TaskPriority",
    "TaskTemplate",
    "User",
    "load_rules",
    "parse_rules",
]
