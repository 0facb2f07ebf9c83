"""Declarative maintenance rules: conditions over home attributes and the task they produce."""

import json
import logging
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, model_validator

from homecare.domain.task import TaskCategory, TaskPriority


logger = logging.getLogger(__name__)


class _ConditionBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    property: str = Field(..., description="Attribute name or dotted path (e.g. 'windows.type')")


class AlwaysCondition(_ConditionBase):
    """Matches every home."""

    property: Literal["always"] = "always"
    operator: Literal["true"] = "true"


class ComparisonCondition(_ConditionBase):
    """Ordered comparison against a constant."""

    operator: Literal["<", ">", "<=", ">="]
    value: Any


class EqualityCondition(_ConditionBase):
    """Strict equality against a constant."""

    operator: Literal["===", "=="]
    value: Any


class InequalityCondition(_ConditionBase):
    """Strict inequality against a constant."""

    operator: Literal["!==", "!="]
    value: Any


class IncludesCondition(_ConditionBase):
    """The attribute is a list containing ``value``."""

    operator: Literal["includes"]
    value: Any


class ExistsCondition(_ConditionBase):
    """The attribute is present and not null."""

    operator: Literal["exists"]
    value: Any = None


class UnknownCondition(_ConditionBase):
    """A condition whose operator is not recognised; never matches."""

    operator: str
    value: Any = None


_OPERATOR_TAGS = {
    "<": "comparison",
    ">": "comparison",
    "<=": "comparison",
    ">=": "comparison",
    "===": "equality",
    "==": "equality",
    "!==": "inequality",
    "!=": "inequality",
    "includes": "includes",
    "exists": "exists",
}


def _condition_tag(raw: Any) -> str:
    """Pick the condition variant from the raw operator value."""
    if isinstance(raw, dict):
        prop, operator = raw.get("property"), raw.get("operator")
    else:
        prop, operator = getattr(raw, "property", None), getattr(raw, "operator", None)

    if prop == "always" and operator == "true":
        return "always"
    return _OPERATOR_TAGS.get(operator, "unknown")


Condition = Annotated[
    Annotated[AlwaysCondition, Tag("always")]
    | Annotated[ComparisonCondition, Tag("comparison")]
    | Annotated[EqualityCondition, Tag("equality")]
    | Annotated[InequalityCondition, Tag("inequality")]
    | Annotated[IncludesCondition, Tag("includes")]
    | Annotated[ExistsCondition, Tag("exists")]
    | Annotated[UnknownCondition, Tag("unknown")],
    Discriminator(_condition_tag),
]


class TaskTemplate(BaseModel):
    """The task a rule produces when it matches."""

    model_config = ConfigDict(frozen=True)

    task_name: str
    description: str | None = None
    frequency: str = "yearly"
    why: str | None = None
    estimated_time: int | None = None
    estimated_cost: float | None = None
    category: TaskCategory | None = None
    priority: TaskPriority | None = None
    steps: tuple[str, ...] = ()


class Rule(BaseModel):
    """One or more conditions (all must hold) and the task they produce.

    ``condition`` is the older single-condition form; ``conditions`` takes
    precedence when both are given. A rule with neither always matches.
    """

    model_config = ConfigDict(frozen=True)

    conditions: tuple[Condition, ...] | None = None
    condition: Condition | None = None
    task: TaskTemplate

    @model_validator(mode="after")
    def _warn_unknown_operators(self) -> "Rule":
        for condition in self.all_conditions:
            if isinstance(condition, UnknownCondition):
                logger.warning(
                    "Rule uses unknown operator; it will never match",
                    extra={"task_name": self.task.task_name, "operator": condition.operator},
                )
        return self

    @property
    def all_conditions(self) -> tuple[Condition, ...]:
        """Conditions to evaluate, normalising the legacy single-condition form."""
        if self.conditions is not None:
            return self.conditions
        if self.condition is not None:
            return (self.condition,)
        return ()


RuleSet = tuple[Rule, ...]


class _RuleDocument(BaseModel):
    rules: list[Rule]


def parse_rules(document: dict[str, Any]) -> RuleSet:
    """Validate a rule document (``{"rules": [...]}``) into an immutable rule set."""
    return tuple(_RuleDocument.model_validate(document).rules)


def load_rules(path: str | Path) -> RuleSet:
    """Load a rule set from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist
        pydantic.ValidationError: If a rule is malformed
    """
    with Path(path).open(encoding="utf-8") as f:
        document = json.load(f)

    rules = parse_rules(document)
    logger.info("Loaded task rules", extra={"path": str(path), "count": len(rules)})
    return rules
