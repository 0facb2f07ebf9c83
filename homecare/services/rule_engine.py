"""Evaluation of rule conditions against home attributes."""

import logging
from collections.abc import Mapping
from typing import Any

from homecare.domain.home import Home
from homecare.domain.rule import (
    AlwaysCondition,
    ComparisonCondition,
    Condition,
    EqualityCondition,
    ExistsCondition,
    IncludesCondition,
    InequalityCondition,
    Rule,
    UnknownCondition,
)


logger = logging.getLogger(__name__)

_MISSING = object()


def resolve_property(attributes: Mapping[str, Any], path: str) -> Any:
    """Look up a plain or dotted property path.

    Returns the sentinel ``_MISSING`` when any segment is absent, or when an
    intermediate segment is null or not a container.
    """
    current: Any = attributes
    for part in path.split("."):
        if isinstance(current, Mapping):
            if part not in current:
                return _MISSING
            current = current[part]
        elif isinstance(current, list | tuple) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return _MISSING
    return current


def _strict_equals(left: Any, right: Any) -> bool:
    """Equality that does not treat booleans and numbers as interchangeable."""
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


def _compare(operator: str, left: Any, right: Any) -> bool:
    if left is None or right is None:
        return False
    try:
        if operator == "<":
            return left < right
        if operator == ">":
            return left > right
        if operator == "<=":
            return left <= right
        return left >= right
    except TypeError:
        logger.debug("Incomparable values %r %s %r", left, operator, right)
        return False


def evaluate_condition(condition: Condition, home: Home | Mapping[str, Any]) -> bool:
    """Evaluate a single rule condition against a home.

    Missing attributes never match. Unknown operators are logged and never match.
    """
    if isinstance(condition, AlwaysCondition):
        return True

    if isinstance(condition, UnknownCondition):
        logger.warning("Unknown operator %s in task rule", condition.operator)
        return False

    attributes = home.attributes() if isinstance(home, Home) else home
    value = resolve_property(attributes, condition.property)
    if value is _MISSING:
        return False

    if isinstance(condition, ExistsCondition):
        return value is not None
    if isinstance(condition, ComparisonCondition):
        return _compare(condition.operator, value, condition.value)
    if isinstance(condition, EqualityCondition):
        return _strict_equals(value, condition.value)
    if isinstance(condition, InequalityCondition):
        return not _strict_equals(value, condition.value)
    if isinstance(condition, IncludesCondition):
        return isinstance(value, list | tuple) and any(_strict_equals(item, condition.value) for item in value)

    logger.warning("Unhandled condition type %s", type(condition).__name__)
    return False


def rule_matches(rule: Rule, home: Home | Mapping[str, Any]) -> bool:
    """Return True when every condition of the rule holds for the home."""
    attributes = home.attributes() if isinstance(home, Home) else home
    return all(evaluate_condition(condition, attributes) for condition in rule.all_conditions)
