"""Frequency and duration parsing utilities for maintenance scheduling."""

import calendar
import logging
import re
from datetime import date, datetime, timedelta
from enum import StrEnum
from typing import NamedTuple

from homecare.core.config import constants


logger = logging.getLogger(__name__)


class FrequencyUnit(StrEnum):
    """Calendar unit a frequency is expressed in."""

    YEARS = "years"
    MONTHS = "months"
    WEEKS = "weeks"
    SEASON = "season"  # Next season boundary, amount is ignored


class Frequency(NamedTuple):
    """A parsed frequency descriptor."""

    unit: FrequencyUnit
    amount: int


_NAMED_FREQUENCIES = {
    "yearly": Frequency(FrequencyUnit.YEARS, 1),
    "1 year": Frequency(FrequencyUnit.YEARS, 1),
    "6 months": Frequency(FrequencyUnit.MONTHS, 6),
    "3 months": Frequency(FrequencyUnit.MONTHS, 3),
    "quarterly": Frequency(FrequencyUnit.MONTHS, 3),
    "monthly": Frequency(FrequencyUnit.MONTHS, 1),
    "1 month": Frequency(FrequencyUnit.MONTHS, 1),
    "seasonal": Frequency(FrequencyUnit.SEASON, 1),
    "seasonally": Frequency(FrequencyUnit.SEASON, 1),
}

_COUNTED_FREQUENCY = re.compile(r"^(\d+)\s+(year|month|week)s?$")

DEFAULT_FREQUENCY = Frequency(FrequencyUnit.YEARS, 1)


def parse_frequency(frequency: str) -> Frequency:
    """Parse a frequency descriptor such as "yearly", "6 months" or "15 years".

    Unknown descriptors are logged and treated as yearly.

    Args:
        frequency: Frequency string from a rule template

    Returns:
        Frequency with its unit and amount
    """
    normalized = (frequency or "").strip().lower()

    if normalized in _NAMED_FREQUENCIES:
        return _NAMED_FREQUENCIES[normalized]

    match = _COUNTED_FREQUENCY.match(normalized)
    if match:
        amount = int(match.group(1))
        unit = {"year": FrequencyUnit.YEARS, "month": FrequencyUnit.MONTHS, "week": FrequencyUnit.WEEKS}[match.group(2)]
        return Frequency(unit, amount)

    logger.warning("Unknown frequency format %r, defaulting to 1 year", frequency)
    return DEFAULT_FREQUENCY


def add_months(start: date, months: int) -> date:
    """Add calendar months, clamping the day to the end of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def next_season_start(today: date) -> date:
    """Return the first day of the next meteorological season.

    Spring (Mar-May) -> Jun 1, summer (Jun-Aug) -> Sep 1, autumn (Sep-Nov) -> Dec 1,
    winter -> Mar 1 (same year in Jan/Feb, next year in December).
    """
    if 3 <= today.month < 6:
        return date(today.year, 6, 1)
    if 6 <= today.month < 9:
        return date(today.year, 9, 1)
    if 9 <= today.month < 12:
        return date(today.year, 12, 1)
    year = today.year if today.month < 3 else today.year + 1
    return date(year, 3, 1)


def apply_frequency(frequency: Frequency, today: date) -> date:
    """Advance ``today`` by a parsed frequency."""
    if frequency.unit == FrequencyUnit.YEARS:
        return add_months(today, 12 * frequency.amount)
    if frequency.unit == FrequencyUnit.MONTHS:
        return add_months(today, frequency.amount)
    if frequency.unit == FrequencyUnit.WEEKS:
        return today + timedelta(weeks=frequency.amount)
    return next_season_start(today)


def compute_due_date(frequency: str, now: datetime) -> str:
    """Compute the due date for a task repeating at ``frequency``.

    Args:
        frequency: Frequency descriptor (e.g. "yearly", "6 months", "seasonal")
        now: Current time

    Returns:
        ISO date string (YYYY-MM-DD)
    """
    return apply_frequency(parse_frequency(frequency), now.date()).isoformat()


_NUMBER = re.compile(r"\d+(?:\.\d+)?")


def parse_estimated_time(time_string: str | int | float | None) -> int:
    """Convert a free-text duration ("2 hours", "45 minutes", "1 day") into minutes.

    Days assume an eight-hour workday. Missing or unrecognised values fall back
    to the default estimate.
    """
    if isinstance(time_string, int | float) and not isinstance(time_string, bool):
        return round(time_string)
    if not time_string:
        return constants.DEFAULT_ESTIMATED_TIME_MINUTES

    lowered = time_string.lower()
    match = _NUMBER.search(lowered)
    if not match:
        return constants.DEFAULT_ESTIMATED_TIME_MINUTES
    amount = float(match.group())

    if "hour" in lowered:
        return round(amount * 60)
    if "minute" in lowered:
        return round(amount)
    if "day" in lowered:
        return round(amount * constants.WORKDAY_HOURS * 60)

    return constants.DEFAULT_ESTIMATED_TIME_MINUTES
