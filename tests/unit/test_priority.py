"""Tests for due-date based priority classification."""

from datetime import UTC, date, datetime

import pytest

from homecare.core.priority import classify_priority, days_until
from homecare.domain.task import TaskPriority


NOW = datetime(2023, 1, 1, 12, 0, tzinfo=UTC)


@pytest.mark.unit
class TestClassifyPriority:
    """Tests for classify_priority."""

    @pytest.mark.parametrize(
        ("due_date", "expected"),
        [
            ("2022-12-01", TaskPriority.HIGH),
            ("2023-01-15", TaskPriority.HIGH),
            ("2023-01-31", TaskPriority.HIGH),
            ("2023-02-01", TaskPriority.MEDIUM),
            ("2023-03-15", TaskPriority.MEDIUM),
            ("2023-04-02", TaskPriority.LOW),
            ("2024-01-01", TaskPriority.LOW),
        ],
    )
    def test_thresholds(self, due_date, expected):
        """Test the 30 and 90 day boundaries."""
        assert classify_priority(due_date, NOW) == expected

    def test_accepts_date_objects(self):
        """Test that date instances are accepted as well as ISO strings."""
        assert classify_priority(date(2023, 1, 10), NOW) == TaskPriority.HIGH

    def test_invalid_date_raises(self):
        """Test that a malformed date is rejected."""
        with pytest.raises(ValueError):
            classify_priority("next spring", NOW)


@pytest.mark.unit
def test_days_until_is_fractional():
    """Test that the day count measures to midnight of the due date."""
    assert days_until("2023-01-02", NOW) == pytest.approx(0.5)
    assert days_until("2023-01-01", NOW) == pytest.approx(-0.5)
