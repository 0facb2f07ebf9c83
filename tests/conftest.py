"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

from homecare.core import db_client
from homecare.core.config import settings
from homecare.domain.home import Home, User
from homecare.domain.rule import RuleSet, parse_rules
from homecare.services import home_service


# Reference time used by scenario tests; due dates are computed from this
NOW = datetime(2023, 1, 1, 12, 0, tzinfo=UTC)

FIVE_RULES_DOCUMENT: dict[str, Any] = {
    "rules": [
        {
            "conditions": [{"property": "year_built", "operator": "<", "value": 2000}],
            "task": {"task_name": "Inspect Foundation", "frequency": "yearly", "category": "repair"},
        },
        {
            "conditions": [{"property": "roof_type", "operator": "===", "value": "Asphalt Shingles"}],
            "task": {"task_name": "Replace Roof", "frequency": "15 years", "priority": "low"},
        },
        {
            "conditions": [{"property": "hvac_type", "operator": "===", "value": "Central AC"}],
            "task": {"task_name": "Service AC", "frequency": "yearly"},
        },
        {
            "condition": {"property": "always", "operator": "true"},
            "task": {"task_name": "Clean Gutters", "frequency": "yearly"},
        },
        {
            "condition": {"property": "always", "operator": "true"},
            "task": {"task_name": "Check Smoke Detectors", "frequency": "6 months", "category": "safety"},
        },
    ]
}


@pytest.fixture(autouse=True)
def no_ai_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests offline unless a test opts into the AI path explicitly."""
    monkeypatch.setattr(settings, "openrouter_api_key", None)


@pytest.fixture
async def db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AsyncIterator[Path]:
    """Provide a fresh, initialised SQLite database for each test."""
    db_path = tmp_path / "homecare_test.db"
    monkeypatch.setattr(settings, "sqlite_db_path", str(db_path))

    await db_client.init_db()
    yield db_path
    await db_client.close_connection()


@pytest.fixture
def five_rules() -> RuleSet:
    """The five-rule set used by the end-to-end plan scenarios."""
    return parse_rules(FIVE_RULES_DOCUMENT)


@pytest.fixture
async def owner(db: Path) -> User:
    """A home owner who has never had a plan generated."""
    return await home_service.create_user(name="Test Owner", email="owner@example.com", now=NOW)


@pytest.fixture
def make_home(owner: User) -> Callable[..., Awaitable[Home]]:
    """Factory for homes owned by ``owner``."""

    async def _make_home(**overrides: Any) -> Home:
        fields: dict[str, Any] = {
            "user_id": owner.id,
            "year_built": 2010,
            "square_footage": 1500,
            "location": "Test Location",
        }
        fields.update(overrides)
        return await home_service.create_home(now=NOW, **fields)

    return _make_home


@pytest.fixture
async def old_home(make_home: Callable[..., Awaitable[Home]]) -> Home:
    """A 1990 home with asphalt shingles and central AC."""
    return await make_home(year_built=1990, square_footage=2000, roof_type="Asphalt Shingles", hvac_type="Central AC")


@pytest.fixture
async def new_home(make_home: Callable[..., Awaitable[Home]]) -> Home:
    """A 2010 home with no feature attributes."""
    return await make_home()
