"""Unit tests for home_service module."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from homecare.core.db_client import DatabaseError
from homecare.services import home_service
from tests.conftest import NOW


@pytest.mark.unit
class TestHomes:
    """Tests for creating and reading homes."""

    async def test_feature_attributes_round_trip(self, make_home):
        """Test that nested feature attributes are returned as home attributes."""
        created = await make_home(
            year_built=1985,
            roof_type="Metal",
            windows={"type": "single_pane", "count": 8},
            appliances=["dryer"],
        )

        home = await home_service.get_home(home_id=created.id)

        assert home is not None
        assert home.year_built == 1985
        attributes = home.attributes()
        assert attributes["roof_type"] == "Metal"
        assert attributes["windows"] == {"type": "single_pane", "count": 8}
        assert attributes["appliances"] == ["dryer"]
        assert "details" not in attributes

    async def test_get_missing_home_returns_none(self, db):
        """Test that an unknown home id yields None."""
        assert await home_service.get_home(home_id="404") is None

    async def test_list_homes_for_user(self, owner, make_home):
        """Test listing only the owner's homes."""
        first = await make_home()
        second = await make_home(name="Cabin")
        stranger = await home_service.create_user(name="Stranger", now=NOW)
        await home_service.create_home(user_id=stranger.id, year_built=2000, square_footage=900, now=NOW)

        homes = await home_service.list_homes_for_user(user_id=owner.id)

        assert [home.id for home in homes] == [first.id, second.id]


@pytest.mark.unit
class TestGenerationTimestamp:
    """Tests for the three-month regeneration rule."""

    async def test_never_generated_is_due(self, owner):
        """Test that a user without a previous plan is due."""
        assert await home_service.should_generate_tasks(user_id=owner.id, now=NOW) is True

    async def test_recent_plan_is_not_due(self, owner):
        """Test that a plan stamped two months ago is still fresh."""
        await home_service.update_task_generation_timestamp(user_id=owner.id, now=datetime(2022, 11, 1, tzinfo=UTC))

        assert await home_service.should_generate_tasks(user_id=owner.id, now=NOW) is False

    async def test_old_plan_is_due(self, owner):
        """Test that a plan older than three months is stale."""
        await home_service.update_task_generation_timestamp(user_id=owner.id, now=datetime(2022, 9, 1, tzinfo=UTC))

        assert await home_service.should_generate_tasks(user_id=owner.id, now=NOW) is True

    async def test_unknown_user_is_not_due(self, db):
        """Test that an unknown user gets no new plan."""
        assert await home_service.should_generate_tasks(user_id="404", now=NOW) is False

    async def test_lookup_error_is_not_due(self, owner, monkeypatch):
        """Test that a failed user lookup skips generation instead of raising."""
        monkeypatch.setattr(home_service, "get_user", AsyncMock(side_effect=DatabaseError("database is locked")))

        assert await home_service.should_generate_tasks(user_id=owner.id, now=NOW) is False

    async def test_stamping_unknown_user_returns_false(self, db):
        """Test that stamping a missing user is logged, not raised."""
        assert await home_service.update_task_generation_timestamp(user_id="404", now=NOW) is False

    async def test_list_users_due_for_generation(self, owner):
        """Test that users with missing or stale plans are listed."""
        fresh = await home_service.create_user(name="Fresh", now=NOW)
        stale = await home_service.create_user(name="Stale", now=NOW)
        await home_service.update_task_generation_timestamp(user_id=fresh.id, now=datetime(2022, 12, 1, tzinfo=UTC))
        await home_service.update_task_generation_timestamp(user_id=stale.id, now=datetime(2022, 6, 1, tzinfo=UTC))

        due = await home_service.list_users_due_for_generation(now=NOW)

        assert {user.id for user in due} == {owner.id, stale.id}


@pytest.mark.unit
def test_generation_cutoff_clamps_month_end():
    """Test that the cutoff for May 31 is the last day of February."""
    cutoff = home_service.generation_cutoff(datetime(2023, 5, 31, 8, 0, tzinfo=UTC))

    assert cutoff == datetime(2023, 2, 28, 8, 0, tzinfo=UTC)
