"""Unit tests for rule-based plan generation."""

from unittest.mock import AsyncMock

import pytest

from homecare.core.config import constants
from homecare.core.db_client import DatabaseError
from homecare.domain.rule import load_rules, parse_rules
from homecare.domain.task import TaskCategory, TaskPriority
from homecare.services import home_service, plan_generator, task_service
from tests.conftest import NOW


@pytest.mark.unit
class TestGenerateRuleBasedPlan:
    """Tests for generate_rule_based_plan."""

    async def test_older_home_gets_all_five_tasks(self, old_home, five_rules):
        """Test the 1990 home with asphalt shingles and central AC."""
        tasks = await plan_generator.generate_rule_based_plan(old_home, five_rules, now=NOW)

        assert {task.task_name for task in tasks} == {
            "Inspect Foundation",
            "Replace Roof",
            "Service AC",
            "Clean Gutters",
            "Check Smoke Detectors",
        }
        stored = await task_service.list_tasks_for_home(home_id=old_home.id)
        assert len(stored) == 5

    async def test_newer_bare_home_gets_default_tasks(self, new_home, five_rules):
        """Test that a 2010 home without features only gets the unconditional tasks."""
        tasks = await plan_generator.generate_rule_based_plan(new_home, five_rules, now=NOW)

        assert sorted(task.task_name for task in tasks) == ["Check Smoke Detectors", "Clean Gutters"]
        assert len(await task_service.list_tasks_for_home(home_id=new_home.id)) == 2

    async def test_second_run_creates_nothing(self, old_home, five_rules):
        """Test that generation is idempotent for an unchanged home."""
        await plan_generator.generate_rule_based_plan(old_home, five_rules, now=NOW)
        second = await plan_generator.generate_rule_based_plan(old_home, five_rules, now=NOW)

        assert second == []
        assert len(await task_service.list_tasks_for_home(home_id=old_home.id)) == 5

    async def test_due_dates_follow_frequency(self, old_home, five_rules):
        """Test due dates computed from 2023-01-01."""
        await plan_generator.generate_rule_based_plan(old_home, five_rules, now=NOW)

        due = {task.task_name: task.due_date for task in await task_service.list_tasks_for_home(home_id=old_home.id)}
        assert due["Check Smoke Detectors"] == "2023-07-01"
        assert due["Inspect Foundation"] == "2024-01-01"
        assert due["Service AC"] == "2024-01-01"
        assert due["Clean Gutters"] == "2024-01-01"
        assert due["Replace Roof"] == "2038-01-01"

    async def test_template_defaults(self, new_home):
        """Test defaults applied to a bare task template."""
        rules = parse_rules({"rules": [{"task": {"task_name": "Walk the Property"}}]})

        [task] = await plan_generator.generate_rule_based_plan(new_home, rules, now=NOW)

        assert task.description == "Maintenance task: Walk the Property"
        assert task.frequency == "yearly"
        assert task.estimated_time == 30
        assert task.estimated_cost == 0
        assert task.category == TaskCategory.MAINTENANCE
        assert task.priority == TaskPriority.MEDIUM
        assert task.steps == []
        assert task.completed is False
        assert task.ai_generated is False

    async def test_template_fields_are_copied(self, new_home):
        """Test that explicit template fields are kept."""
        rules = parse_rules(
            {
                "rules": [
                    {
                        "task": {
                            "task_name": "Check Smoke Detectors",
                            "description": "Test every alarm",
                            "frequency": "6 months",
                            "why": "Safety",
                            "estimated_time": 20,
                            "estimated_cost": 10,
                            "category": "safety",
                            "priority": "high",
                            "steps": ["Press test", "Replace batteries"],
                        }
                    }
                ]
            }
        )

        [task] = await plan_generator.generate_rule_based_plan(new_home, rules, now=NOW)

        assert task.why == "Safety"
        assert task.estimated_time == 20
        assert task.estimated_cost == 10
        assert task.category == TaskCategory.SAFETY
        assert task.priority == TaskPriority.HIGH
        assert task.steps == ["Press test", "Replace batteries"]

    async def test_changed_home_only_adds_new_tasks(self, make_home, five_rules):
        """Test that regenerating after a home changes adds only the newly matching tasks."""
        home = await make_home()
        await plan_generator.generate_rule_based_plan(home, five_rules, now=NOW)

        updated = home.model_copy(update={"hvac_type": "Central AC"})
        tasks = await plan_generator.generate_rule_based_plan(updated, five_rules, now=NOW)

        assert [task.task_name for task in tasks] == ["Service AC"]
        assert len(await task_service.list_tasks_for_home(home_id=home.id)) == 3

    async def test_duplicate_rule_names_materialise_once(self, new_home):
        """Test that two matching rules with the same task name create one task."""
        rules = parse_rules(
            {
                "rules": [
                    {"task": {"task_name": "Clean Gutters", "frequency": "yearly"}},
                    {"task": {"task_name": "Clean Gutters", "frequency": "6 months"}},
                ]
            }
        )

        tasks = await plan_generator.generate_rule_based_plan(new_home, rules, now=NOW)

        assert len(tasks) == 1
        assert tasks[0].frequency == "yearly"

    async def test_no_matches_is_a_noop(self, new_home):
        """Test that nothing is stored when no rule matches."""
        rules = parse_rules(
            {
                "rules": [
                    {
                        "conditions": [{"property": "pool.has_pool", "operator": "===", "value": True}],
                        "task": {"task_name": "Test Pool Water"},
                    }
                ]
            }
        )

        assert await plan_generator.generate_rule_based_plan(new_home, rules, now=NOW) == []
        assert await task_service.list_tasks_for_home(home_id=new_home.id) == []

    async def test_persistence_errors_propagate(self, new_home, five_rules, monkeypatch):
        """Test that a failed insert is raised to the caller."""
        monkeypatch.setattr(task_service, "insert_many", AsyncMock(side_effect=DatabaseError("disk full")))

        with pytest.raises(DatabaseError, match="disk full"):
            await plan_generator.generate_rule_based_plan(new_home, five_rules, now=NOW)

    async def test_home_without_type_skips_type_rules(self, make_home):
        """Test that a stored home with no home_type does not match home_type rules."""
        rules = load_rules(constants.DEFAULT_TASK_RULES_PATH)
        untyped = await home_service.get_home(home_id=(await make_home()).id)
        house = await home_service.get_home(home_id=(await make_home(home_type="single_family")).id)

        untyped_tasks = await plan_generator.generate_rule_based_plan(untyped, rules, now=NOW)
        house_tasks = await plan_generator.generate_rule_based_plan(house, rules, now=NOW)

        assert "Prepare Home for Winter" not in {task.task_name for task in untyped_tasks}
        assert "Prepare Home for Winter" in {task.task_name for task in house_tasks}

    @pytest.mark.parametrize("task_name", ["Clean && Seal Deck", "true", "Fix (leaky) tap || drain", "007"])
    async def test_unusual_task_names_are_deduplicated(self, new_home, task_name):
        """Test that names containing filter syntax or literal-looking text are found on regeneration."""
        rules = parse_rules({"rules": [{"task": {"task_name": task_name}}]})

        first = await plan_generator.generate_rule_based_plan(new_home, rules, now=NOW)
        second = await plan_generator.generate_rule_based_plan(new_home, rules, now=NOW)

        assert [task.task_name for task in first] == [task_name]
        assert second == []
        assert len(await task_service.list_tasks_for_home(home_id=new_home.id)) == 1
