"""Top-level maintenance plan generation: freshness check, AI path, rule-based fallback."""

import logging
from datetime import UTC, datetime

from homecare.core.config import settings
from homecare.core.errors import classify_ai_error
from homecare.core.logging import log_with_context, span
from homecare.domain.home import Home
from homecare.domain.plan import PlanResult, PlanSource
from homecare.domain.rule import RuleSet
from homecare.services import ai_plan_service, home_service, plan_generator, task_service


logger = logging.getLogger(__name__)


async def generate_maintenance_plan(
    home: Home,
    *,
    rules: RuleSet,
    use_ai: bool = False,
    force_generation: bool = False,
    now: datetime | None = None,
) -> PlanResult:
    """Generate (and store) a maintenance plan for a home.

    Unless ``force_generation`` is set, a plan is only generated when the owner's
    last plan is older than the regeneration interval; otherwise the home's
    existing tasks are returned. When ``use_ai`` is set and an OpenRouter key is
    configured, the AI path is tried first and any failure falls back to the
    rule set.

    Args:
        home: Home to plan for
        rules: Rule set for the rule-based path
        use_ai: Try the AI path first
        force_generation: Skip the regeneration interval check
        now: Reference time (defaults to the current UTC time)

    Returns:
        PlanResult with the new (or existing) tasks

    Raises:
        db_client.DatabaseError: If the rule-based path cannot read or store tasks
    """
    now = now or datetime.now(UTC)

    with span("maintenance_service.generate_maintenance_plan"):
        # Guard: Respect the regeneration interval
        if not force_generation and not await home_service.should_generate_tasks(user_id=home.user_id, now=now):
            logger.info("Skipping task generation for user %s, last plan is still fresh", home.user_id)
            existing = await task_service.list_tasks_for_home(home_id=home.id)
            return PlanResult(
                tasks=existing,
                message="Using existing maintenance plan (less than 3 months since last generation)",
                generated_at=now,
                source=PlanSource.EXISTING,
            )

        if use_ai and settings.openrouter_api_key:
            try:
                tasks = await ai_plan_service.generate_with_ai(home, now=now)
            except Exception as e:
                log_with_context(
                    logger,
                    "error",
                    "AI plan generation failed, falling back to rules",
                    home_id=home.id,
                    error=str(e),
                    error_category=classify_ai_error(e).value,
                )
            else:
                await home_service.update_task_generation_timestamp(user_id=home.user_id, now=now)
                return PlanResult(
                    tasks=tasks,
                    message="AI-powered maintenance plan generated successfully",
                    generated_at=now,
                    source=PlanSource.AI,
                )

        tasks = await plan_generator.generate_rule_based_plan(home, rules, now=now)
        await home_service.update_task_generation_timestamp(user_id=home.user_id, now=now)
        return PlanResult(
            tasks=tasks,
            message="Rule-based maintenance plan generated successfully",
            generated_at=now,
            source=PlanSource.RULES,
        )


async def regenerate_tasks_for_home(
    home: Home,
    *,
    rules: RuleSet,
    use_ai: bool = False,
    now: datetime | None = None,
) -> PlanResult:
    """Regenerate tasks after a home changed, ignoring the regeneration interval."""
    return await generate_maintenance_plan(home, rules=rules, use_ai=use_ai, force_generation=True, now=now)
