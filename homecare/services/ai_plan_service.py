"""AI-drafted maintenance plans via a Pydantic AI agent over OpenRouter."""

import asyncio
import logging
from datetime import UTC, date, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic_ai import Agent
from pydantic_ai.models.openrouter import OpenRouterModel, OpenRouterModelSettings
from pydantic_ai.providers.openrouter import OpenRouterProvider

from homecare.core.config import constants, settings
from homecare.core.errors import AIPlanError
from homecare.core.frequency_parser import parse_estimated_time
from homecare.core.logging import span
from homecare.core.priority import classify_priority
from homecare.domain.home import Home
from homecare.domain.task import Task, TaskCategory, TaskCreate
from homecare.services import task_service


logger = logging.getLogger(__name__)


class AIPlanEntry(BaseModel):
    """One task in the plan returned by the model."""

    model_config = ConfigDict(populate_by_name=True)

    task: str = Field(..., description="Short task name")
    task_description: str | None = Field(default=None, alias="taskDescription", description="What to do")
    suggested_completion_date: str = Field(
        ..., alias="suggestedCompletionDate", description="Suggested completion date (YYYY-MM-DD)"
    )
    estimated_cost: float | None = Field(default=None, alias="estimatedCost", description="Estimated cost in USD")
    estimated_time: str | float | None = Field(
        default=None, alias="estimatedTime", description="Estimated effort, e.g. '2 hours' or '45 minutes'"
    )
    sub_tasks: list[str] = Field(default_factory=list, alias="subTasks", description="Ordered sub-steps")


class AIMaintenancePlan(BaseModel):
    """Structured output requested from the model."""

    model_config = ConfigDict(populate_by_name=True)

    maintenance_plan: list[AIPlanEntry] = Field(default_factory=list, alias="maintenancePlan")


INSTRUCTIONS = f"""You are a home maintenance expert. Given a description of a home, produce a practical \
maintenance plan for the next twelve months.

Include at least {constants.AI_MIN_PLAN_ENTRIES} tasks. For each task give a short name, a clear description, \
a suggested completion date in YYYY-MM-DD format, a realistic cost estimate in US dollars, an estimated time \
(e.g. "2 hours") and the sub-steps needed to complete it. Take the home's age, size and location into account \
and schedule seasonal tasks appropriately for the local climate."""


class _AgentState:
    """Singleton state for the plan agent."""

    instance: Agent[None, AIMaintenancePlan] | None = None


def _create_agent() -> Agent[None, AIMaintenancePlan]:
    """Create the plan agent (called once, on first use)."""
    api_key = settings.require_credential("openrouter_api_key", "OpenRouter API key")
    provider = OpenRouterProvider(api_key=api_key)

    model_settings: OpenRouterModelSettings | None = None
    if settings.model_provider:
        model_settings = OpenRouterModelSettings(openrouter_provider={"only": [settings.model_provider]})

    model = OpenRouterModel(
        model_name=settings.model_id,
        provider=provider,
        settings=model_settings,
    )

    return Agent(
        model=model,
        output_type=AIMaintenancePlan,
        instructions=INSTRUCTIONS,
        retries=0,  # Failures fall back to the rule-based plan
    )


def get_agent() -> Agent[None, AIMaintenancePlan]:
    """Get or create the plan agent."""
    if _AgentState.instance is None:
        _AgentState.instance = _create_agent()
    return _AgentState.instance


def describe_home(home: Home | str, *, now: datetime | None = None) -> str:
    """Summarise a home in a sentence or two for the model prompt.

    Strings are assumed to be descriptions already and are returned unchanged.
    """
    if isinstance(home, str):
        return home

    attributes = home.attributes()
    now = now or datetime.now(UTC)
    age = max(now.year - home.year_built, 0)
    home_type = (home.home_type or "home").replace("_", " ")
    location = f" located in {home.location}" if home.location else ""

    parts = [f"A {age}-year-old {home_type} of {home.square_footage} square feet{location}."]
    if attributes.get("roof_type"):
        parts.append(f"It has a {attributes['roof_type']} roof.")
    if attributes.get("hvac_type"):
        parts.append(f"Heating and cooling is provided by {attributes['hvac_type']}.")
    if attributes.get("pool"):
        parts.append("The property has a swimming pool.")
    if attributes.get("yard_garden"):
        parts.append("The property has a yard or garden.")
    return " ".join(parts)


async def request_ai_plan(description: str) -> AIMaintenancePlan:
    """Ask the model for a structured maintenance plan.

    Raises:
        ValueError: If the OpenRouter API key is not configured
        TimeoutError: If the request exceeds the configured timeout
    """
    agent = get_agent()
    with span("ai_plan_service.request_ai_plan"):
        async with asyncio.timeout(settings.ai_request_timeout_seconds):
            result = await agent.run(f"Create a maintenance plan for this home: {description}")

    logger.info("AI plan received", extra={"entries": len(result.output.maintenance_plan)})
    return result.output


def map_ai_plan_to_tasks(plan: AIMaintenancePlan, home_id: str, *, now: datetime | None = None) -> list[TaskCreate]:
    """Convert the model's plan into tasks for the home.

    Raises:
        AIPlanError: If the plan is empty or an entry has an invalid date
    """
    if not plan.maintenance_plan:
        raise AIPlanError("AI returned an empty maintenance plan")

    now = now or datetime.now(UTC)
    tasks = []
    for entry in plan.maintenance_plan:
        try:
            due_date = date.fromisoformat(entry.suggested_completion_date.strip())
        except ValueError as e:
            raise AIPlanError(
                f"Invalid completion date {entry.suggested_completion_date!r} for task {entry.task!r}"
            ) from e

        tasks.append(
            TaskCreate(
                home_id=home_id,
                task_name=entry.task,
                description=entry.task_description or f"Maintenance task: {entry.task}",
                frequency=constants.AI_TASK_FREQUENCY,
                due_date=due_date.isoformat(),
                why=constants.AI_TASK_WHY,
                estimated_time=parse_estimated_time(entry.estimated_time),
                estimated_cost=entry.estimated_cost or constants.DEFAULT_ESTIMATED_COST,
                category=TaskCategory.MAINTENANCE,
                priority=classify_priority(due_date, now),
                steps=list(entry.sub_tasks),
                completed=False,
                ai_generated=True,
            )
        )
    return tasks


async def generate_with_ai(home: Home, *, now: datetime | None = None) -> list[Task]:
    """Draft a plan with the model and store every task it returns.

    Raises:
        AIPlanError: If the model output is unusable
        Exception: Whatever the model client or the store raises; callers fall back
    """
    now = now or datetime.now(UTC)
    with span("ai_plan_service.generate_with_ai"):
        plan = await request_ai_plan(describe_home(home, now=now))
        tasks = map_ai_plan_to_tasks(plan, home.id, now=now)
        if len(tasks) < constants.AI_MIN_PLAN_ENTRIES:
            logger.warning("AI plan for home %s has only %d tasks", home.id, len(tasks))

        return await task_service.insert_many(tasks=tasks, now=now)
