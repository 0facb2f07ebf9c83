"""Plan generation result models."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from homecare.domain.task import Task


class PlanSource(StrEnum):
    """Which path produced a plan result."""

    RULES = "rules"
    AI = "ai"
    EXISTING = "existing"


class PlanResult(BaseModel):
    """Outcome of a maintenance plan request."""

    tasks: list[Task] = Field(default_factory=list, description="Tasks created (or existing, when skipped)")
    message: str = Field(..., description="Human-readable summary")
    generated_at: datetime = Field(..., description="When the plan was produced")
    source: PlanSource = Field(..., description="Path that produced the tasks")
