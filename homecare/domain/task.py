"""Maintenance task domain models and enums."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class TaskPriority(StrEnum):
    """How soon a task needs attention."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TaskCategory(StrEnum):
    """Broad grouping used for filtering tasks."""

    MAINTENANCE = "maintenance"
    CLEANING = "cleaning"
    SAFETY = "safety"
    SEASONAL = "seasonal"
    REPAIR = "repair"
    IMPROVEMENT = "improvement"
    OTHER = "other"


class TaskCreate(BaseModel):
    """Fields for a task that has not been persisted yet."""

    home_id: str = Field(..., description="Owning home ID")
    task_name: str = Field(..., description="Task name, unique per home for rule-based tasks")
    description: str = Field(..., description="What the task involves")
    frequency: str = Field(..., description="Frequency descriptor (e.g. 'yearly', '6 months', 'custom')")
    due_date: str = Field(..., description="Due date (ISO date, YYYY-MM-DD)")
    why: str | None = Field(default=None, description="Why the task matters for this home")
    estimated_time: int = Field(default=30, description="Estimated effort in minutes")
    estimated_cost: float = Field(default=0.0, description="Estimated cost")
    category: TaskCategory = Field(default=TaskCategory.MAINTENANCE, description="Task category")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Task priority")
    steps: list[str] = Field(default_factory=list, description="Ordered steps to complete the task")
    completed: bool = Field(default=False, description="Whether the task is done")
    ai_generated: bool = Field(default=False, description="Whether the task came from the AI path")


class Task(TaskCreate):
    """Persisted maintenance task."""

    id: str = Field(..., description="Unique task ID from database")
    created_at: datetime = Field(..., description="Creation timestamp")
