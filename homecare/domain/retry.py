"""Task generation retry queue models."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class RetryStatus(StrEnum):
    """Lifecycle of a queued (re)generation request."""

    PENDING = "pending"
    PROCESSING = "processing"  # Claimed by a worker
    COMPLETED = "completed"
    FAILED = "failed"


class RetryRecord(BaseModel):
    """A pending or finished request to (re)generate a home's maintenance plan."""

    id: str = Field(..., description="Unique retry record ID")
    home_id: str = Field(..., description="Home whose plan should be generated")
    status: RetryStatus = Field(default=RetryStatus.PENDING, description="Current queue status")
    attempts: int = Field(default=0, description="Failed generation attempts so far")
    last_attempt: datetime | None = Field(default=None, description="When the last failed attempt ran")
    error: str | None = Field(default=None, description="Message of the last failure")
    created_at: datetime = Field(..., description="When the request was queued")
    completed_at: datetime | None = Field(default=None, description="When generation succeeded")
    claimed_at: datetime | None = Field(default=None, description="When a worker claimed the record")
