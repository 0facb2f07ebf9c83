"""Configuration management for homecare."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # SQLite Configuration
    sqlite_db_path: str = Field(default="homecare.db", description="Path to the SQLite database file")

    # OpenRouter Configuration
    openrouter_api_key: str | None = Field(default=None, description="OpenRouter API key for AI plan generation")

    # AI Model Configuration
    model_id: str = Field(
        default="openai/gpt-4o",
        description="Model ID for OpenRouter used to draft maintenance plans",
    )
    model_provider: str | None = Field(default=None, description="Restrict OpenRouter routing to one provider")
    ai_request_timeout_seconds: float = Field(
        default=60.0, description="Overall timeout for a single AI plan request (in seconds)"
    )

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="production", description="Deployment environment reported to Logfire")

    # Task Rules
    task_rules_path: str | None = Field(
        default=None,
        description="Path to a JSON rule set (defaults to the bundled homecare/data/task_rules.json)",
    )

    # Scheduler Configuration
    retry_batch_size: int = Field(default=20, description="Retry records processed per scheduler run")
    retry_interval_minutes: int = Field(default=10, description="Minutes between retry queue drains")
    overdue_sweep_hour: int = Field(default=3, description="UTC hour of the daily overdue-home sweep")

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # Retry Queue
    RETRY_MAX_ATTEMPTS: int = 5
    RETRY_CLAIM_TIMEOUT_MINUTES: int = 30  # Claims older than this are released back to pending

    # Plan Regeneration
    REGENERATION_INTERVAL_MONTHS: int = 3

    # Task Defaults
    DEFAULT_ESTIMATED_TIME_MINUTES: int = 30
    DEFAULT_ESTIMATED_COST: float = 0.0
    WORKDAY_HOURS: int = 8  # Used when an AI estimate is expressed in days

    # Priority Thresholds (days until due)
    PRIORITY_HIGH_WITHIN_DAYS: int = 30
    PRIORITY_MEDIUM_WITHIN_DAYS: int = 90

    # AI Plan Generation
    AI_MIN_PLAN_ENTRIES: int = 10
    AI_TASK_WHY: str = "AI-recommended maintenance task"
    AI_TASK_FREQUENCY: str = "custom"

    # Job Tracker Configuration
    TRACKER_DEAD_LETTER_QUEUE_MAXLEN: int = 100
    TRACKER_ERROR_MAX_CHARS: int = 500

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 100

    # Paths
    PACKAGE_ROOT: Path = Path(__file__).parent.parent
    DEFAULT_TASK_RULES_PATH: Path = PACKAGE_ROOT / "data" / "task_rules.json"


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
