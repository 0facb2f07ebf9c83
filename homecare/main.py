"""homecare - maintenance plan generation service."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from homecare.core.config import constants, settings
from homecare.core.db_client import init_db
from homecare.core.logging import configure_logfire, instrument_fastapi, instrument_pydantic_ai
from homecare.core.scheduler import JOB_NAMES, start_scheduler, stop_scheduler
from homecare.core.scheduler_tracker import job_tracker
from homecare.domain.rule import RuleSet, load_rules


logger = logging.getLogger(__name__)


def load_startup_rules() -> RuleSet:
    """Load the configured rule set, exiting the process when it is unusable."""
    rules_path = settings.task_rules_path or constants.DEFAULT_TASK_RULES_PATH
    try:
        rules = load_rules(rules_path)
    except (OSError, ValueError) as e:
        logger.error("startup_validation_failed", extra={"stage": "task_rules", "error": str(e)})
        print(f"\n❌ Could not load task rules from {rules_path}: {e}\n", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    logger.info("startup_validation", extra={"stage": "task_rules", "status": "ok", "count": len(rules)})
    if not settings.openrouter_api_key:
        logger.warning("startup_validation", extra={"stage": "credentials", "status": "ai_disabled"})
    return rules


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    # Configure logging first so validation logs are captured
    configure_logfire()

    rules = load_startup_rules()
    app.state.task_rules = rules

    await init_db()
    logger.info("Database initialized")

    instrument_pydantic_ai()
    start_scheduler(rules)
    yield
    # Shutdown
    stop_scheduler()


app = FastAPI(
    title="homecare",
    description="Home maintenance plan generation",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)


@app.get("/health/scheduler")
async def scheduler_health_check() -> JSONResponse:
    """Scheduler health check endpoint with job statuses."""
    job_statuses = {}
    for job_name in JOB_NAMES:
        job_statuses[job_name] = await job_tracker.get_job_status(job_name)

    dlq = job_tracker.get_dead_letter_queue()

    has_failures = any(status["consecutive_failures"] > 0 for status in job_statuses.values())

    overall_status = "degraded" if has_failures else "healthy"
    if len(dlq) > 0:
        overall_status = "critical"

    return JSONResponse(
        content={
            "status": overall_status,
            "jobs": job_statuses,
            "dead_letter_queue_size": len(dlq),
            "dead_letter_queue": dlq,
        },
        status_code=200 if overall_status == "healthy" else 503,
    )
