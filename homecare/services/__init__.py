from homecare.services import (
    ai_plan_service,
    home_service,
    maintenance_service,
    plan_generator,
    retry_service,
    rule_engine,
    task_service,
)


__all__ = [
    "ai_plan_service",
    "home_service",
    "maintenance_service",
    "plan_generator",
    "retry_service",
    "rule_engine",
    "task_service",
]
