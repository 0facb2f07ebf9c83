"""Error types and classification for plan generation failures."""

from enum import Enum
from typing import Literal


class AIPlanError(Exception):
    """Raised when the generative-text service returns an unusable plan."""


class ErrorCategory(Enum):
    """Categories of errors that can occur while drafting a plan with AI."""

    SERVICE_QUOTA_EXCEEDED = "service_quota_exceeded"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    AUTHENTICATION_FAILED = "authentication_failed"
    NETWORK_ERROR = "network_error"
    MALFORMED_RESPONSE = "malformed_response"
    UNKNOWN = "unknown"


_ERROR_PATTERNS: dict[
    Literal["quota", "rate_limit", "auth", "network", "malformed"],
    dict[str, list[str] | set[str]],
] = {
    "quota": {
        "phrases": [
            "quota exceeded",
            "insufficient credits",
            "credit limit",
            "credits exhausted",
            "out of credits",
        ],
        "exception_types": set(),
    },
    "rate_limit": {
        "phrases": [
            "rate limit",
            "too many requests",
            "rate_limit_exceeded",
            "throttled",
            "429",
        ],
        "exception_types": set(),
    },
    "auth": {
        "phrases": [
            "authentication failed",
            "invalid api key",
            "unauthorized",
            "invalid token",
            "credential not configured",
            "401",
        ],
        "exception_types": {"AuthenticationError", "PermissionError"},
    },
    "network": {
        "phrases": [
            "connection",
            "timeout",
            "timed out",
            "network",
            "503",
            "502",
            "504",
            "unreachable",
        ],
        "exception_types": {"ConnectionError", "TimeoutError", "ConnectError", "ReadTimeout"},
    },
    "malformed": {
        "phrases": [
            "validation error",
            "invalid json",
            "malformed",
        ],
        "exception_types": {"AIPlanError", "ValidationError", "JSONDecodeError", "UnexpectedModelBehavior"},
    },
}


def _match_error_pattern(
    *,
    error_str: str,
    exception_type: str,
    pattern_type: Literal["quota", "rate_limit", "auth", "network", "malformed"],
) -> bool:
    """Return True if the error matches the configured pattern type."""
    patterns = _ERROR_PATTERNS[pattern_type]
    return any(phrase in error_str for phrase in patterns["phrases"]) or exception_type in patterns["exception_types"]


def classify_ai_error(exception: BaseException) -> ErrorCategory:
    """Classify a failure from the AI plan path for logging and alerting.

    Args:
        exception: The exception raised while requesting or mapping an AI plan

    Returns:
        The matching ErrorCategory (UNKNOWN when nothing matches)
    """
    error_str = str(exception).lower()
    exception_type = type(exception).__name__

    # Malformed output is checked first: validation messages often mention field names
    # that would otherwise look like network or auth phrases.
    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="malformed"):
        return ErrorCategory.MALFORMED_RESPONSE

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="quota"):
        return ErrorCategory.SERVICE_QUOTA_EXCEEDED

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="rate_limit"):
        return ErrorCategory.RATE_LIMIT_EXCEEDED

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="auth"):
        return ErrorCategory.AUTHENTICATION_FAILED

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="network"):
        return ErrorCategory.NETWORK_ERROR

    return ErrorCategory.UNKNOWN
