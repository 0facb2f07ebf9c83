"""Tests for configuration validation."""

import pytest

from homecare.core.config import Settings, constants


def test_require_credential_with_valid_value() -> None:
    """Test require_credential returns value when credential is set."""
    settings = Settings(openrouter_api_key="sk-test")

    result = settings.require_credential("openrouter_api_key", "OpenRouter")

    assert result == "sk-test"


@pytest.mark.parametrize("value", [None, ""])
def test_require_credential_missing_raises_error(value: str | None) -> None:
    """Test require_credential raises ValueError when credential is missing or empty."""
    settings = Settings(openrouter_api_key=value)

    with pytest.raises(ValueError, match="OpenRouter credential not configured"):
        settings.require_credential("openrouter_api_key", "OpenRouter")


def test_require_credential_error_message_includes_field_name() -> None:
    """Test error message includes the environment variable name."""
    settings = Settings(openrouter_api_key=None)

    with pytest.raises(ValueError, match="OPENROUTER_API_KEY"):
        settings.require_credential("openrouter_api_key", "OpenRouter")


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that settings are loaded from environment variables."""
    monkeypatch.setenv("SQLITE_DB_PATH", "/tmp/homes.db")
    monkeypatch.setenv("RETRY_BATCH_SIZE", "5")

    settings = Settings()

    assert settings.sqlite_db_path == "/tmp/homes.db"
    assert settings.retry_batch_size == 5


def test_bundled_rules_path_exists() -> None:
    """Test that the default rule set ships with the package."""
    assert constants.DEFAULT_TASK_RULES_PATH.is_file()
