from __future__ import annotations

from pathlib import Path

import allure
import pytest

from agent_console.config import (
    PLAN_STORAGE_FILE,
    PLAN_STORAGE_MEMORY,
    RuntimeSettings,
    Settings,
    normalize_plan_storage,
)

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Environment settings"),
]


def test_from_env_defaults() -> None:
    settings = Settings.from_env()

    assert settings.db_path == Path(".agent_console.db")
    assert settings.providers.openai_enabled
    assert settings.providers.anthropic_enabled
    assert not settings.providers.echo_enabled
    assert settings.providers.openai_adapter == "openai-chat"
    assert settings.plan.storage == PLAN_STORAGE_MEMORY
    assert not settings.plan.writes_to_file
    assert settings.runtime.event_buffer_size == 32
    assert settings.models.whitelist == ()
    assert settings.models.provider_whitelist == {}
    settings.validate()


def test_home_directory_moves_default_db(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("AGENT_CONSOLE_HOME", str(tmp_path))

    assert Settings.from_env().db_path == tmp_path / "history.db"
    assert Settings.from_env(db_path=tmp_path / "x.db").db_path == tmp_path / "x.db"


def test_from_env_reads_api_keys_and_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("AGENT_CONSOLE_ANTHROPIC_ENABLED", "off")
    monkeypatch.setenv("AGENT_CONSOLE_ECHO_ENABLED", "YES")

    providers = Settings.from_env().providers

    assert providers.openai_api_key == "sk-test"
    assert not providers.anthropic_enabled
    assert providers.echo_enabled


def test_from_env_rejects_invalid_boolean(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AGENT_CONSOLE_ECHO_ENABLED", "maybe")

    with pytest.raises(ValueError, match="Invalid boolean value for AGENT_CONSOLE_ECHO_ENABLED"):
        Settings.from_env()


def test_from_env_parses_model_whitelists(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AGENT_CONSOLE_MODEL_WHITELIST", "gpt-5, gpt-5 ,claude-4.5-haiku,")
    monkeypatch.setenv(
        "AGENT_CONSOLE_PROVIDER_WHITELIST",
        "OpenAI=gpt-5|gpt-5.1; anthropic=claude-4.5-sonnet;",
    )

    models = Settings.from_env().models

    assert models.whitelist == ("gpt-5", "claude-4.5-haiku")
    assert models.provider_whitelist == {
        "openai": ("gpt-5", "gpt-5.1"),
        "anthropic": ("claude-4.5-sonnet",),
    }


def test_from_env_rejects_malformed_provider_whitelist(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AGENT_CONSOLE_PROVIDER_WHITELIST", "openai-gpt-5")

    with pytest.raises(ValueError, match="Expected format"):
        Settings.from_env()


def test_plan_storage_normalization(monkeypatch: pytest.MonkeyPatch) -> None:
    assert normalize_plan_storage("") == PLAN_STORAGE_MEMORY
    assert normalize_plan_storage(" Memory ") == PLAN_STORAGE_MEMORY
    assert normalize_plan_storage("FILE") == PLAN_STORAGE_FILE
    assert normalize_plan_storage("disk") == PLAN_STORAGE_FILE

    monkeypatch.setenv("AGENT_CONSOLE_PLAN_STORAGE", "file")
    monkeypatch.setenv("AGENT_CONSOLE_PLAN_FILE", "  ")
    monkeypatch.setenv("AGENT_CONSOLE_PLAN_AUTO_WRITE", "1")
    plan = Settings.from_env().plan

    assert plan.writes_to_file
    assert plan.file_path == "PLAN.md"
    assert plan.auto_write


def test_validate_rejects_non_positive_event_buffer() -> None:
    settings = Settings(runtime=RuntimeSettings(event_buffer_size=0))

    with pytest.raises(ValueError, match="EVENT_BUFFER_SIZE"):
        settings.validate()


def test_validate_rejects_non_positive_catalog_timeout() -> None:
    settings = Settings(runtime=RuntimeSettings(catalog_timeout_seconds=0))

    with pytest.raises(ValueError, match="CATALOG_TIMEOUT_SECONDS"):
        settings.validate()


def test_validate_rejects_unknown_openai_adapter(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AGENT_CONSOLE_OPENAI_ADAPTER", "openai-legacy")

    with pytest.raises(ValueError, match="Invalid AGENT_CONSOLE_OPENAI_ADAPTER"):
        Settings.from_env().validate()
