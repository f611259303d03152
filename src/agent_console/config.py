"""Runtime configuration for the session engine, loaded from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

PLAN_STORAGE_MEMORY = "memory"
PLAN_STORAGE_FILE = "file"


@dataclass(slots=True)
class ModelSettings:
    """Model catalog filtering.

    ``whitelist`` applies to every provider without a dedicated entry in
    ``provider_whitelist`` (keyed by lower-cased provider name or kind).
    """

    whitelist: tuple[str, ...] = ()
    provider_whitelist: dict[str, tuple[str, ...]] = field(default_factory=dict)


@dataclass(slots=True)
class ProviderSettings:
    """Provider enablement and credentials."""

    openai_enabled: bool = True
    openai_api_key: str = ""
    openai_host: str = "https://api.openai.com"
    openai_adapter: str = "openai-chat"
    anthropic_enabled: bool = True
    anthropic_api_key: str = ""
    anthropic_host: str = "https://api.anthropic.com"
    echo_enabled: bool = False
    echo_delay_seconds: float = 0.05
    request_timeout_seconds: float = 60.0


@dataclass(slots=True)
class PlanSettings:
    """Where plan steps from ``/plan`` are kept."""

    storage: str = PLAN_STORAGE_MEMORY
    file_path: str = "PLAN.md"
    auto_write: bool = False

    @property
    def writes_to_file(self) -> bool:
        return self.storage == PLAN_STORAGE_FILE


@dataclass(slots=True)
class RuntimeSettings:
    """Concurrency knobs of the session engine."""

    event_buffer_size: int = 32
    catalog_timeout_seconds: float = 10.0
    reconcile_interval_seconds: float = 1.0


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    db_path: Path = Path(".agent_console.db")
    project_path: Path = field(default_factory=Path.cwd)
    models: ModelSettings = field(default_factory=ModelSettings)
    providers: ProviderSettings = field(default_factory=ProviderSettings)
    plan: PlanSettings = field(default_factory=PlanSettings)
    runtime: RuntimeSettings = field(default_factory=RuntimeSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with defaults suitable for local use."""

        home = os.getenv("AGENT_CONSOLE_HOME", "").strip()
        default_db = Path(home) / "history.db" if home else Path(".agent_console.db")
        return cls(
            db_path=db_path or Path(os.getenv("AGENT_CONSOLE_DB_PATH", str(default_db))),
            project_path=Path(os.getenv("AGENT_CONSOLE_PROJECT_PATH", str(Path.cwd()))),
            models=ModelSettings(
                whitelist=_csv_tuple(os.getenv("AGENT_CONSOLE_MODEL_WHITELIST", "")),
                provider_whitelist=_collect_provider_whitelist(),
            ),
            providers=ProviderSettings(
                openai_enabled=_env_bool("AGENT_CONSOLE_OPENAI_ENABLED", default=True),
                openai_api_key=os.getenv("OPENAI_API_KEY", ""),
                openai_host=os.getenv("AGENT_CONSOLE_OPENAI_HOST", "https://api.openai.com"),
                openai_adapter=os.getenv("AGENT_CONSOLE_OPENAI_ADAPTER", "openai-chat"),
                anthropic_enabled=_env_bool("AGENT_CONSOLE_ANTHROPIC_ENABLED", default=True),
                anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
                anthropic_host=os.getenv(
                    "AGENT_CONSOLE_ANTHROPIC_HOST",
                    "https://api.anthropic.com",
                ),
                echo_enabled=_env_bool("AGENT_CONSOLE_ECHO_ENABLED", default=False),
                echo_delay_seconds=float(os.getenv("AGENT_CONSOLE_ECHO_DELAY_SECONDS", "0.05")),
                request_timeout_seconds=float(
                    os.getenv("AGENT_CONSOLE_REQUEST_TIMEOUT_SECONDS", "60"),
                ),
            ),
            plan=PlanSettings(
                storage=normalize_plan_storage(
                    os.getenv("AGENT_CONSOLE_PLAN_STORAGE", PLAN_STORAGE_MEMORY),
                ),
                file_path=os.getenv("AGENT_CONSOLE_PLAN_FILE", "PLAN.md").strip() or "PLAN.md",
                auto_write=_env_bool("AGENT_CONSOLE_PLAN_AUTO_WRITE", default=False),
            ),
            runtime=RuntimeSettings(
                event_buffer_size=int(os.getenv("AGENT_CONSOLE_EVENT_BUFFER_SIZE", "32")),
                catalog_timeout_seconds=float(
                    os.getenv("AGENT_CONSOLE_CATALOG_TIMEOUT_SECONDS", "10"),
                ),
                reconcile_interval_seconds=float(
                    os.getenv("AGENT_CONSOLE_RECONCILE_INTERVAL_SECONDS", "1.0"),
                ),
            ),
        )

    def validate(self) -> None:
        """Raise ``ValueError`` for settings the engine cannot run with."""

        if self.runtime.event_buffer_size <= 0:
            raise ValueError("AGENT_CONSOLE_EVENT_BUFFER_SIZE must be a positive integer.")
        if self.runtime.catalog_timeout_seconds <= 0:
            raise ValueError("AGENT_CONSOLE_CATALOG_TIMEOUT_SECONDS must be > 0.")
        if self.runtime.reconcile_interval_seconds <= 0:
            raise ValueError("AGENT_CONSOLE_RECONCILE_INTERVAL_SECONDS must be > 0.")
        if self.providers.openai_adapter not in {"openai-chat", "openai-responses"}:
            raise ValueError(
                "Invalid AGENT_CONSOLE_OPENAI_ADAPTER: "
                f"{self.providers.openai_adapter!r}. Expected openai-chat or openai-responses.",
            )
        if self.providers.request_timeout_seconds <= 0:
            raise ValueError("AGENT_CONSOLE_REQUEST_TIMEOUT_SECONDS must be > 0.")


def normalize_plan_storage(value: str) -> str:
    """Map free-form storage values onto ``memory`` or ``file``."""

    normalized = value.strip().lower()
    if normalized in {"", PLAN_STORAGE_MEMORY}:
        return PLAN_STORAGE_MEMORY
    return PLAN_STORAGE_FILE


def _collect_provider_whitelist() -> dict[str, tuple[str, ...]]:
    raw = os.getenv("AGENT_CONSOLE_PROVIDER_WHITELIST", "").strip()
    if not raw:
        return {}

    overrides: dict[str, tuple[str, ...]] = {}
    for part in raw.split(";"):
        token = part.strip()
        if not token:
            continue
        if "=" not in token:
            raise ValueError(
                "Invalid AGENT_CONSOLE_PROVIDER_WHITELIST entry: "
                f"{token!r}. Expected format '<provider>=<model>|<model>'.",
            )
        provider, models_raw = token.split("=", 1)
        provider = provider.strip().lower()
        if not provider:
            raise ValueError(f"Invalid AGENT_CONSOLE_PROVIDER_WHITELIST entry: {token!r}")
        overrides[provider] = tuple(
            model.strip() for model in models_raw.split("|") if model.strip()
        )
    return overrides


def _csv_tuple(raw: str) -> tuple[str, ...]:
    values: list[str] = []
    seen: set[str] = set()
    for part in raw.split(","):
        value = part.strip()
        if not value or value in seen:
            continue
        seen.add(value)
        values.append(value)
    return tuple(values)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
