"""Concurrent per-provider model catalog lookups."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from agent_console.cancellation import CancelToken
from agent_console.config import ModelSettings
from agent_console.errors import CatalogTimeoutError
from agent_console.providers.base import Model, Provider

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_TIMEOUT_SECONDS = 10.0


@dataclass(slots=True, frozen=True)
class CatalogResult:
    """Models (already filtered) or an error for one provider of one fetch generation."""

    generation: int
    provider: str
    models: tuple[Model, ...] = ()
    error: str | None = None


@dataclass(slots=True, frozen=True)
class CatalogRow:
    """One provider/model entry, or an error/empty placeholder, in the model picker."""

    provider_name: str
    model_name: str = ""
    capabilities: tuple[str, ...] = ()
    selectable: bool = False
    error_text: str = ""
    tags: dict[str, str] = field(default_factory=dict, hash=False)

    @property
    def display(self) -> str:
        if self.error_text:
            return f"{self.provider_name}: {self.error_text}"
        caps = ",".join(self.capabilities)
        return f"{self.provider_name} ▸ {self.model_name} [{caps}]{summarize_tags(self.tags)}"


def rows_for_result(result: CatalogResult) -> list[CatalogRow]:
    """Turn one provider's result into picker rows.

    Errors become a single error row and an empty filtered list becomes a
    single "no models match filter" row, so every provider is accounted for.
    """

    if result.error is not None:
        return [CatalogRow(provider_name=result.provider, error_text=f"error {result.error}")]
    if not result.models:
        return [CatalogRow(provider_name=result.provider, error_text="no models match filter")]
    return [
        CatalogRow(
            provider_name=result.provider,
            model_name=model.name,
            capabilities=model.capabilities,
            selectable=True,
            tags=dict(model.tags),
        )
        for model in result.models
    ]


def resolve_whitelist(settings: ModelSettings, provider: Provider) -> frozenset[str]:
    """Provider name entry, then provider kind entry, then the global list."""

    overrides = settings.provider_whitelist
    for key in (provider.name.lower(), provider.kind.value):
        listed = overrides.get(key)
        if listed:
            return frozenset(name.strip() for name in listed if name.strip())
    return frozenset(name.strip() for name in settings.whitelist if name.strip())


def filter_models(models: Iterable[Model], whitelist: frozenset[str]) -> tuple[Model, ...]:
    """Keep whitelisted models; an empty whitelist keeps everything."""

    if not whitelist:
        return tuple(models)
    return tuple(model for model in models if model.name in whitelist)


def summarize_tags(tags: dict[str, str]) -> str:
    if not tags:
        return ""
    parts = [f"{key}={value}" for key, value in sorted(tags.items())]
    return f" ({','.join(parts)})"


class CatalogFetcher:
    """Fans out one bounded model-list request per provider.

    Each provider gets its own daemon thread and deadline; results are handed
    to ``publish`` one by one as they arrive, with no barrier between
    providers. A provider that ignores cancellation still yields a timeout
    result once its deadline passes.
    """

    def __init__(
        self,
        publish: Callable[[CatalogResult], None],
        *,
        model_settings: ModelSettings | None = None,
        timeout_seconds: float = DEFAULT_CATALOG_TIMEOUT_SECONDS,
    ) -> None:
        self._publish = publish
        self._model_settings = model_settings or ModelSettings()
        self.timeout_seconds = timeout_seconds

    def fetch(self, generation: int, providers: Iterable[Provider]) -> list[threading.Thread]:
        """Start one fetch per provider; returns the started threads."""

        threads: list[threading.Thread] = []
        for provider in providers:
            whitelist = resolve_whitelist(self._model_settings, provider)
            thread = threading.Thread(
                target=self._fetch_one,
                args=(generation, provider, whitelist),
                daemon=True,
                name=f"catalog-{provider.name}",
            )
            thread.start()
            threads.append(thread)
        return threads

    def _fetch_one(self, generation: int, provider: Provider, whitelist: frozenset[str]) -> None:
        token = CancelToken().with_timeout(self.timeout_seconds)
        outcome = _Outcome()

        def _call() -> None:
            try:
                outcome.models = provider.list_models(token)
            except Exception as error:  # noqa: BLE001
                outcome.error = error
            finally:
                outcome.done.set()

        threading.Thread(target=_call, daemon=True, name=f"catalog-call-{provider.name}").start()
        if not outcome.done.wait(self.timeout_seconds):
            token.cancel(reason="timeout")
            error = CatalogTimeoutError(f"timed out after {self.timeout_seconds:g}s")
            logger.warning("Model listing for %s timed out", provider.name)
            self._publish(CatalogResult(generation, provider.name, error=str(error)))
            return
        token.release()

        if outcome.error is not None:
            logger.warning("Model listing for %s failed: %s", provider.name, outcome.error)
            self._publish(CatalogResult(generation, provider.name, error=str(outcome.error)))
            return

        models = outcome.models or []
        filtered = filter_models(models, whitelist)
        logger.info(
            "Model listing for %s: %d models (%d after filter)",
            provider.name,
            len(models),
            len(filtered),
        )
        self._publish(CatalogResult(generation, provider.name, models=filtered))


@dataclass(slots=True)
class _Outcome:
    models: list[Model] | None = None
    error: Exception | None = None
    done: threading.Event = field(default_factory=threading.Event)
