"""Provider registry and construction from settings."""

from __future__ import annotations

import logging

from agent_console.config import Settings
from agent_console.providers.anthropic import AnthropicProvider
from agent_console.providers.anthropic import DEFAULT_MODEL as ANTHROPIC_DEFAULT_MODEL
from agent_console.providers.base import Provider, ProviderKind
from agent_console.providers.echo import EchoProvider
from agent_console.providers.openai import DEFAULT_MODEL as OPENAI_DEFAULT_MODEL
from agent_console.providers.openai import OpenAIAdapter, OpenAIProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Ordered set of available providers."""

    def __init__(self, providers: list[Provider] | tuple[Provider, ...] = ()) -> None:
        self._providers = list(providers)

    def providers(self) -> list[Provider]:
        return list(self._providers)

    def names(self) -> list[str]:
        return [provider.name for provider in self._providers]

    def by_name(self, name: str) -> Provider | None:
        """Case-insensitive lookup by display name."""

        wanted = name.strip().lower()
        for provider in self._providers:
            if provider.name.lower() == wanted:
                return provider
        return None

    def by_kind(self, kind: ProviderKind | str) -> Provider | None:
        wanted = ProviderKind(kind) if not isinstance(kind, ProviderKind) else kind
        for provider in self._providers:
            if provider.kind is wanted:
                return provider
        return None

    def resolve(self, query: str) -> Provider | None:
        """Match a user-typed name or kind."""

        query = query.strip().lower()
        if not query:
            return None
        for provider in self._providers:
            if provider.name.lower() == query or provider.kind.value == query:
                return provider
        return None

    def close(self) -> None:
        """Release HTTP clients held by providers that have any."""

        for provider in self._providers:
            close = getattr(provider, "close", None)
            if callable(close):
                close()

    def __len__(self) -> int:
        return len(self._providers)


def default_model_for(provider: Provider | None) -> str:
    """Default model name for a provider family ('' means provider default)."""

    if provider is None:
        return ""
    if provider.kind is ProviderKind.OPENAI:
        return OPENAI_DEFAULT_MODEL
    if provider.kind is ProviderKind.ANTHROPIC:
        return ANTHROPIC_DEFAULT_MODEL
    return ""


def build_registry(settings: Settings) -> ProviderRegistry:
    """Instantiate the providers enabled in ``settings``."""

    provider_settings = settings.providers
    providers: list[Provider] = []
    if provider_settings.openai_enabled:
        providers.append(
            OpenAIProvider(
                api_key=provider_settings.openai_api_key,
                host=provider_settings.openai_host,
                adapter=OpenAIAdapter(provider_settings.openai_adapter),
                timeout_seconds=provider_settings.request_timeout_seconds,
            ),
        )
    if provider_settings.anthropic_enabled:
        providers.append(
            AnthropicProvider(
                api_key=provider_settings.anthropic_api_key,
                host=provider_settings.anthropic_host,
                timeout_seconds=provider_settings.request_timeout_seconds,
            ),
        )
    if provider_settings.echo_enabled:
        providers.append(EchoProvider(delay_seconds=provider_settings.echo_delay_seconds))
    logger.info("Providers registered: %s", ", ".join(p.name for p in providers) or "none")
    return ProviderRegistry(providers)
