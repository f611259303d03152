"""Shared test fixtures."""

from __future__ import annotations

import os
import time
from collections.abc import Callable, Iterator

import pytest

from agent_console.cancellation import CancelToken
from agent_console.errors import ProviderError
from agent_console.executor import JobExecutor
from agent_console.providers.base import ChatRequest, Model, ProviderKind, StreamChunk

_ENV_KEYS = ("OPENAI_API_KEY", "ANTHROPIC_API_KEY")


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep developer credentials and overrides out of the tests."""

    for key in list(os.environ):
        if key.startswith("AGENT_CONSOLE_") or key in _ENV_KEYS:
            monkeypatch.delenv(key, raising=False)


@pytest.fixture()
def executor() -> Iterator[JobExecutor]:
    executor = JobExecutor()
    yield executor
    executor.shutdown()


@pytest.fixture()
def wait_until() -> Callable[..., bool]:
    def _wait(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.02)
        return predicate()

    return _wait


class ScriptedProvider:
    """Provider double that streams a fixed chunk list and lists fixed models."""

    def __init__(  # noqa: PLR0913
        self,
        name: str = "scripted",
        *,
        kind: ProviderKind = ProviderKind.CUSTOM,
        chunks: tuple[StreamChunk, ...] = (),
        models: tuple[Model, ...] = (),
        hold_open: bool = False,
        setup_error: str | None = None,
        list_error: str | None = None,
        list_delay: float = 0.0,
    ) -> None:
        self._name = name
        self._kind = kind
        self.chunks = chunks
        self.models = models
        self.hold_open = hold_open
        self.setup_error = setup_error
        self.list_error = list_error
        self.list_delay = list_delay
        self.requests: list[ChatRequest] = []
        self.delivered = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def kind(self) -> ProviderKind:
        return self._kind

    def list_models(self, token: CancelToken) -> list[Model]:
        if self.list_delay:
            # Ignores the token, like an unresponsive backend.
            time.sleep(self.list_delay)
        if self.list_error:
            raise ProviderError(self.list_error, provider=self._name)
        return list(self.models)

    def stream_chat(self, request: ChatRequest, token: CancelToken) -> Iterator[StreamChunk]:
        self.requests.append(request)
        if self.setup_error:
            raise ProviderError(self.setup_error, provider=self._name)
        return self._iterate(token)

    def _iterate(self, token: CancelToken) -> Iterator[StreamChunk]:
        for chunk in self.chunks:
            self.delivered += 1
            yield chunk
        if self.hold_open:
            token.wait(10)


@pytest.fixture()
def scripted_provider() -> type[ScriptedProvider]:
    return ScriptedProvider
