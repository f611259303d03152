"""Local demo provider that streams the prompt back word by word."""

from __future__ import annotations

from collections.abc import Iterator

from agent_console.cancellation import CancelToken
from agent_console.providers.base import (
    ChatRequest,
    Model,
    ProviderKind,
    StreamChunk,
    join_content,
)


class EchoProvider:
    """Deterministic offline provider used for demos and integration tests."""

    def __init__(
        self,
        *,
        name: str = "echo",
        delay_seconds: float = 0.0,
        models: tuple[Model, ...] | None = None,
    ) -> None:
        self._name = name
        self.delay_seconds = delay_seconds
        self._models = models or (
            Model(name="echo-1", description="Repeats the prompt.", capabilities=("chat",)),
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.CUSTOM

    def list_models(self, token: CancelToken) -> list[Model]:
        _ = token
        return list(self._models)

    def stream_chat(self, request: ChatRequest, token: CancelToken) -> Iterator[StreamChunk]:
        text = join_content(request.messages) or "(empty prompt)"
        return self._words(f"echo: {text}", token)

    def _words(self, text: str, token: CancelToken) -> Iterator[StreamChunk]:
        words = text.split(" ")
        for index, word in enumerate(words):
            if self.delay_seconds and token.wait(self.delay_seconds):
                return
            if token.cancelled:
                return
            yield StreamChunk(content=word if index == 0 else f" {word}")
        yield StreamChunk(done=True)
