"""OpenAI-compatible provider (chat completions and responses APIs)."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from enum import Enum
from typing import Any

import httpx

from agent_console.cancellation import CancelToken
from agent_console.errors import ProviderError
from agent_console.providers.base import (
    ChatRequest,
    Model,
    ProviderKind,
    StreamChunk,
    join_content,
)
from agent_console.providers.http import ProviderHttpClient, decode_event, iter_sse_payloads

logger = logging.getLogger(__name__)

DEFAULT_HOST = "https://api.openai.com"
DEFAULT_MODEL = "gpt-5.1-codex"

_CAPABILITIES = ("chat", "code", "plan", "tools")

BUILTIN_MODELS: tuple[Model, ...] = (
    Model(
        name="gpt-5",
        description="General-purpose GPT-5 model for broad coding sessions.",
        capabilities=_CAPABILITIES,
    ),
    Model(
        name="gpt-5.1",
        description="Updated GPT-5.1 with improved reasoning and tool reliability.",
        capabilities=_CAPABILITIES,
    ),
    Model(
        name="gpt-5.1-codex",
        description="GPT-5.1 Codex variant optimized for developer workflows.",
        capabilities=_CAPABILITIES,
        tags={"mode": "codex"},
    ),
)


class OpenAIAdapter(str, Enum):
    """Wire protocol used against an OpenAI-compatible host."""

    CHAT = "openai-chat"
    RESPONSES = "openai-responses"


class OpenAIProvider:
    """Streams completions from an OpenAI-compatible HTTP API."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        api_key: str,
        host: str = DEFAULT_HOST,
        name: str = "OpenAI",
        adapter: OpenAIAdapter = OpenAIAdapter.CHAT,
        timeout_seconds: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._name = name or "OpenAI"
        self._api_key = api_key.strip()
        self.adapter = adapter
        self._http = ProviderHttpClient(
            provider_name=self._name,
            base_url=host or DEFAULT_HOST,
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout_seconds=timeout_seconds,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.OPENAI

    def list_models(self, token: CancelToken) -> list[Model]:
        """List models from ``/v1/models``; without a key, return the built-in list."""

        if not self._api_key:
            return list(BUILTIN_MODELS)
        payload = self._http.get_json("/v1/models", token)
        known = {model.name: model for model in BUILTIN_MODELS}
        models: list[Model] = []
        for entry in payload.get("data", []):
            model_id = str(entry.get("id", "")).strip()
            if not model_id:
                continue
            models.append(known.get(model_id, Model(name=model_id, capabilities=("chat",))))
        return models

    def stream_chat(self, request: ChatRequest, token: CancelToken) -> Iterator[StreamChunk]:
        if not self._api_key:
            raise ProviderError(
                f"{self._name}: API key missing; set OPENAI_API_KEY",
                provider=self._name,
            )
        model = request.model or DEFAULT_MODEL
        content = join_content(request.messages)
        if self.adapter is OpenAIAdapter.RESPONSES:
            response = self._http.open_stream(
                "/v1/responses",
                {
                    "model": model,
                    "input": [
                        {"role": "user", "content": [{"type": "text", "text": content}]},
                    ],
                    "stream": True,
                },
                token,
                label="responses",
            )
            return _responses_chunks(iter_sse_payloads(response, token))
        response = self._http.open_stream(
            "/v1/chat/completions",
            {
                "model": model,
                "messages": [{"role": "user", "content": content}],
                "stream": True,
            },
            token,
            label="chat",
        )
        return _chat_chunks(iter_sse_payloads(response, token))

    def close(self) -> None:
        self._http.close()


def _chat_chunks(payloads: Iterator[str | Exception]) -> Iterator[StreamChunk]:
    for payload in payloads:
        if isinstance(payload, Exception):
            yield StreamChunk(error=str(payload))
            return
        if payload == "[DONE]":
            yield StreamChunk(done=True)
            return
        try:
            event = decode_event(payload)
        except ValueError as error:
            yield StreamChunk(error=f"invalid stream payload: {error}", done=True)
            return
        for choice in event.get("choices", []):
            text = (choice.get("delta") or {}).get("content") or ""
            if text:
                yield StreamChunk(content=text)
            if choice.get("finish_reason"):
                yield StreamChunk(done=True)
                return


def _responses_chunks(payloads: Iterator[str | Exception]) -> Iterator[StreamChunk]:
    for payload in payloads:
        if isinstance(payload, Exception):
            yield StreamChunk(error=str(payload))
            return
        if payload == "[DONE]":
            yield StreamChunk(done=True)
            return
        try:
            event: dict[str, Any] = decode_event(payload)
        except ValueError as error:
            yield StreamChunk(error=f"invalid stream payload: {error}", done=True)
            return
        message = (event.get("error") or {}).get("message")
        if message:
            yield StreamChunk(error=str(message), done=True)
            return
        delta = event.get("delta")
        if isinstance(delta, str) and delta:
            yield StreamChunk(content=delta)
        elif isinstance(delta, dict):
            for part in delta.get("content") or []:
                text = part.get("text") or ""
                if text:
                    yield StreamChunk(content=text)
        if event.get("type") == "response.completed":
            yield StreamChunk(done=True)
            return
