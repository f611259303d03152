"""Anthropic messages API provider."""

from __future__ import annotations

from collections.abc import Iterator

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

DEFAULT_HOST = "https://api.anthropic.com"
DEFAULT_MODEL = "claude-4.5-sonnet"
API_VERSION = "2023-06-01"
MAX_TOKENS = 4096

BUILTIN_MODELS: tuple[Model, ...] = (
    Model(
        name="claude-4.5-sonnet",
        description="Balanced plan/execution default.",
        capabilities=("chat", "code", "plan", "tools"),
        tags={"mode": "plan"},
    ),
    Model(
        name="claude-4.5-haiku",
        description="Fast exploration and search sub-agent.",
        capabilities=("chat", "code"),
        tags={"mode": "execution"},
    ),
    Model(
        name="claude-4.1-opus",
        description="Highest reasoning tier for planning bursts.",
        capabilities=("chat", "code", "plan", "tools"),
        tags={"tier": "opus"},
    ),
)


class AnthropicProvider:
    """Streams completions from the Anthropic messages endpoint."""

    def __init__(
        self,
        *,
        api_key: str,
        host: str = DEFAULT_HOST,
        name: str = "Claude",
        timeout_seconds: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._name = name or "Claude"
        self._api_key = api_key.strip()
        self._http = ProviderHttpClient(
            provider_name=self._name,
            base_url=host or DEFAULT_HOST,
            headers={"x-api-key": self._api_key, "anthropic-version": API_VERSION},
            timeout_seconds=timeout_seconds,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.ANTHROPIC

    def list_models(self, token: CancelToken) -> list[Model]:
        if not self._api_key:
            return list(BUILTIN_MODELS)
        payload = self._http.get_json("/v1/models", token)
        known = {model.name: model for model in BUILTIN_MODELS}
        models: list[Model] = []
        for entry in payload.get("data", []):
            model_id = str(entry.get("id", "")).strip()
            if not model_id:
                continue
            fallback = Model(
                name=model_id,
                description=str(entry.get("display_name") or ""),
                capabilities=("chat", "code"),
            )
            models.append(known.get(model_id, fallback))
        return models

    def stream_chat(self, request: ChatRequest, token: CancelToken) -> Iterator[StreamChunk]:
        if not self._api_key:
            raise ProviderError(
                f"{self._name}: API key missing; set ANTHROPIC_API_KEY",
                provider=self._name,
            )
        response = self._http.open_stream(
            "/v1/messages",
            {
                "model": request.model or DEFAULT_MODEL,
                "max_tokens": MAX_TOKENS,
                "messages": [{"role": "user", "content": join_content(request.messages)}],
                "stream": True,
            },
            token,
            label="messages",
        )
        return _message_chunks(iter_sse_payloads(response, token))

    def close(self) -> None:
        self._http.close()


def _message_chunks(payloads: Iterator[str | Exception]) -> Iterator[StreamChunk]:
    for payload in payloads:
        if isinstance(payload, Exception):
            yield StreamChunk(error=str(payload))
            return
        if not payload or payload == "[DONE]":
            yield StreamChunk(done=True)
            return
        try:
            event = decode_event(payload)
        except ValueError as error:
            yield StreamChunk(error=f"invalid stream payload: {error}", done=True)
            return
        event_type = event.get("type")
        delta = event.get("delta") or {}
        if event_type == "content_block_delta":
            text = delta.get("text") or ""
            if text:
                yield StreamChunk(content=text)
        elif event_type == "message_delta":
            if delta.get("stop_reason"):
                yield StreamChunk(done=True)
                return
        elif event_type == "error":
            message = (event.get("error") or {}).get("message") or "provider error"
            yield StreamChunk(error=str(message), done=True)
            return
        elif event_type == "message_stop":
            yield StreamChunk(done=True)
            return
