from __future__ import annotations

import json
import threading
import time
from collections.abc import Iterator

import allure
import httpx
import pytest

from agent_console.cancellation import CancelToken
from agent_console.config import Settings
from agent_console.errors import ProviderError
from agent_console.providers import (
    ChatMessage,
    ChatRequest,
    ProviderKind,
    ProviderRegistry,
    StreamChunk,
    build_registry,
    default_model_for,
)
from agent_console.providers.anthropic import AnthropicProvider
from agent_console.providers.echo import EchoProvider
from agent_console.providers.openai import BUILTIN_MODELS, OpenAIAdapter, OpenAIProvider

pytestmark = [
    allure.epic("Providers"),
    allure.feature("Streaming adapters"),
]


def _sse(*payloads: str) -> bytes:
    return "".join(f"data: {payload}\n\n" for payload in payloads).encode("utf-8")


def _request(text: str = "hello", model: str = "") -> ChatRequest:
    return ChatRequest(model=model, messages=(ChatMessage(role="user", content=text),))


def test_openai_chat_stream_yields_deltas_then_done() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        body = _sse(
            json.dumps({"choices": [{"delta": {"content": "Hel"}}]}),
            json.dumps({"choices": [{"delta": {"content": "lo"}}]}),
            json.dumps({"choices": [{"delta": {}, "finish_reason": "stop"}]}),
        )
        return httpx.Response(200, content=body)

    provider = OpenAIProvider(api_key="sk-test", transport=httpx.MockTransport(handler))

    chunks = list(provider.stream_chat(_request("hi there"), CancelToken()))

    assert chunks == [StreamChunk(content="Hel"), StreamChunk(content="lo"), StreamChunk(done=True)]
    assert seen[0].url.path == "/v1/chat/completions"
    assert seen[0].headers["Authorization"] == "Bearer sk-test"
    sent = json.loads(seen[0].content)
    assert sent["model"] == "gpt-5.1-codex"
    assert sent["messages"] == [{"role": "user", "content": "hi there"}]
    assert sent["stream"] is True
    provider.close()


def test_openai_responses_adapter_uses_responses_endpoint() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        body = _sse(
            json.dumps({"type": "response.output_text.delta", "delta": "ok"}),
            json.dumps({"type": "response.completed"}),
        )
        return httpx.Response(200, content=body)

    provider = OpenAIProvider(
        api_key="sk-test",
        adapter=OpenAIAdapter.RESPONSES,
        transport=httpx.MockTransport(handler),
    )

    chunks = list(provider.stream_chat(_request(model="gpt-5"), CancelToken()))

    assert seen == ["/v1/responses"]
    assert chunks == [StreamChunk(content="ok"), StreamChunk(done=True)]


def test_openai_done_marker_ends_stream() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            content=_sse(json.dumps({"choices": [{"delta": {"content": "x"}}]}), "[DONE]"),
        )

    provider = OpenAIProvider(api_key="sk-test", transport=httpx.MockTransport(handler))

    chunks = list(provider.stream_chat(_request(), CancelToken()))

    assert chunks[-1] == StreamChunk(done=True)


def test_invalid_payload_becomes_terminal_error_chunk() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=_sse("{not json"))

    provider = OpenAIProvider(api_key="sk-test", transport=httpx.MockTransport(handler))

    (chunk,) = list(provider.stream_chat(_request(), CancelToken()))

    assert chunk.terminal
    assert chunk.error is not None
    assert chunk.error.startswith("invalid stream payload")


def test_openai_http_error_is_raised_at_setup() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="bad key")

    provider = OpenAIProvider(api_key="sk-test", transport=httpx.MockTransport(handler))

    with pytest.raises(ProviderError) as error:
        provider.stream_chat(_request(), CancelToken())

    assert error.value.status_code == 401
    assert "bad key" in str(error.value)


def test_missing_api_key_fails_before_any_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    provider = OpenAIProvider(api_key="  ", transport=httpx.MockTransport(handler))

    with pytest.raises(ProviderError, match="OPENAI_API_KEY"):
        provider.stream_chat(_request(), CancelToken())


def test_models_without_key_fall_back_to_builtin_list() -> None:
    provider = OpenAIProvider(api_key="")

    assert provider.list_models(CancelToken()) == list(BUILTIN_MODELS)


def test_models_endpoint_keeps_known_metadata() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/models"
        return httpx.Response(200, json={"data": [{"id": "gpt-5.1-codex"}, {"id": "custom-x"}]})

    provider = OpenAIProvider(api_key="sk-test", transport=httpx.MockTransport(handler))

    models = provider.list_models(CancelToken())

    assert [model.name for model in models] == ["gpt-5.1-codex", "custom-x"]
    assert models[0].tags == {"mode": "codex"}
    assert models[1].capabilities == ("chat",)


class _StalledBody(httpx.SyncByteStream):
    """Body that sends one fragment, then blocks until the response is closed."""

    def __init__(self) -> None:
        self.closed = threading.Event()

    def __iter__(self) -> Iterator[bytes]:
        yield b'{"data": ['
        self.closed.wait(5)

    def close(self) -> None:
        self.closed.set()


def test_canceling_model_listing_aborts_a_stalled_body() -> None:
    body = _StalledBody()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, stream=body)

    provider = OpenAIProvider(api_key="sk-test", transport=httpx.MockTransport(handler))
    token = CancelToken()
    threading.Timer(0.2, token.cancel).start()

    started = time.monotonic()
    with pytest.raises(ProviderError, match="OpenAI: request canceled"):
        provider.list_models(token)

    assert time.monotonic() - started < 2.0
    assert body.closed.is_set()
    provider.close()


def test_model_listing_with_canceled_token_sends_nothing() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    provider = OpenAIProvider(api_key="sk-test", transport=httpx.MockTransport(handler))
    token = CancelToken()
    token.cancel()

    with pytest.raises(ProviderError, match="request canceled"):
        provider.list_models(token)


def test_anthropic_stream_maps_content_block_deltas() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        body = _sse(
            json.dumps({"type": "message_start"}),
            json.dumps({"type": "content_block_delta", "delta": {"text": "Hi"}}),
            json.dumps({"type": "content_block_delta", "delta": {"text": "!"}}),
            json.dumps({"type": "message_delta", "delta": {"stop_reason": "end_turn"}}),
        )
        return httpx.Response(200, content=body)

    provider = AnthropicProvider(api_key="ak-test", transport=httpx.MockTransport(handler))

    chunks = list(provider.stream_chat(_request(), CancelToken()))

    assert chunks == [StreamChunk(content="Hi"), StreamChunk(content="!"), StreamChunk(done=True)]
    assert seen[0].url.path == "/v1/messages"
    assert seen[0].headers["x-api-key"] == "ak-test"
    assert seen[0].headers["anthropic-version"] == "2023-06-01"


def test_anthropic_error_event_is_terminal() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = _sse(json.dumps({"type": "error", "error": {"message": "overloaded"}}))
        return httpx.Response(200, content=body)

    provider = AnthropicProvider(api_key="ak-test", transport=httpx.MockTransport(handler))

    chunks = list(provider.stream_chat(_request(), CancelToken()))

    assert chunks == [StreamChunk(error="overloaded", done=True)]


def test_echo_provider_streams_words_and_stops_on_cancel() -> None:
    provider = EchoProvider()

    chunks = list(provider.stream_chat(_request("one two"), CancelToken()))
    assert "".join(chunk.content for chunk in chunks) == "echo: one two"
    assert chunks[-1].done

    token = CancelToken()
    stream = provider.stream_chat(_request("one two three"), token)
    assert next(stream).content == "echo:"
    token.cancel()
    assert list(stream) == []


def test_registry_lookup_by_name_kind_and_query() -> None:
    echo = EchoProvider(name="Local")
    openai = OpenAIProvider(api_key="")
    registry = ProviderRegistry([openai, echo])

    assert registry.names() == ["OpenAI", "Local"]
    assert registry.by_name("local") is echo
    assert registry.by_kind("openai") is openai
    assert registry.by_kind(ProviderKind.ANTHROPIC) is None
    assert registry.resolve(" OPENAI ") is openai
    assert registry.resolve("custom") is echo
    assert registry.resolve("") is None
    assert len(registry) == 2
    assert default_model_for(openai) == "gpt-5.1-codex"
    assert default_model_for(echo) == ""
    assert default_model_for(None) == ""
    registry.close()


def test_build_registry_follows_enablement(monkeypatch) -> None:
    monkeypatch.setenv("AGENT_CONSOLE_OPENAI_ENABLED", "false")
    monkeypatch.setenv("AGENT_CONSOLE_ECHO_ENABLED", "true")

    registry = build_registry(Settings.from_env())

    assert registry.names() == ["Claude", "echo"]
    registry.close()
