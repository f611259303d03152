"""Provider contract consumed by the session engine."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from agent_console.cancellation import CancelToken


class ProviderKind(str, Enum):
    """Provider family."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    CUSTOM = "custom"


@dataclass(slots=True, frozen=True)
class Model:
    """Model advertised by a provider."""

    name: str
    description: str = ""
    capabilities: tuple[str, ...] = ()
    tags: dict[str, str] = field(default_factory=dict, hash=False)


@dataclass(slots=True, frozen=True)
class ChatMessage:
    role: str
    content: str


@dataclass(slots=True, frozen=True)
class ChatRequest:
    """Streaming completion request."""

    model: str
    messages: tuple[ChatMessage, ...]


@dataclass(slots=True, frozen=True)
class StreamChunk:
    """One incremental unit of a streamed reply.

    ``error`` carries a transport/provider failure as text; a chunk with an
    error or ``done=True`` is terminal for its stream.
    """

    content: str = ""
    error: str | None = None
    done: bool = False

    @property
    def terminal(self) -> bool:
        return self.done or self.error is not None


class Provider(Protocol):
    """Contract every chat backend implements."""

    @property
    def name(self) -> str:
        """Display name, unique within a registry."""

    @property
    def kind(self) -> ProviderKind:
        """Provider family."""

    def list_models(self, token: CancelToken) -> list[Model]:
        """Return models available to the current credentials."""

    def stream_chat(self, request: ChatRequest, token: CancelToken) -> Iterator[StreamChunk]:
        """Open a streamed completion.

        Setup failures raise :class:`agent_console.errors.ProviderError`;
        failures while reading are yielded as error chunks. Canceling ``token``
        must abort a blocked read promptly.
        """


def join_content(messages: tuple[ChatMessage, ...] | list[ChatMessage]) -> str:
    """Concatenate non-empty message bodies separated by blank lines."""

    parts = [message.content for message in messages if message.content]
    return "\n\n".join(parts).strip()
