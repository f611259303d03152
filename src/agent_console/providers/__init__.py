"""Chat provider contract and bundled provider adapters."""

from agent_console.providers.base import (
    ChatMessage,
    ChatRequest,
    Model,
    Provider,
    ProviderKind,
    StreamChunk,
)
from agent_console.providers.registry import ProviderRegistry, build_registry, default_model_for

__all__ = [
    "ChatMessage",
    "ChatRequest",
    "Model",
    "Provider",
    "ProviderKind",
    "ProviderRegistry",
    "StreamChunk",
    "build_registry",
    "default_model_for",
]
