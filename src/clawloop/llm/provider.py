"""Provider interface consumed by the Agent."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence

from clawloop.models.message import ChatMessage, LLMResponse, TokenUsage, ToolDefinition

ChunkCallback = Callable[[str], None | Awaitable[None]]


async def emit_chunk(callback: ChunkCallback, text: str) -> None:
    """Invoke a sync or async chunk callback."""
    result = callback(text)
    if asyncio.iscoroutine(result):
        await result


class LLMProvider(ABC):
    """
    A chat-completion backend.

    ``chat`` must not raise for provider-side failures: they are reported as
    ``LLMResponse(success=False, error=...)``. ``chat_stream`` returns whether
    the stream was established; the usage of the last stream is exposed via
    :attr:`last_stream_usage`.
    """

    def __init__(self, model: str) -> None:
        self._model = model
        self._last_stream_usage = TokenUsage()

    @property
    def model(self) -> str:
        return self._model

    @property
    def provider_name(self) -> str:
        """Provider prefix of a litellm model string (``"anthropic/claude-..."``)."""
        prefix, sep, _ = self._model.partition("/")
        return prefix if sep else ""

    @property
    def last_stream_usage(self) -> TokenUsage:
        return self._last_stream_usage

    @abstractmethod
    async def chat(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDefinition] = (),
    ) -> LLMResponse: ...

    @abstractmethod
    async def chat_stream(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDefinition],
        on_chunk: ChunkCallback,
    ) -> bool: ...
