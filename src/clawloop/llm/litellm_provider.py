"""LLMProvider backed by litellm."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import litellm
import structlog

from clawloop.llm.provider import ChunkCallback, LLMProvider, emit_chunk
from clawloop.models.message import (
    ChatMessage,
    LLMResponse,
    TokenUsage,
    ToolCall,
    ToolDefinition,
    decode_arguments,
)


def _usage(raw: Any) -> TokenUsage:
    if not raw:
        return TokenUsage()
    return TokenUsage(
        input=getattr(raw, "prompt_tokens", 0) or 0,
        output=getattr(raw, "completion_tokens", 0) or 0,
    )


class LiteLLMProvider(LLMProvider):
    """
    Calls ``litellm.acompletion`` with OpenAI-shaped messages and tools.

    Any exception from litellm is converted into a failed ``LLMResponse``.
    There are no retries at this layer.

    Example::

        provider = LiteLLMProvider(
            "anthropic/claude-sonnet-4-5",
            extra_headers=optimizer.generate_cache_headers("anthropic", system_prompt),
        )
    """

    def __init__(
        self,
        model: str,
        *,
        max_tokens: int = 4_096,
        temperature: float = 0.0,
        extra_headers: dict[str, str] | None = None,
        **completion_kwargs: Any,
    ) -> None:
        super().__init__(model)
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._extra_headers = dict(extra_headers or {})
        self._completion_kwargs = completion_kwargs
        self._logger = structlog.get_logger("clawloop.llm").bind(model=model)

    def set_extra_headers(self, headers: dict[str, str]) -> None:
        self._extra_headers = dict(headers)

    def _call_kwargs(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDefinition],
        *,
        stream: bool,
    ) -> dict[str, Any]:
        call_kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": [msg.to_wire() for msg in messages],
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
            **self._completion_kwargs,
        }
        if tools:
            call_kwargs["tools"] = [tool.to_wire() for tool in tools]
        if self._extra_headers:
            call_kwargs["extra_headers"] = self._extra_headers
        if stream:
            call_kwargs["stream"] = True
            call_kwargs["stream_options"] = {"include_usage": True}
        return call_kwargs

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDefinition] = (),
    ) -> LLMResponse:
        try:
            response = await litellm.acompletion(**self._call_kwargs(messages, tools, stream=False))
        except Exception as exc:
            self._logger.error("llm_call_failed", error=str(exc))
            return LLMResponse.failure(str(exc))

        if not response.choices:
            self._logger.error("llm_empty_response")
            return LLMResponse.failure("Provider returned no choices")

        choice = response.choices[0]
        message = choice.message
        calls = [
            ToolCall(
                id=raw.id,
                name=raw.function.name,
                arguments=decode_arguments(raw.function.arguments),
            )
            for raw in (getattr(message, "tool_calls", None) or [])
        ]
        usage = _usage(getattr(response, "usage", None))
        return LLMResponse(
            content=message.content or "",
            tool_calls=calls,
            success=True,
            input_tokens=usage.input,
            output_tokens=usage.output,
            finish_reason=choice.finish_reason,
        )

    async def chat_stream(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDefinition],
        on_chunk: ChunkCallback,
    ) -> bool:
        self._last_stream_usage = TokenUsage()
        try:
            stream = await litellm.acompletion(**self._call_kwargs(messages, tools, stream=True))
        except Exception as exc:
            self._logger.error("llm_stream_failed", error=str(exc))
            return False

        try:
            async for chunk in stream:
                delta = chunk.choices[0].delta if chunk.choices else None
                if delta is not None and delta.content:
                    await emit_chunk(on_chunk, delta.content)
                if getattr(chunk, "usage", None):
                    self._last_stream_usage = _usage(chunk.usage)
        except Exception as exc:
            # The stream was established; generation errors are only logged.
            self._logger.error("llm_stream_interrupted", error=str(exc))
        return True
