"""Offline provider for demos and tests."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from clawloop.llm.provider import ChunkCallback, LLMProvider, emit_chunk
from clawloop.models.message import ChatMessage, LLMResponse, Role, TokenUsage, ToolDefinition
from clawloop.tokens.estimator import TokenEstimator


class MockProvider(LLMProvider):
    """
    Deterministic provider that never touches the network.

    With ``responses`` it replays them in order, one per ``chat`` call, and
    then fails. Without, it echoes the last user message.

    Every call records the messages and tools it received in :attr:`calls`.
    """

    def __init__(
        self,
        responses: Iterable[LLMResponse] | None = None,
        *,
        model: str = "mock/echo",
    ) -> None:
        super().__init__(model)
        self._scripted = list(responses) if responses is not None else None
        self._estimator = TokenEstimator(enable_cache=False)
        self.calls: list[tuple[list[ChatMessage], list[ToolDefinition]]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def _echo(self, messages: Sequence[ChatMessage]) -> str:
        last_user = next(
            (msg.content for msg in reversed(messages) if msg.role is Role.USER),
            "Hello",
        )
        return (
            f"[Mock LLM response to: {last_user[:100]}]\n"
            "This is a simulated response. Unset CLAWLOOP_MOCK_LLM to use a real model."
        )

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDefinition] = (),
    ) -> LLMResponse:
        self.calls.append((list(messages), list(tools)))
        if self._scripted is not None:
            if not self._scripted:
                return LLMResponse.failure("Mock provider has no scripted responses left")
            return self._scripted.pop(0)

        text = self._echo(messages)
        return LLMResponse(
            content=text,
            success=True,
            input_tokens=self._estimator.estimate_messages(messages),
            output_tokens=self._estimator.estimate(text),
            finish_reason="stop",
        )

    async def chat_stream(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDefinition],
        on_chunk: ChunkCallback,
    ) -> bool:
        response = await self.chat(messages, tools)
        if not response.success:
            return False
        for index, word in enumerate(response.content.split(" ")):
            await emit_chunk(on_chunk, word if index == 0 else f" {word}")
        self._last_stream_usage = TokenUsage(
            input=response.input_tokens, output=response.output_tokens
        )
        return True
