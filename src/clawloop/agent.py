"""Agent: the tool-calling orchestration loop."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable, Coroutine, Sequence
from typing import Any, TypeVar

import structlog

from clawloop.compression.optimizer import TokenOptimizer
from clawloop.events.bus import AgentEvent, EventBus
from clawloop.llm.provider import ChunkCallback, LLMProvider, emit_chunk
from clawloop.models.config import AgentConfig, ClawConfig
from clawloop.models.message import (
    AgentResponse,
    AgentStatus,
    ChatMessage,
    LLMResponse,
    TokenUsage,
    ToolCall,
    ToolDefinition,
)
from clawloop.prompt.builder import PromptBuilder, PromptMode
from clawloop.tokens.budget import TokenBudget
from clawloop.tokens.estimator import TokenEstimator
from clawloop.tools.base import ToolResult
from clawloop.tools.registry import ToolExecutor
from clawloop.utils import make_id

T = TypeVar("T")

CompleteCallback = Callable[[AgentResponse], None | Awaitable[None]]

TOOL_FAILURE_ERROR = "tool execution failed"
ITERATIONS_EXHAUSTED_ERROR = "maximum iterations reached without a final answer"
STREAM_FAILURE_ERROR = "failed to establish stream"


class ProcessInterrupted(Exception):
    """Raised internally when a provider or tool call is cancelled or times out."""

    def __init__(self, status: AgentStatus) -> None:
        super().__init__(status.value)
        self.status = status


class Agent:
    """
    One conversation with an LLM that may call tools.

    ``process()`` appends the user turn, then alternates provider calls and
    tool executions until the model answers without tool calls, a provider or
    tool call fails, the call is cancelled or times out, or
    ``max_iterations`` provider calls have been made. Failures are reported in
    the returned ``AgentResponse``; ``process()`` does not raise for them.

    An Agent owns one mutable history and is not safe for concurrent
    ``process()`` calls.

    Example::

        agent = Agent(
            create_provider("anthropic/claude-sonnet-4-5"),
            ToolExecutor(registry),
            config=AgentConfig(token_optimization=True),
        )
        response = await agent.process("list files")
        if not response.success:
            print(response.status, response.error)
    """

    def __init__(
        self,
        provider: LLMProvider,
        executor: ToolExecutor,
        *,
        config: AgentConfig | None = None,
        optimizer: TokenOptimizer | None = None,
        budget: TokenBudget | None = None,
        prompt_builder: PromptBuilder | None = None,
        event_bus: EventBus | None = None,
        history: Sequence[ChatMessage] | None = None,
        session_id: str | None = None,
    ) -> None:
        self._provider = provider
        self._executor = executor
        self._config = config or AgentConfig()
        self._optimizer = optimizer
        if self._optimizer is None and self._config.token_optimization:
            self._optimizer = TokenOptimizer()
        self._budget = budget
        self._prompt_builder = prompt_builder or PromptBuilder()
        self._event_bus = event_bus or EventBus()
        self._history: list[ChatMessage] = list(history or [])
        self._session_id = session_id or make_id("sess")
        self._usage = TokenUsage()
        self._recent_tool_calls: list[tuple[str, str]] = []  # (tool_name, arguments_json)
        self._logger = structlog.get_logger("clawloop.agent").bind(session_id=self._session_id)

    @classmethod
    def from_config(
        cls,
        provider: LLMProvider,
        executor: ToolExecutor,
        config: ClawConfig,
        **kwargs: Any,
    ) -> Agent:
        """
        Build an Agent from a ``ClawConfig`` bundle.

        The optimizer is built from ``config.optimization`` and the budget from
        ``config.budget``. Remaining keyword arguments go to ``__init__``.
        """
        estimator = TokenEstimator.from_config(config.optimization)
        return cls(
            provider,
            executor,
            config=config.agent,
            optimizer=TokenOptimizer(config.optimization, estimator),
            budget=TokenBudget(config.budget, estimator),
            **kwargs,
        )

    # ── Properties ─────────────────────────────────────────────────────────────

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def config(self) -> AgentConfig:
        return self._config

    @property
    def history(self) -> list[ChatMessage]:
        """A copy of the canonical history."""
        return list(self._history)

    @property
    def token_usage(self) -> TokenUsage:
        """Provider-reported usage accumulated over the Agent's lifetime."""
        return self._usage

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def optimizer(self) -> TokenOptimizer | None:
        return self._optimizer

    @property
    def budget(self) -> TokenBudget | None:
        return self._budget

    # ── History and settings ───────────────────────────────────────────────────

    def add_to_history(self, message: ChatMessage) -> None:
        self._append(message)

    def clear_history(self) -> None:
        self._history.clear()
        self._recent_tool_calls.clear()

    def set_system_prompt(self, prompt: str) -> None:
        self._prompt_builder.set_system_prompt(prompt)

    def set_prompt_mode(self, mode: PromptMode) -> None:
        self._prompt_builder.set_mode(mode)

    def enable_token_optimization(self, enabled: bool = True) -> None:
        """Toggle outbound compression and tool-result truncation."""
        self._config = self._config.model_copy(update={"token_optimization": enabled})
        if enabled and self._optimizer is None:
            self._optimizer = TokenOptimizer()

    # ── Processing ─────────────────────────────────────────────────────────────

    async def process(
        self,
        user_message: str,
        *,
        cancel: asyncio.Event | None = None,
    ) -> AgentResponse:
        """
        Run the tool-calling loop for one user message.

        Args:
            user_message: Text of the new user turn.
            cancel: Setting this event interrupts the in-flight provider or
                tool call and ends the loop with ``AgentStatus.CANCELLED``.

        Returns:
            The terminal ``AgentResponse``. Check ``success`` or ``status``.
        """
        self._append(ChatMessage.user(user_message))
        tools = self._executor.get_tool_definitions()

        totals = TokenUsage()
        last_content = ""
        compression_applied = False
        doom_loop = False

        def finish(**fields: Any) -> AgentResponse:
            return AgentResponse(
                total_input_tokens=totals.input,
                total_output_tokens=totals.output,
                compression_applied=compression_applied,
                doom_loop_detected=doom_loop,
                **fields,
            )

        for iteration in range(1, self._config.max_iterations + 1):
            outbound, compressed = self._prepare_outbound(tools)
            compression_applied = compression_applied or compressed
            self._event_bus.publish(
                AgentEvent.ROUND_STARTED,
                {
                    "session_id": self._session_id,
                    "iteration": iteration,
                    "message_count": len(outbound),
                },
            )

            try:
                response = await self._guard(self._provider.chat(outbound, tools), cancel)
            except ProcessInterrupted as exc:
                self._publish_interrupted(exc.status)
                return finish(
                    content=last_content,
                    error=f"provider call interrupted ({exc.status.value})",
                    status=exc.status,
                    iterations=iteration,
                )
            except Exception as exc:
                self._logger.error("provider_raised", iteration=iteration, error=str(exc))
                response = LLMResponse.failure(f"{type(exc).__name__}: {exc}")

            if not response.success:
                self._logger.warning("provider_failed", iteration=iteration, error=response.error)
                self._event_bus.publish(
                    AgentEvent.PROVIDER_FAILED,
                    {"session_id": self._session_id, "iteration": iteration, "error": response.error},
                )
                return finish(
                    content=last_content,
                    error=response.error,
                    status=AgentStatus.PROVIDER_ERROR,
                    iterations=iteration,
                )

            totals = totals + self._record_usage(response)
            self._append(ChatMessage.assistant(response.content, response.tool_calls))
            if response.content:
                last_content = response.content

            if not response.has_tool_calls:
                self._publish_round_completed(iteration, response)
                return finish(
                    content=response.content,
                    success=True,
                    status=AgentStatus.COMPLETED,
                    iterations=iteration,
                )

            for call in response.tool_calls:
                doom_loop = self._check_doom_loop(call) or doom_loop

            failure = await self._execute_tools(response.tool_calls, cancel)
            self._publish_round_completed(iteration, response)
            if failure is not None:
                if failure is AgentStatus.TOOL_ERROR:
                    error = TOOL_FAILURE_ERROR
                else:
                    error = f"tool call interrupted ({failure.value})"
                    self._publish_interrupted(failure)
                return finish(
                    content=response.content,
                    tool_calls=response.tool_calls,
                    has_tool_calls=True,
                    error=error,
                    status=failure,
                    iterations=iteration,
                )

        self._logger.warning("iterations_exhausted", iterations=self._config.max_iterations)
        self._event_bus.publish(
            AgentEvent.ITERATIONS_EXHAUSTED,
            {"session_id": self._session_id, "iterations": self._config.max_iterations},
        )
        return finish(
            content=last_content,
            error=ITERATIONS_EXHAUSTED_ERROR,
            status=AgentStatus.ITERATIONS_EXHAUSTED,
            iterations=self._config.max_iterations,
        )

    async def process_stream(
        self,
        user_message: str,
        on_chunk: ChunkCallback,
        on_complete: CompleteCallback | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> bool:
        """
        Single streaming round without tool use.

        Text deltas go to ``on_chunk`` as they arrive; ``on_complete`` is called
        once with the assembled ``AgentResponse``. The stream is bounded by
        ``call_timeout`` and ``cancel`` like any provider call in ``process()``;
        an interrupted stream appends no assistant message.

        Returns:
            Whether the stream was established. An interrupted stream counts as
            established once at least one chunk arrived.
        """
        self._append(ChatMessage.user(user_message))
        outbound, compressed = self._prepare_outbound(())

        chunks: list[str] = []

        async def collect(text: str) -> None:
            chunks.append(text)
            await emit_chunk(on_chunk, text)

        try:
            established = await self._guard(
                self._provider.chat_stream(outbound, (), collect), cancel
            )
        except ProcessInterrupted as exc:
            self._publish_interrupted(exc.status)
            established = bool(chunks)
            response = AgentResponse(
                content="".join(chunks),
                error=f"stream interrupted ({exc.status.value})",
                status=exc.status,
                iterations=1,
                compression_applied=compressed,
            )
        except Exception as exc:
            self._logger.error("provider_raised", error=str(exc))
            established = False
            response = AgentResponse(
                error=f"{type(exc).__name__}: {exc}",
                status=AgentStatus.PROVIDER_ERROR,
                iterations=1,
                compression_applied=compressed,
            )
        else:
            response = self._finish_stream(established, chunks, compressed)

        if on_complete is not None:
            result = on_complete(response)
            if asyncio.iscoroutine(result):
                await result
        return established

    def _finish_stream(
        self,
        established: bool,
        chunks: list[str],
        compressed: bool,
    ) -> AgentResponse:
        if not established:
            self._logger.warning("stream_failed")
            return AgentResponse(
                error=STREAM_FAILURE_ERROR,
                status=AgentStatus.PROVIDER_ERROR,
                iterations=1,
                compression_applied=compressed,
            )
        content = "".join(chunks)
        usage = self._provider.last_stream_usage
        self._record_usage(
            LLMResponse(
                content=content,
                success=True,
                input_tokens=usage.input,
                output_tokens=usage.output,
            )
        )
        self._append(ChatMessage.assistant(content))
        return AgentResponse(
            content=content,
            success=True,
            status=AgentStatus.COMPLETED,
            total_input_tokens=usage.input,
            total_output_tokens=usage.output,
            iterations=1,
            compression_applied=compressed,
        )

    # ── Internals ──────────────────────────────────────────────────────────────

    def _append(self, message: ChatMessage) -> None:
        self._history.append(message)
        self._event_bus.publish(
            AgentEvent.MESSAGE_APPENDED,
            {
                "session_id": self._session_id,
                "role": message.role.value,
                "index": len(self._history) - 1,
            },
        )

    def _prepare_outbound(
        self,
        tools: Sequence[ToolDefinition],
    ) -> tuple[list[ChatMessage], bool]:
        """Compress (if enabled), budget-check and wrap the history for the provider."""
        history = self._history
        outbound = list(history)
        compressed = False
        if self._config.token_optimization and self._optimizer is not None:
            outbound = self._optimizer.compress_history(history, self._config.compression_target)
            compressed = len(outbound) != len(history) or any(
                a is not b for a, b in zip(outbound, history, strict=True)
            )
            if compressed:
                self._event_bus.publish(
                    AgentEvent.HISTORY_COMPRESSED,
                    {
                        "session_id": self._session_id,
                        "messages_before": len(history),
                        "messages_after": len(outbound),
                    },
                )

        if self._budget is not None and not self._budget.check_budget(outbound, tools):
            self._event_bus.publish(
                AgentEvent.BUDGET_WARNING,
                {
                    "session_id": self._session_id,
                    "level": int(self._budget.get_warning_level()),
                    "usage_percentage": self._budget.get_usage_percentage(),
                    "suggestion": self._budget.get_optimization_suggestion(),
                },
            )

        return self._prompt_builder.build_messages(outbound, tools), compressed

    def _record_usage(self, response: LLMResponse) -> TokenUsage:
        usage = TokenUsage(input=response.input_tokens, output=response.output_tokens)
        self._usage = self._usage + usage
        if self._optimizer is not None:
            self._optimizer.update_stats(usage.input, usage.output)
        if self._budget is not None:
            self._budget.update_usage(usage.total)
        return usage

    async def _guard(
        self,
        coro: Coroutine[Any, Any, T],
        cancel: asyncio.Event | None,
    ) -> T:
        """
        Await ``coro`` bounded by ``call_timeout`` and the ``cancel`` event.

        Raises:
            ProcessInterrupted: If the event fires or the timeout elapses first.
        """
        if cancel is not None and cancel.is_set():
            coro.close()
            raise ProcessInterrupted(AgentStatus.CANCELLED)
        timeout = self._config.call_timeout
        if cancel is None and timeout is None:
            return await coro

        task = asyncio.ensure_future(coro)
        waiters: set[asyncio.Future[Any]] = {task}
        cancel_waiter: asyncio.Future[Any] | None = None
        if cancel is not None:
            cancel_waiter = asyncio.ensure_future(cancel.wait())
            waiters.add(cancel_waiter)
        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        status = (
            AgentStatus.CANCELLED
            if cancel_waiter is not None and cancel_waiter in done
            else AgentStatus.TIMED_OUT
        )
        self._logger.warning("call_interrupted", status=status.value)
        raise ProcessInterrupted(status)

    async def _run_tool(
        self,
        call: ToolCall,
        cancel: asyncio.Event | None,
    ) -> tuple[ToolResult, AgentStatus | None]:
        try:
            result = await self._guard(self._executor.execute(call.name, call.arguments), cancel)
        except ProcessInterrupted as exc:
            return ToolResult.fail(f"Tool call interrupted ({exc.status.value})"), exc.status
        return result, None

    async def _execute_tools(
        self,
        calls: Sequence[ToolCall],
        cancel: asyncio.Event | None,
    ) -> AgentStatus | None:
        """
        Execute ``calls`` and append one TOOL message per call, in call order.

        Stops after the first failed or interrupted call. Returns its status,
        or ``None`` when every call succeeded.
        """
        if self._config.concurrent_tool_execution:
            outcomes = await asyncio.gather(*(self._run_tool(call, cancel) for call in calls))
            for call, (result, interrupted) in zip(calls, outcomes, strict=True):
                self._append_tool_result(call, result)
                if interrupted is not None:
                    return interrupted
                if not result.success:
                    return AgentStatus.TOOL_ERROR
            return None

        for call in calls:
            result, interrupted = await self._run_tool(call, cancel)
            self._append_tool_result(call, result)
            if interrupted is not None:
                return interrupted
            if not result.success:
                return AgentStatus.TOOL_ERROR
        return None

    def _append_tool_result(self, call: ToolCall, result: ToolResult) -> None:
        content = result.text
        if self._config.token_optimization and self._optimizer is not None:
            content = self._optimizer.compress_tool_result(content, call.name)
        if not result.success:
            self._logger.warning("tool_failed", tool=call.name, error=result.error)
        self._append(ChatMessage.tool(call.id, content, is_error=not result.success))
        self._event_bus.publish(
            AgentEvent.TOOL_EXECUTED,
            {
                "session_id": self._session_id,
                "tool": call.name,
                "tool_call_id": call.id,
                "success": result.success,
            },
        )

    def _check_doom_loop(self, call: ToolCall) -> bool:
        """Detect ``doom_loop_threshold`` consecutive identical tool calls."""
        self._recent_tool_calls.append((call.name, json.dumps(call.arguments, sort_keys=True)))
        threshold = self._config.doom_loop_threshold
        del self._recent_tool_calls[:-threshold]
        if len(self._recent_tool_calls) < threshold:
            return False
        first = self._recent_tool_calls[0]
        detected = all(entry == first for entry in self._recent_tool_calls[1:])
        if detected:
            self._logger.warning("doom_loop_detected", tool=first[0])
            self._event_bus.publish(
                AgentEvent.DOOM_LOOP_DETECTED,
                {"session_id": self._session_id, "tool": first[0]},
            )
        return detected

    def _publish_round_completed(self, iteration: int, response: LLMResponse) -> None:
        self._event_bus.publish(
            AgentEvent.ROUND_COMPLETED,
            {
                "session_id": self._session_id,
                "iteration": iteration,
                "input_tokens": response.input_tokens,
                "output_tokens": response.output_tokens,
                "tool_calls": len(response.tool_calls),
            },
        )

    def _publish_interrupted(self, status: AgentStatus) -> None:
        self._event_bus.publish(
            AgentEvent.PROCESS_INTERRUPTED,
            {"session_id": self._session_id, "status": status.value},
        )
