"""In-process pub/sub event bus for Agent lifecycle events."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any

import structlog

Handler = Callable[["AgentEvent", dict[str, Any]], None | Awaitable[None]]


class AgentEvent(StrEnum):
    """All event types published by the Agent.

    Typed payload definitions for each event live in
    :mod:`clawloop.events.payloads`.

    **Payload schemas by event:**

    ``MESSAGE_APPENDED``
        :class:`~clawloop.events.payloads.MessageAppendedPayload`:
        ``session_id``, ``role``, ``index``

    ``ROUND_STARTED`` / ``ROUND_COMPLETED``
        :class:`~clawloop.events.payloads.RoundStartedPayload`,
        :class:`~clawloop.events.payloads.RoundCompletedPayload`

    ``PROVIDER_FAILED``
        :class:`~clawloop.events.payloads.ProviderFailedPayload`:
        ``session_id``, ``iteration``, ``error``

    ``TOOL_EXECUTED``
        :class:`~clawloop.events.payloads.ToolExecutedPayload`:
        ``session_id``, ``tool``, ``tool_call_id``, ``success``

    ``HISTORY_COMPRESSED``
        :class:`~clawloop.events.payloads.HistoryCompressedPayload`:
        message counts before and after compression.

    ``BUDGET_WARNING``
        :class:`~clawloop.events.payloads.BudgetWarningPayload`

    ``ITERATIONS_EXHAUSTED``, ``PROCESS_INTERRUPTED``, ``DOOM_LOOP_DETECTED``
        See the matching payload classes.
    """

    # History
    MESSAGE_APPENDED = "message.appended"
    HISTORY_COMPRESSED = "history.compressed"

    # Rounds
    ROUND_STARTED = "round.started"
    ROUND_COMPLETED = "round.completed"
    PROVIDER_FAILED = "provider.failed"
    TOOL_EXECUTED = "tool.executed"

    # Budget
    BUDGET_WARNING = "budget.warning"

    # Termination
    ITERATIONS_EXHAUSTED = "iterations.exhausted"
    PROCESS_INTERRUPTED = "process.interrupted"

    # Safety
    DOOM_LOOP_DETECTED = "doom_loop.detected"


class EventBus:
    """
    Simple in-process pub/sub event bus.

    - Sync handlers are called inline within ``publish()``.
    - Async handlers are scheduled via ``asyncio.create_task()`` (fire-and-forget).
    - Handler exceptions are logged but never propagate to the publisher.
    - Each ``Agent`` owns its own ``EventBus`` unless one is injected.

    Example::

        bus = EventBus()

        def on_tool(event, payload):
            print(f"{payload['tool']} -> {payload['success']}")

        bus.subscribe(AgentEvent.TOOL_EXECUTED, on_tool)
    """

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self._handlers: dict[AgentEvent, list[Handler]] = {}
        self._global_handlers: list[Handler] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._logger = logger or structlog.get_logger("clawloop.events")

    def subscribe(self, event: AgentEvent, handler: Handler) -> None:
        """Register a handler ``(event, payload)`` for one event type. May be sync or async."""
        self._handlers.setdefault(event, []).append(handler)

    def subscribe_all(self, handler: Handler) -> None:
        """Register a handler for ALL event types."""
        self._global_handlers.append(handler)

    def unsubscribe(self, event: AgentEvent, handler: Handler) -> None:
        """Remove a previously registered handler. No-op if not found."""
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event: AgentEvent, payload: dict[str, Any]) -> None:
        """
        Publish an event to all registered handlers.

        Sync handlers run immediately in registration order. Async handlers are
        scheduled as background tasks; without a running loop they are dropped
        with a warning.
        """
        all_handlers = [*self._handlers.get(event, []), *self._global_handlers]
        for handler in all_handlers:
            name = getattr(handler, "__qualname__", repr(handler))
            try:
                result = handler(event, payload)
            except Exception as exc:
                self._logger.error("event_handler_error", event_type=str(event), handler=name, error=str(exc))
                continue
            if asyncio.iscoroutine(result):
                self._schedule(event, name, result)

    def _schedule(self, event: AgentEvent, name: str, coro: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            self._logger.warning("event_handler_skipped", event_type=str(event), handler=name)
            return
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_task_done(t, event, name))

    def _on_task_done(self, task: asyncio.Task[Any], event: AgentEvent, name: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.error("event_handler_error", event_type=str(event), handler=name, error=str(exc))
