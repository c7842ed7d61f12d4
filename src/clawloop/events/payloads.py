"""Typed payload definitions for :class:`~clawloop.events.bus.AgentEvent`.

Payloads are plain ``dict`` objects at runtime. These TypedDicts exist for
static type checking only::

    from clawloop.events.payloads import ToolExecutedPayload

    def on_tool(event: AgentEvent, payload: ToolExecutedPayload) -> None:
        ...
"""

from __future__ import annotations

from typing import TypedDict


class MessageAppendedPayload(TypedDict):
    session_id: str
    role: str
    index: int
    """Position of the new message in the history."""


class RoundStartedPayload(TypedDict):
    session_id: str
    iteration: int
    message_count: int


class RoundCompletedPayload(TypedDict):
    session_id: str
    iteration: int
    input_tokens: int
    output_tokens: int
    tool_calls: int


class ProviderFailedPayload(TypedDict):
    session_id: str
    iteration: int
    error: str


class ToolExecutedPayload(TypedDict):
    session_id: str
    tool: str
    tool_call_id: str
    success: bool


class HistoryCompressedPayload(TypedDict):
    session_id: str
    messages_before: int
    messages_after: int


class BudgetWarningPayload(TypedDict):
    session_id: str
    level: int
    usage_percentage: float
    suggestion: str


class IterationsExhaustedPayload(TypedDict):
    session_id: str
    iterations: int


class ProcessInterruptedPayload(TypedDict):
    session_id: str
    status: str
    """``"cancelled"`` or ``"timed_out"``."""


class DoomLoopDetectedPayload(TypedDict):
    session_id: str
    tool: str
