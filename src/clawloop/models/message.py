"""Core message, tool-call and response data models for clawloop."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, model_validator

_logger = structlog.get_logger("clawloop.models")


# ── Roles ──────────────────────────────────────────────────────────────────────


class Role(StrEnum):
    """Speaker of a single conversation turn."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


# ── Tool Calls ─────────────────────────────────────────────────────────────────


class ToolCall(BaseModel):
    """A model-requested invocation of a named tool."""

    model_config = ConfigDict(frozen=True)

    id: str
    """Opaque identifier, unique per call within one provider response."""
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolDefinition(BaseModel):
    """Provider-facing description of one callable tool."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_wire(self) -> dict[str, Any]:
        """Render in the OpenAI function-tool shape accepted by litellm."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }


# ── Messages ───────────────────────────────────────────────────────────────────


class ChatMessage(BaseModel):
    """
    One turn in a conversation.

    Messages are frozen: the canonical history is append-only and compression
    always builds new ``ChatMessage`` objects instead of editing existing ones.

    Shape rules enforced at construction:

    - ``tool_calls`` appear only on ASSISTANT messages.
    - ``tool_call_id`` is required on TOOL messages and absent elsewhere.
    - ``is_error`` is only meaningful on TOOL messages.
    """

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_call_id: str | None = None
    is_error: bool = False

    @model_validator(mode="after")
    def validate_role_fields(self) -> ChatMessage:
        if self.tool_calls and self.role is not Role.ASSISTANT:
            raise ValueError("tool_calls are only allowed on assistant messages")
        if self.role is Role.TOOL:
            if not self.tool_call_id:
                raise ValueError("tool messages require a tool_call_id")
        else:
            if self.tool_call_id is not None:
                raise ValueError("tool_call_id is only allowed on tool messages")
            if self.is_error:
                raise ValueError("is_error is only allowed on tool messages")
        return self

    # ── Constructors ──

    @classmethod
    def system(cls, content: str) -> ChatMessage:
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> ChatMessage:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(
        cls, content: str = "", tool_calls: list[ToolCall] | None = None
    ) -> ChatMessage:
        return cls(role=Role.ASSISTANT, content=content, tool_calls=list(tool_calls or []))

    @classmethod
    def tool(cls, tool_call_id: str, content: str, *, is_error: bool = False) -> ChatMessage:
        return cls(role=Role.TOOL, content=content, tool_call_id=tool_call_id, is_error=is_error)

    # ── Wire format ──

    def to_wire(self) -> dict[str, Any]:
        """
        Convert to an OpenAI-shaped chat message dict.

        Tool-call arguments are serialized as a JSON string. Failed tool results
        are prefixed with ``"Error: "`` so the model can tell them apart.
        """
        wire: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.role is Role.ASSISTANT and self.tool_calls:
            wire["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
                }
                for call in self.tool_calls
            ]
        elif self.role is Role.TOOL:
            wire["tool_call_id"] = self.tool_call_id
            if self.is_error:
                wire["content"] = f"Error: {self.content}"
        return wire

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> ChatMessage:
        """
        Parse an OpenAI-shaped chat message dict.

        Unknown roles fall back to ``user``. Tool-call arguments that are not
        valid JSON objects decode to ``{}`` and are logged.
        """
        try:
            role = Role(data.get("role", "user"))
        except ValueError:
            role = Role.USER

        calls: list[ToolCall] = []
        for raw in data.get("tool_calls") or []:
            function = raw.get("function") or {}
            calls.append(
                ToolCall(
                    id=raw.get("id", ""),
                    name=function.get("name", ""),
                    arguments=decode_arguments(function.get("arguments")),
                )
            )

        return cls(
            role=role,
            content=data.get("content") or "",
            tool_calls=calls,
            tool_call_id=data.get("tool_call_id") if role is Role.TOOL else None,
        )


def decode_arguments(raw: str | dict[str, Any] | None) -> dict[str, Any]:
    """Decode tool-call arguments from a provider payload into a dict."""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as exc:
        _logger.warning("tool_arguments_malformed", error=str(exc), raw=str(raw)[:200])
        return {}
    if not isinstance(parsed, dict):
        _logger.warning("tool_arguments_not_object", raw=str(raw)[:200])
        return {}
    return parsed


# ── Token Usage ────────────────────────────────────────────────────────────────


class TokenUsage(BaseModel):
    """Token counts for a single LLM response or cumulative agent usage."""

    input: int = 0
    output: int = 0

    @property
    def total(self) -> int:
        return self.input + self.output

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(input=self.input + other.input, output=self.output + other.output)


class TokenStats(BaseModel):
    """Cumulative counters kept by the TokenOptimizer."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    estimated_next: int = 0


# ── Provider / Agent Results ───────────────────────────────────────────────────


class LLMResponse(BaseModel):
    """What an LLMProvider returns for a single non-streaming chat call."""

    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    success: bool = False
    error: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    finish_reason: str | None = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    @classmethod
    def failure(cls, error: str) -> LLMResponse:
        return cls(success=False, error=error)


class AgentStatus(StrEnum):
    """Terminal outcome of one ``Agent.process()`` call."""

    COMPLETED = "completed"
    PROVIDER_ERROR = "provider_error"
    TOOL_ERROR = "tool_error"
    ITERATIONS_EXHAUSTED = "iterations_exhausted"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


class AgentResponse(BaseModel):
    """
    The result of a single ``Agent.process()`` or ``process_stream()`` call.

    Callers check ``success`` (or ``status``) rather than catching exceptions:
    provider and tool failures are captured here, never raised.
    """

    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    has_tool_calls: bool = False
    success: bool = False
    error: str = ""
    status: AgentStatus = AgentStatus.COMPLETED
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    iterations: int = 0
    """Number of provider round-trips made."""
    compression_applied: bool = False
    doom_loop_detected: bool = False


# ── Compression ────────────────────────────────────────────────────────────────


@dataclass
class CompressionLayers:
    """
    Transient three-tier view of a history, rebuilt on every compressed request.

    ``recent`` is verbatim, ``middle`` is simplified per message and
    ``old_summary`` holds zero or one synthetic SYSTEM message.
    """

    recent: list[ChatMessage] = field(default_factory=list)
    middle: list[ChatMessage] = field(default_factory=list)
    old_summary: list[ChatMessage] = field(default_factory=list)

    def flatten(self) -> list[ChatMessage]:
        return [*self.old_summary, *self.middle, *self.recent]
