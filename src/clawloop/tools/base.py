"""Tool contracts: descriptions, typed arguments and results."""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, Literal

import structlog
from pydantic import BaseModel, Field

from clawloop.models.message import ToolDefinition

ParameterType = Literal["string", "integer", "number", "boolean", "array", "object"]

_logger = structlog.get_logger("clawloop.tools")

_MISSING: Any = object()


# ── Descriptions ───────────────────────────────────────────────────────────────


class ToolParameter(BaseModel):
    """One named parameter accepted by a tool."""

    name: str
    type: ParameterType = "string"
    description: str = ""
    required: bool = True
    default: Any = None


class ToolDescription(BaseModel):
    """Self-description a tool publishes to the executor."""

    name: str
    description: str
    parameters: list[ToolParameter] = Field(default_factory=list)

    def input_schema(self) -> dict[str, Any]:
        """Render the parameters as a JSON-Schema object."""
        properties: dict[str, Any] = {}
        required: list[str] = []
        for param in self.parameters:
            prop: dict[str, Any] = {"type": param.type, "description": param.description}
            if param.default is not None:
                prop["default"] = param.default
            properties[param.name] = prop
            if param.required:
                required.append(param.name)
        schema: dict[str, Any] = {"type": "object", "properties": properties}
        if required:
            schema["required"] = required
        return schema

    def to_definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema(),
        )


# ── Results ────────────────────────────────────────────────────────────────────


class ToolResult(BaseModel):
    """Structured outcome of one tool execution."""

    success: bool
    content: str = ""
    error: str = ""

    @classmethod
    def ok(cls, content: str) -> ToolResult:
        return cls(success=True, content=content)

    @classmethod
    def fail(cls, error: str) -> ToolResult:
        return cls(success=False, error=error)

    @property
    def text(self) -> str:
        """What the model sees: the content on success, the error otherwise."""
        return self.content if self.success else self.error


# ── Arguments ──────────────────────────────────────────────────────────────────


class ParameterError(ValueError):
    """Raised when a tool argument is missing or has the wrong type."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Invalid parameter {name!r}: {reason}")
        self.name = name
        self.reason = reason


_TYPE_NAMES: dict[type, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    dict: "object",
}


class ToolArguments:
    """
    Typed, read-only access to the arguments of one tool call.

    Accessors raise :class:`ParameterError` on a missing or mistyped value
    unless a default is supplied. With ``lenient=True`` a mistyped value is
    logged and replaced by the default instead.

    Example::

        def run(self, args: ToolArguments) -> ToolResult:
            path = args.get_str("path")
            limit = args.get_int("limit", default=100)
    """

    def __init__(
        self,
        tool_name: str,
        values: dict[str, Any],
        *,
        lenient: bool = False,
    ) -> None:
        self._tool_name = tool_name
        self._values = dict(values)
        self._lenient = lenient

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def raw(self) -> dict[str, Any]:
        return dict(self._values)

    def get_str(self, name: str, default: Any = _MISSING) -> str:
        return self._get(name, str, default)

    def get_int(self, name: str, default: Any = _MISSING) -> int:
        return self._get(name, int, default)

    def get_float(self, name: str, default: Any = _MISSING) -> float:
        return self._get(name, float, default)

    def get_bool(self, name: str, default: Any = _MISSING) -> bool:
        return self._get(name, bool, default)

    def get_list(self, name: str, default: Any = _MISSING) -> list[Any]:
        return self._get(name, list, default)

    def get_dict(self, name: str, default: Any = _MISSING) -> dict[str, Any]:
        return self._get(name, dict, default)

    def _get(self, name: str, expected: type, default: Any) -> Any:
        if name not in self._values or self._values[name] is None:
            if default is _MISSING:
                raise ParameterError(name, "required parameter is missing")
            return default

        value = self._values[name]
        if self._matches(value, expected):
            return float(value) if expected is float else value

        reason = f"expected {_TYPE_NAMES[expected]}, got {type(value).__name__}"
        if self._lenient and default is not _MISSING:
            _logger.warning(
                "tool_parameter_defaulted",
                tool=self._tool_name,
                parameter=name,
                reason=reason,
            )
            return default
        raise ParameterError(name, reason)

    @staticmethod
    def _matches(value: Any, expected: type) -> bool:
        # bool is a subclass of int; keep the two apart.
        if expected is bool:
            return isinstance(value, bool)
        if expected is int:
            return isinstance(value, int) and not isinstance(value, bool)
        if expected is float:
            return isinstance(value, int | float) and not isinstance(value, bool)
        return isinstance(value, expected)


# ── Tools ──────────────────────────────────────────────────────────────────────


class Tool(ABC):
    """
    Base class for tools callable by the Agent.

    Subclasses set ``name``, ``description`` and ``parameters`` and implement
    :meth:`run`, which may be sync or async. Exceptions raised from ``run`` are
    converted to failed results by the ``ToolExecutor``.
    """

    name: str = ""
    description: str = ""
    parameters: list[ToolParameter] = []

    def describe(self) -> ToolDescription:
        return ToolDescription(
            name=self.name,
            description=self.description,
            parameters=list(self.parameters),
        )

    @abstractmethod
    def run(self, args: ToolArguments) -> ToolResult | Awaitable[ToolResult]:
        """Execute the tool with validated arguments."""


class FunctionTool(Tool):
    """
    Adapts a plain function (sync or async) into a :class:`Tool`.

    The function receives a :class:`ToolArguments` and may return a
    :class:`ToolResult` or a string (wrapped as a successful result).
    """

    def __init__(
        self,
        func: Callable[[ToolArguments], Any],
        *,
        name: str | None = None,
        description: str | None = None,
        parameters: list[ToolParameter] | None = None,
    ) -> None:
        self._func = func
        self.name = name or func.__name__
        self.description = description or inspect.getdoc(func) or ""
        self.parameters = list(parameters or [])

    async def run(self, args: ToolArguments) -> ToolResult:
        result = self._func(args)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, ToolResult):
            return result
        return ToolResult.ok(str(result))
