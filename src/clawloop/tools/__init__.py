"""Tool contracts and execution."""

from clawloop.tools.base import (
    FunctionTool,
    ParameterError,
    Tool,
    ToolArguments,
    ToolDescription,
    ToolParameter,
    ToolResult,
)
from clawloop.tools.registry import ToolExecutor, ToolRegistry

__all__ = [
    "FunctionTool",
    "ParameterError",
    "Tool",
    "ToolArguments",
    "ToolDescription",
    "ToolExecutor",
    "ToolParameter",
    "ToolRegistry",
    "ToolResult",
]
