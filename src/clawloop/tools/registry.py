"""ToolRegistry and ToolExecutor: the boundary between the Agent and tools."""

from __future__ import annotations

import inspect
from typing import Any

import jsonschema
import structlog

from clawloop.models.message import ToolDefinition
from clawloop.tools.base import (
    ParameterError,
    Tool,
    ToolArguments,
    ToolDescription,
    ToolResult,
)


class ToolRegistry:
    """
    Explicit, instance-scoped collection of tools keyed by name.

    Example::

        registry = ToolRegistry()
        registry.register(ReadFileTool())
        executor = ToolExecutor(registry)
    """

    def __init__(self, tools: list[Tool] | None = None) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if not tool.name:
            raise ValueError("Tool name must not be empty")
        if tool.name in self._tools:
            raise ValueError(f"Tool {tool.name!r} is already registered")
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def names(self) -> list[str]:
        return list(self._tools)

    def descriptions(self) -> list[ToolDescription]:
        return [tool.describe() for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)


class ToolExecutor:
    """
    Runs tools by name and converts every failure into a failed ``ToolResult``.

    ``execute`` never raises: an unknown tool, a schema violation, a
    ``ParameterError`` or any exception from the tool becomes
    ``ToolResult(success=False)`` and is logged.

    Args:
        registry: The tools available to this executor.
        lenient: Mistyped arguments fall back to their accessor default
            instead of failing.
        validate: Validate arguments against each tool's JSON schema before
            running it.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        lenient: bool = False,
        validate: bool = True,
    ) -> None:
        self._registry = registry
        self._lenient = lenient
        self._validate = validate
        self._logger = structlog.get_logger("clawloop.tools")

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def execute(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        tool = self._registry.get(name)
        if tool is None:
            self._logger.warning("tool_not_found", tool=name)
            return ToolResult.fail(f"Unknown tool: {name}")

        description = tool.describe()
        if self._validate:
            try:
                jsonschema.validate(arguments, description.input_schema())
            except jsonschema.ValidationError as exc:
                self._logger.warning("tool_arguments_invalid", tool=name, error=exc.message)
                return ToolResult.fail(f"Invalid arguments for {name}: {exc.message}")

        args = ToolArguments(name, arguments, lenient=self._lenient)
        try:
            result = tool.run(args)
            if inspect.isawaitable(result):
                result = await result
        except ParameterError as exc:
            self._logger.warning("tool_parameter_error", tool=name, parameter=exc.name)
            return ToolResult.fail(str(exc))
        except Exception as exc:
            self._logger.warning("tool_failed", tool=name, error=str(exc))
            return ToolResult.fail(f"{type(exc).__name__}: {exc}")

        if isinstance(result, str):
            result = ToolResult.ok(result)
        elif not isinstance(result, ToolResult):
            self._logger.warning("tool_bad_result", tool=name, result_type=type(result).__name__)
            return ToolResult.fail(
                f"Tool {name} returned {type(result).__name__}, expected ToolResult"
            )

        if not result.success:
            self._logger.info("tool_reported_failure", tool=name, error=result.error)
        return result

    def get_all_tool_descriptions(self) -> list[ToolDescription]:
        return self._registry.descriptions()

    def get_tool_definitions(self) -> list[ToolDefinition]:
        """Descriptions converted to the provider-neutral ``ToolDefinition``."""
        return [desc.to_definition() for desc in self._registry.descriptions()]
