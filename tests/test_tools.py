"""Tests for the tool boundary: arguments, registry and executor."""

from __future__ import annotations

import pytest

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


class TestToolArguments:
    def test_typed_accessors(self):
        args = ToolArguments(
            "t",
            {"s": "x", "i": 3, "f": 1.5, "b": True, "l": [1], "d": {"k": 1}},
        )
        assert args.get_str("s") == "x"
        assert args.get_int("i") == 3
        assert args.get_float("f") == 1.5
        assert args.get_bool("b") is True
        assert args.get_list("l") == [1]
        assert args.get_dict("d") == {"k": 1}

    def test_int_accepted_as_float(self):
        value = ToolArguments("t", {"f": 2}).get_float("f")
        assert value == 2.0
        assert isinstance(value, float)

    def test_bool_is_not_an_int(self):
        with pytest.raises(ParameterError):
            ToolArguments("t", {"i": True}).get_int("i")

    def test_missing_required_raises_with_name(self):
        with pytest.raises(ParameterError) as excinfo:
            ToolArguments("t", {}).get_str("path")
        assert excinfo.value.name == "path"
        assert "missing" in str(excinfo.value)

    def test_missing_with_default(self):
        assert ToolArguments("t", {}).get_int("limit", 10) == 10
        assert ToolArguments("t", {"limit": None}).get_int("limit", 10) == 10

    def test_mistyped_raises_even_with_default(self):
        with pytest.raises(ParameterError) as excinfo:
            ToolArguments("t", {"limit": "ten"}).get_int("limit", 10)
        assert "expected integer" in str(excinfo.value)

    def test_lenient_mode_falls_back_to_default(self):
        args = ToolArguments("t", {"limit": "ten"}, lenient=True)
        assert args.get_int("limit", 10) == 10

    def test_lenient_mode_still_requires_a_default(self):
        with pytest.raises(ParameterError):
            ToolArguments("t", {"limit": "ten"}, lenient=True).get_int("limit")

    def test_parameter_error_is_value_error(self):
        assert issubclass(ParameterError, ValueError)

    def test_raw_and_contains(self):
        args = ToolArguments("t", {"a": 1})
        assert "a" in args
        assert "b" not in args
        assert args.raw() == {"a": 1}


class TestToolDescription:
    def test_input_schema(self):
        desc = ToolDescription(
            name="read",
            description="Read a file",
            parameters=[
                ToolParameter(name="path", type="string", description="File path"),
                ToolParameter(name="limit", type="integer", required=False, default=100),
            ],
        )
        schema = desc.input_schema()
        assert schema["type"] == "object"
        assert schema["required"] == ["path"]
        assert schema["properties"]["path"] == {"type": "string", "description": "File path"}
        assert schema["properties"]["limit"]["default"] == 100

    def test_no_required_key_when_all_optional(self):
        desc = ToolDescription(
            name="t", description="d", parameters=[ToolParameter(name="x", required=False)]
        )
        assert "required" not in desc.input_schema()

    def test_to_definition(self):
        definition = ToolDescription(name="t", description="d").to_definition()
        assert definition.name == "t"
        assert definition.input_schema == {"type": "object", "properties": {}}


class TestToolRegistry:
    def test_register_and_lookup(self, registry):
        assert registry.has("echo")
        assert registry.get("missing") is None
        assert registry.names() == ["echo", "fail", "boom", "sleep"]
        assert len(registry) == 4

    def test_duplicate_rejected(self, registry):
        with pytest.raises(ValueError, match="already registered"):
            registry.register(FunctionTool(lambda args: "x", name="echo"))

    def test_unregister(self, registry):
        registry.unregister("echo")
        registry.unregister("never-registered")
        assert not registry.has("echo")

    def test_instances_are_independent(self):
        first = ToolRegistry()
        second = ToolRegistry()
        first.register(FunctionTool(lambda args: "x", name="only_here"))
        assert not second.has("only_here")


class TestToolExecutor:
    async def test_success(self, executor):
        result = await executor.execute("echo", {"text": "hi"})
        assert result == ToolResult.ok("hi")

    async def test_unknown_tool(self, executor):
        result = await executor.execute("nope", {})
        assert not result.success
        assert "Unknown tool" in result.error

    async def test_tool_reported_failure(self, executor):
        result = await executor.execute("fail", {})
        assert not result.success
        assert result.error == "disk is full"

    async def test_exception_becomes_failed_result(self, executor):
        result = await executor.execute("boom", {})
        assert not result.success
        assert "RuntimeError: tool exploded" in result.error

    async def test_schema_violation(self, executor):
        result = await executor.execute("echo", {"text": 5})
        assert not result.success
        assert "Invalid arguments" in result.error

    async def test_missing_required_argument(self, executor):
        result = await executor.execute("echo", {})
        assert not result.success

    async def test_parameter_error_without_validation(self, registry):
        executor = ToolExecutor(registry, validate=False)
        result = await executor.execute("echo", {"text": 5})
        assert not result.success
        assert "Invalid parameter 'text'" in result.error

    async def test_async_tool(self, executor):
        result = await executor.execute("sleep", {"seconds": 0})
        assert result.success
        assert result.content == "slept"

    async def test_class_based_sync_tool(self):
        class Upper(Tool):
            name = "upper"
            description = "Uppercase text"
            parameters = [ToolParameter(name="text")]

            def run(self, args: ToolArguments) -> ToolResult:
                return ToolResult.ok(args.get_str("text").upper())

        executor = ToolExecutor(ToolRegistry([Upper()]))
        result = await executor.execute("upper", {"text": "abc"})
        assert result.content == "ABC"

    async def test_plain_string_return_is_wrapped(self):
        class Plain(Tool):
            name = "plain"
            description = "Returns a bare string"

            def run(self, args: ToolArguments) -> ToolResult:
                return "plain text"  # type: ignore[return-value]

        result = await ToolExecutor(ToolRegistry([Plain()])).execute("plain", {})
        assert result.success
        assert result.content == "plain text"

    async def test_unexpected_return_type_fails(self):
        class Numeric(Tool):
            name = "numeric"
            description = "Returns a number"

            async def run(self, args: ToolArguments) -> ToolResult:
                return 42  # type: ignore[return-value]

        result = await ToolExecutor(ToolRegistry([Numeric()])).execute("numeric", {})
        assert not result.success
        assert "returned int" in result.error

    def test_tool_definitions(self, executor):
        definitions = executor.get_tool_definitions()
        assert [d.name for d in definitions] == ["echo", "fail", "boom", "sleep"]
        echo = definitions[0]
        assert echo.input_schema["required"] == ["text"]
        assert [d.name for d in executor.get_all_tool_descriptions()] == [
            "echo",
            "fail",
            "boom",
            "sleep",
        ]
