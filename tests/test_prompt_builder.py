"""Tests for PromptBuilder."""

from __future__ import annotations

from clawloop.models.message import ChatMessage, Role, ToolCall, ToolDefinition
from clawloop.prompt.builder import PromptBuilder, PromptMode

READ_TOOL = ToolDefinition(
    name="read",
    description="Read a file from disk.",
    input_schema={
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "File path"},
            "limit": {"type": "integer"},
        },
        "required": ["path"],
    },
)


class TestSystemPrompt:
    def test_modes_differ(self):
        prompts = {mode: PromptBuilder(mode).get_system_prompt() for mode in PromptMode}
        assert len(set(prompts.values())) == len(PromptMode)

    def test_coding_and_debugging_extend_minimal(self):
        minimal = PromptBuilder(PromptMode.MINIMAL).get_system_prompt()
        assert PromptBuilder(PromptMode.CODING).get_system_prompt().startswith(minimal)
        assert PromptBuilder(PromptMode.DEBUGGING).get_system_prompt().startswith(minimal)

    def test_custom_prompt_wins_and_can_be_cleared(self):
        builder = PromptBuilder(PromptMode.VERBOSE)
        builder.set_system_prompt("Be brief.")
        assert builder.get_system_prompt() == "Be brief."
        builder.set_system_prompt("")
        assert "Workflow" in builder.get_system_prompt()

    def test_set_mode(self):
        builder = PromptBuilder()
        builder.set_mode(PromptMode.DEBUGGING)
        assert "debug" in builder.get_system_prompt()


class TestBuildMessages:
    def test_prepends_system_message(self):
        history = [ChatMessage.user("hi"), ChatMessage.assistant("hello")]
        messages = PromptBuilder().build_messages(history)
        assert messages[0].role is Role.SYSTEM
        assert messages[1:] == history
        assert "Available tools" not in messages[0].content

    def test_lists_tools_in_system_message(self):
        messages = PromptBuilder().build_messages([ChatMessage.user("hi")], [READ_TOOL])
        system = messages[0].content
        assert "## Available tools" in system
        assert "### read" in system
        assert "Read a file from disk." in system

    def test_history_is_not_modified(self):
        history = [ChatMessage.user("hi")]
        PromptBuilder().build_messages(history, [READ_TOOL])
        assert history == [ChatMessage.user("hi")]


class TestTextRendering:
    def test_tools_schema_lists_parameters(self):
        schema = PromptBuilder().get_tools_schema([READ_TOOL])
        assert schema.startswith("Available tools:")
        assert "- path (string) **required**: File path" in schema
        assert "- limit (integer)" in schema
        assert "limit (integer) **required**" not in schema

    def test_message_to_text(self):
        msg = ChatMessage.assistant("Let me look.", [ToolCall(id="c1", name="read", arguments={"path": "a.py"})])
        text = PromptBuilder.message_to_text(msg)
        assert text.startswith("[Assistant] Let me look.")
        assert '[Tool calls]: read({"path": "a.py"})' in text

    def test_build_prompt_contains_all_sections(self):
        prompt = PromptBuilder().build_prompt(
            [ChatMessage.user("hello"), ChatMessage.tool("c1", "done")],
            [READ_TOOL],
        )
        assert "## Available tools" in prompt
        assert "## Conversation history" in prompt
        assert "[User] hello" in prompt
        assert "[Tool] done" in prompt

    def test_build_prompt_without_history_or_tools(self):
        builder = PromptBuilder()
        assert builder.build_prompt([]) == builder.get_system_prompt()
