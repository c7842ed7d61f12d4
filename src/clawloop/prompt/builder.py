"""System prompt and request assembly."""

from __future__ import annotations

import json
from collections.abc import Sequence
from enum import StrEnum

from jinja2 import Environment, StrictUndefined

from clawloop.models.message import ChatMessage, Role, ToolDefinition


class PromptMode(StrEnum):
    MINIMAL = "minimal"
    VERBOSE = "verbose"
    CODING = "coding"
    DEBUGGING = "debugging"


_BASE_PROMPT = """\
You are clawloop, an AI programming assistant.

Use the tools you are given to inspect and change the user's project, then
report the result and continue with the task.

Rules:
1. Read a file before modifying it.
2. Arguments must match the tool's parameter schema exactly.
3. If a tool call fails, explain the error instead of repeating the same call.
4. Be concise and act directly."""

_VERBOSE_PROMPT = """\
You are clawloop, an AI programming assistant built on a minimal agent loop.

## Workflow

1. **Understand the task**: work out what the user wants to achieve.
2. **Gather information**: use the available tools to inspect relevant files.
3. **Act**: make the changes or run the commands the task needs.
4. **Verify**: check that each tool call did what you expected.
5. **Report**: tell the user what was done.

## Rules

- Read the current content before modifying a file.
- Arguments must match the tool's parameter schema exactly.
- Avoid commands that could damage the system.
- Check every tool result before continuing.
- Never assume file contents; read them first.

Be concise and efficient."""

_MODE_SUFFIX = {
    PromptMode.CODING: """\
You are a professional programming assistant. When writing code:
- Keep it clear, readable and well commented.
- Follow established practices and design patterns.
- Handle errors and edge cases.""",
    PromptMode.DEBUGGING: """\
You are helping to debug code. Please:
- Analyse error messages carefully.
- Find the root cause.
- Propose a concrete fix.""",
}

_env = Environment(
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=False,
    undefined=StrictUndefined,
)

_SYSTEM_TEMPLATE = _env.from_string(
    """\
{{ prompt }}
{% if tools %}

## Available tools

{% for tool in tools %}
### {{ tool.name }}
{{ tool.description }}

{% endfor %}
{% endif %}"""
)

_TOOLS_SCHEMA_TEMPLATE = _env.from_string(
    """\
{{ heading }}

{% for tool in tools %}
### {{ tool.name }}
{{ tool.description }}
{% if tool.input_schema.get("properties") %}
Parameters:
{% for name, param in tool.input_schema["properties"].items() %}
  - {{ name }}{% if param.get("type") %} ({{ param["type"] }}){% endif %}\
{% if name in tool.input_schema.get("required", []) %} **required**{% endif %}\
{% if param.get("description") %}: {{ param["description"] }}{% endif %}

{% endfor %}
{% endif %}

{% endfor %}"""
)

_PROMPT_TEMPLATE = _env.from_string(
    """\
{{ system }}
{% if tools_schema %}

{{ tools_schema }}
{% endif %}
{% if history %}

## Conversation history

{% for line in history %}
{{ line }}
{% endfor %}
{% endif %}"""
)

_ROLE_LABELS = {
    Role.SYSTEM: "[System]",
    Role.USER: "[User]",
    Role.ASSISTANT: "[Assistant]",
    Role.TOOL: "[Tool]",
}


class PromptBuilder:
    """
    Wraps a history into the message list sent to the provider.

    The system prompt is chosen by :class:`PromptMode` unless a custom prompt
    has been set, which always wins.

    Example::

        builder = PromptBuilder(PromptMode.CODING)
        messages = builder.build_messages(history, executor.get_tool_definitions())
    """

    def __init__(self, mode: PromptMode = PromptMode.MINIMAL, system_prompt: str = "") -> None:
        self.mode = mode
        self._custom_prompt = system_prompt

    def set_mode(self, mode: PromptMode) -> None:
        self.mode = mode

    def set_system_prompt(self, prompt: str) -> None:
        """Override the mode-based prompt. An empty string restores it."""
        self._custom_prompt = prompt

    def get_system_prompt(self) -> str:
        if self._custom_prompt:
            return self._custom_prompt
        if self.mode is PromptMode.VERBOSE:
            return _VERBOSE_PROMPT
        suffix = _MODE_SUFFIX.get(self.mode)
        return f"{_BASE_PROMPT}\n\n{suffix}" if suffix else _BASE_PROMPT

    def build_messages(
        self,
        history: Sequence[ChatMessage],
        tools: Sequence[ToolDefinition] = (),
    ) -> list[ChatMessage]:
        """Return ``[system prompt with tool section] + history``."""
        system = _SYSTEM_TEMPLATE.render(prompt=self.get_system_prompt(), tools=list(tools))
        return [ChatMessage.system(system.rstrip()), *history]

    def build_prompt(
        self,
        history: Sequence[ChatMessage],
        tools: Sequence[ToolDefinition] = (),
    ) -> str:
        """Render the whole request as one text, for completion-style endpoints."""
        return _PROMPT_TEMPLATE.render(
            system=self.get_system_prompt(),
            tools_schema=self.get_tools_schema(tools, heading="## Available tools") if tools else "",
            history=[self.message_to_text(msg) for msg in history],
        ).rstrip()

    def get_tools_schema(
        self,
        tools: Sequence[ToolDefinition],
        heading: str = "Available tools:",
    ) -> str:
        return _TOOLS_SCHEMA_TEMPLATE.render(heading=heading, tools=list(tools)).rstrip()

    @staticmethod
    def message_to_text(msg: ChatMessage) -> str:
        text = f"{_ROLE_LABELS[msg.role]} {msg.content}"
        if msg.tool_calls:
            calls = " ".join(f"{call.name}({json.dumps(call.arguments)})" for call in msg.tool_calls)
            text += f"\n[Tool calls]: {calls}"
        return text
