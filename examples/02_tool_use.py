"""
Example 02: Tool Use
====================

Demonstrates the tool-calling loop:
- Declaring tools with FunctionTool and ToolParameter
- Reading arguments through ToolArguments
- Following tool execution through the EventBus
- What a failed tool call does to the loop

With CLAWLOOP_MOCK_LLM=1 the model's tool calls are scripted with
MockProvider, so the example runs offline and shows both outcomes.

Run without an API key:
    CLAWLOOP_MOCK_LLM=1 uv run python examples/02_tool_use.py
"""

import asyncio
import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

FILES = {
    "/tmp/app.log": (
        "2026-02-20 10:00:01 INFO  Service started on port 8080\n"
        "2026-02-20 10:02:30 ERROR Database connection timeout after 30s\n"
        "2026-02-20 10:03:00 INFO  Reconnected to database successfully"
    ),
    "/tmp/config.json": '{"service": "api-gateway", "database": {"pool_size": 10}}',
}


async def main() -> None:
    from clawloop import (
        Agent,
        AgentEvent,
        EventBus,
        FunctionTool,
        LLMResponse,
        MockProvider,
        ToolArguments,
        ToolCall,
        ToolExecutor,
        ToolParameter,
        ToolRegistry,
        ToolResult,
        create_provider,
    )

    def list_directory(args: ToolArguments) -> str:
        prefix = args.get_str("path").rstrip("/") + "/"
        return "  ".join(p for p in FILES if p.startswith(prefix))

    def read_file(args: ToolArguments) -> ToolResult:
        path = args.get_str("path")
        if path not in FILES:
            return ToolResult.fail(f"No such file: {path}")
        return ToolResult.ok(FILES[path])

    path_param = [ToolParameter(name="path", description="Absolute path")]
    registry = ToolRegistry(
        [
            FunctionTool(
                list_directory,
                name="list_directory",
                description="List files in a directory",
                parameters=path_param,
            ),
            FunctionTool(
                read_file,
                name="read_file",
                description="Read a file from the filesystem",
                parameters=path_param,
            ),
        ]
    )

    bus = EventBus()
    bus.subscribe(
        AgentEvent.TOOL_EXECUTED,
        lambda event, payload: print(
            f"  [TOOL] {payload['tool']} ({payload['tool_call_id']}) "
            f"{'ok' if payload['success'] else 'FAILED'}"
        ),
    )

    if os.environ.get("CLAWLOOP_MOCK_LLM") == "1":
        provider = MockProvider(
            [
                LLMResponse(
                    success=True,
                    tool_calls=[ToolCall(id="call_1", name="list_directory", arguments={"path": "/tmp"})],
                ),
                LLMResponse(
                    success=True,
                    tool_calls=[ToolCall(id="call_2", name="read_file", arguments={"path": "/tmp/app.log"})],
                ),
                LLMResponse(content="One ERROR: a database timeout at 10:02:30.", success=True),
                LLMResponse(
                    success=True,
                    tool_calls=[ToolCall(id="call_3", name="read_file", arguments={"path": "/tmp/missing"})],
                ),
            ]
        )
    else:
        provider = create_provider("anthropic/claude-sonnet-4-5")

    agent = Agent(provider, ToolExecutor(registry), event_bus=bus)
    print("=== clawloop Tool Use Example ===\n")

    for question in ["Check /tmp/app.log for errors.", "Now read /tmp/missing."]:
        print(f"User: {question}")
        response = await agent.process(question)
        if response.success:
            print(f"Assistant: {response.content}\n")
        else:
            print(f"Stopped ({response.status}): {response.error}\n")

    print(f"Messages in history: {len(agent.history)}")


if __name__ == "__main__":
    asyncio.run(main())
