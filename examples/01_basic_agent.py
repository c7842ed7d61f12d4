"""
Example 01: Basic Agent
=======================

Demonstrates the simplest end-to-end usage of Agent:
- Creating a provider with create_provider()
- Sending messages in a loop with process()
- Watching history compression via AgentResponse.compression_applied
- Persisting and restoring the conversation with HistoryStore

Run without an API key:
    CLAWLOOP_MOCK_LLM=1 uv run python examples/01_basic_agent.py

Run with a real LLM (set your API key first):
    ANTHROPIC_API_KEY=sk-... uv run python examples/01_basic_agent.py
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path when running directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


async def main() -> None:
    from clawloop import (
        Agent,
        AgentConfig,
        HistoryStore,
        StoreConfig,
        ToolExecutor,
        ToolRegistry,
        create_provider,
    )

    print("=== clawloop Basic Agent Example ===\n")

    # Small compression target so the demo compresses after a few turns
    config = AgentConfig(token_optimization=True, compression_target=300)

    async with HistoryStore(StoreConfig(db_path="/tmp/clawloop_example_01.db")) as store:
        meta = await store.create_session("Basic agent demo")
        agent = Agent(
            create_provider("anthropic/claude-sonnet-4-5"),
            ToolExecutor(ToolRegistry()),
            config=config,
            session_id=meta.id,
        )
        agent.set_system_prompt("You are a helpful coding assistant. Be concise.")
        print(f"Session created: {meta.id}\n")

        questions = [
            "What is Python's GIL?",
            "How does asyncio work at a high level?",
            "What's the difference between async/await and threading?",
            "When should I use asyncio vs multiprocessing?",
        ]

        for i, question in enumerate(questions, 1):
            print(f"Turn {i}: {question}")
            response = await agent.process(question)
            if not response.success:
                print(f"  Failed ({response.status}): {response.error}\n")
                continue
            tokens = response.total_input_tokens + response.total_output_tokens
            print(f"  Response ({tokens} tokens): {response.content[:120]}...")
            if response.compression_applied:
                print("  *** Outbound history was compressed ***")
            print()

        await store.save_history(meta.id, agent.history)
        print(f"Total agent tokens: {agent.token_usage.total:,}")

        restored = await store.load_history(meta.id)
        print(f"Messages persisted: {len(restored)}")

    print("\nStore closed cleanly.")


if __name__ == "__main__":
    asyncio.run(main())
