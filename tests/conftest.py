"""Shared fixtures for clawloop tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from typing import Any

import pytest
import pytest_asyncio

from clawloop.events.bus import AgentEvent, EventBus
from clawloop.llm.mock import MockProvider
from clawloop.models.config import StoreConfig, TokenOptimizationConfig
from clawloop.models.message import LLMResponse
from clawloop.store.history import HistoryStore
from clawloop.tokens.estimator import TokenEstimator
from clawloop.tools.base import FunctionTool, ToolArguments, ToolParameter, ToolResult
from clawloop.tools.registry import ToolExecutor, ToolRegistry


@pytest.fixture
def estimator():
    """TokenEstimator with caching enabled."""
    return TokenEstimator()


@pytest.fixture
def opt_config():
    """Small compression windows so tests can force compression cheaply."""
    return TokenOptimizationConfig(recent_messages=5, middle_messages=10)


@pytest.fixture
def event_bus():
    """EventBus with a .collected list for asserting events."""
    bus = EventBus()
    collected: list[tuple[AgentEvent, dict[str, Any]]] = []

    def _collect(event: AgentEvent, payload: dict[str, Any]) -> None:
        collected.append((event, payload))

    bus.subscribe_all(_collect)
    bus.collected = collected  # type: ignore[attr-defined]
    return bus


def _echo(args: ToolArguments) -> ToolResult:
    return ToolResult.ok(args.get_str("text"))


def _fail(args: ToolArguments) -> ToolResult:
    return ToolResult.fail("disk is full")


def _boom(args: ToolArguments) -> ToolResult:
    raise RuntimeError("tool exploded")


async def _sleep(args: ToolArguments) -> str:
    await asyncio.sleep(args.get_float("seconds", 0.0))
    return "slept"


@pytest.fixture
def registry():
    """Registry with echo, fail, boom and sleep tools."""
    return ToolRegistry(
        [
            FunctionTool(
                _echo,
                name="echo",
                description="Echo the given text.",
                parameters=[ToolParameter(name="text", type="string", description="Text to echo")],
            ),
            FunctionTool(_fail, name="fail", description="Always fails."),
            FunctionTool(_boom, name="boom", description="Always raises."),
            FunctionTool(
                _sleep,
                name="sleep",
                description="Sleep for a while.",
                parameters=[ToolParameter(name="seconds", type="number", required=False)],
            ),
        ]
    )


@pytest.fixture
def executor(registry):
    return ToolExecutor(registry)


@pytest.fixture
def scripted() -> Callable[[Iterable[LLMResponse]], MockProvider]:
    """Factory for a MockProvider replaying the given responses in order."""

    def _make(responses: Iterable[LLMResponse]) -> MockProvider:
        return MockProvider(responses)

    return _make


@pytest_asyncio.fixture
async def store(tmp_path):
    """Initialized HistoryStore backed by a temp SQLite database."""
    s = HistoryStore(StoreConfig(db_path=str(tmp_path / "test.db")))
    await s.initialize()
    yield s
    await s.close()
