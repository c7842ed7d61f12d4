"""Tests for EventBus."""

from __future__ import annotations

import asyncio

from clawloop.events.bus import AgentEvent, EventBus


class TestEventBus:
    def test_subscribe_and_publish(self):
        bus = EventBus()
        received = []
        bus.subscribe(AgentEvent.TOOL_EXECUTED, lambda e, p: received.append((e, p)))
        bus.publish(AgentEvent.TOOL_EXECUTED, {"tool": "echo"})
        bus.publish(AgentEvent.ROUND_STARTED, {})
        assert received == [(AgentEvent.TOOL_EXECUTED, {"tool": "echo"})]

    def test_subscribe_all_receives_everything(self, event_bus):
        event_bus.publish(AgentEvent.ROUND_STARTED, {"iteration": 1})
        event_bus.publish(AgentEvent.ROUND_COMPLETED, {"iteration": 1})
        assert [e for e, _ in event_bus.collected] == [
            AgentEvent.ROUND_STARTED,
            AgentEvent.ROUND_COMPLETED,
        ]

    def test_unsubscribe(self):
        bus = EventBus()
        received = []

        def handler(event, payload):
            received.append(event)

        bus.subscribe(AgentEvent.BUDGET_WARNING, handler)
        bus.unsubscribe(AgentEvent.BUDGET_WARNING, handler)
        bus.unsubscribe(AgentEvent.BUDGET_WARNING, handler)  # no-op
        bus.publish(AgentEvent.BUDGET_WARNING, {})
        assert received == []

    def test_handler_error_does_not_propagate(self):
        bus = EventBus()
        received = []

        def broken(event, payload):
            raise RuntimeError("handler bug")

        bus.subscribe(AgentEvent.ROUND_STARTED, broken)
        bus.subscribe(AgentEvent.ROUND_STARTED, lambda e, p: received.append(e))
        bus.publish(AgentEvent.ROUND_STARTED, {})
        assert received == [AgentEvent.ROUND_STARTED]

    async def test_async_handler_is_scheduled(self):
        bus = EventBus()
        done = asyncio.Event()

        async def handler(event, payload):
            done.set()

        bus.subscribe(AgentEvent.MESSAGE_APPENDED, handler)
        bus.publish(AgentEvent.MESSAGE_APPENDED, {})
        await asyncio.wait_for(done.wait(), timeout=1)

    def test_async_handler_without_loop_is_skipped(self):
        bus = EventBus()

        async def handler(event, payload):
            raise AssertionError("must not run")

        bus.subscribe(AgentEvent.MESSAGE_APPENDED, handler)
        bus.publish(AgentEvent.MESSAGE_APPENDED, {})

    def test_event_values(self):
        assert AgentEvent.DOOM_LOOP_DETECTED == "doom_loop.detected"
        assert AgentEvent.ITERATIONS_EXHAUSTED == "iterations.exhausted"
