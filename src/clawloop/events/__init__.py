"""Agent lifecycle events."""

from clawloop.events.bus import AgentEvent, EventBus, Handler

__all__ = ["AgentEvent", "EventBus", "Handler"]
