"""Cumulative token budget tracking with tiered warnings."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Sequence
from enum import IntEnum

import structlog

from clawloop.models.config import BudgetConfig
from clawloop.models.message import ChatMessage, ToolDefinition
from clawloop.tokens.estimator import TokenEstimator

WarningCallback = Callable[[str], None]

WARNING_THRESHOLD_LOW = 50.0
WARNING_THRESHOLD_MEDIUM = 75.0
WARNING_THRESHOLD_HIGH = 90.0
WARNING_THRESHOLD_CRITICAL = 100.0


class WarningLevel(IntEnum):
    """Budget pressure, ordered so that higher usage never compares lower."""

    NONE = 0
    """Below 50 %."""
    LOW = 1
    """50 % up to 75 %."""
    MEDIUM = 2
    """75 % up to 90 %."""
    HIGH = 3
    """90 % and above."""


class TokenBudget:
    """
    Soft ceiling on cumulative estimated token usage.

    The budget is advisory: ``check_budget()`` reports whether the next request
    would fit and fires the warning callback when it would not, but never blocks
    a call. Callers decide whether to proceed, compress, or abort.

    All counters are guarded by a lock; one budget may be shared between agents
    or polled from a UI thread.

    Example::

        budget = TokenBudget(BudgetConfig(max_tokens=50_000))
        budget.set_warning_callback(print)
        if not budget.check_budget(history, tools):
            history = optimizer.compress_history(history)
    """

    def __init__(
        self,
        config: BudgetConfig | None = None,
        estimator: TokenEstimator | None = None,
    ) -> None:
        cfg = config or BudgetConfig()
        self._max_tokens = cfg.max_tokens
        self._system_prompt_allowance = cfg.system_prompt_allowance
        self._estimator = estimator or TokenEstimator()
        self._current_usage = 0
        self._warning_callback: WarningCallback | None = None
        self._lock = threading.Lock()
        self._logger = structlog.get_logger("clawloop.budget")

    # ── Budget and usage ───────────────────────────────────────────────────────

    def set_budget(self, max_tokens: int) -> None:
        if max_tokens < 0:
            raise ValueError("max_tokens must be >= 0")
        with self._lock:
            self._max_tokens = max_tokens

    @property
    def max_tokens(self) -> int:
        with self._lock:
            return self._max_tokens

    @property
    def current_usage(self) -> int:
        with self._lock:
            return self._current_usage

    def update_usage(self, tokens: int) -> None:
        """Add ``tokens`` to the running total. Usage only decreases via ``reset_usage()``."""
        if tokens < 0:
            raise ValueError("usage delta must be >= 0")
        with self._lock:
            self._current_usage += tokens

    def reset_usage(self) -> None:
        with self._lock:
            self._current_usage = 0

    def get_remaining_budget(self) -> int:
        with self._lock:
            return max(0, self._max_tokens - self._current_usage)

    def get_usage_percentage(self) -> float:
        """Return usage as a percentage of the ceiling, or 0.0 when the ceiling is 0."""
        with self._lock:
            if self._max_tokens == 0:
                return 0.0
            return self._current_usage / self._max_tokens * 100.0

    # ── Warnings ───────────────────────────────────────────────────────────────

    def get_warning_level(self) -> WarningLevel:
        percentage = self.get_usage_percentage()
        if percentage < WARNING_THRESHOLD_LOW:
            return WarningLevel.NONE
        if percentage < WARNING_THRESHOLD_MEDIUM:
            return WarningLevel.LOW
        if percentage < WARNING_THRESHOLD_HIGH:
            return WarningLevel.MEDIUM
        return WarningLevel.HIGH

    def get_optimization_suggestion(self) -> str:
        """Return a human-readable suggestion keyed to the current usage tier."""
        percentage = self.get_usage_percentage()
        if percentage >= WARNING_THRESHOLD_CRITICAL:
            return (
                "Critical: the token budget is exhausted. Enable history compression "
                "or start a new conversation now."
            )
        if percentage >= WARNING_THRESHOLD_HIGH:
            return (
                "Warning: token usage is close to the limit. Enable history compression "
                "or clear the conversation history."
            )
        if percentage >= WARNING_THRESHOLD_MEDIUM:
            return "Notice: token usage is high. Enabling history compression will reduce cost."
        if percentage >= WARNING_THRESHOLD_LOW:
            return "Token usage is moderate. You can continue."
        return "Token usage is healthy."

    def set_warning_callback(self, callback: WarningCallback | None) -> None:
        self._warning_callback = callback

    # ── Request checks ─────────────────────────────────────────────────────────

    def estimate_request(
        self,
        messages: Iterable[ChatMessage],
        tools: Sequence[ToolDefinition] = (),
    ) -> int:
        """Estimate the token cost of sending ``messages`` with ``tools`` advertised."""
        tokens = self._estimator.estimate_messages(messages)
        tokens += sum(self._estimator.estimate_tool_definition(tool) for tool in tools)
        return tokens + self._system_prompt_allowance

    def check_budget(
        self,
        messages: Iterable[ChatMessage],
        tools: Sequence[ToolDefinition] = (),
    ) -> bool:
        """
        Check whether the next request fits in the remaining budget.

        Args:
            messages: The history that will be sent.
            tools: Tool definitions that will be advertised.

        Returns:
            ``False`` (after firing the warning callback) when the estimate
            exceeds the remaining budget, ``True`` otherwise.
        """
        estimated = self.estimate_request(messages, tools)
        remaining = self.get_remaining_budget()
        if estimated > remaining:
            self._trigger_warning(
                f"Estimated request size ({estimated} tokens) exceeds the remaining "
                f"budget ({remaining} tokens)"
            )
            return False
        return True

    def _trigger_warning(self, message: str) -> None:
        self._logger.warning("token_budget_warning", message=message)
        callback = self._warning_callback
        if callback is None:
            return
        try:
            callback(message)
        except Exception as exc:
            self._logger.error(
                "budget_warning_callback_error",
                handler=getattr(callback, "__qualname__", repr(callback)),
                error=str(exc),
            )
