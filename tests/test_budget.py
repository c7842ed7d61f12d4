"""Tests for TokenBudget."""

from __future__ import annotations

import pytest

from clawloop.models.config import BudgetConfig
from clawloop.models.message import ChatMessage, ToolDefinition
from clawloop.tokens.budget import TokenBudget, WarningLevel


def _budget(max_tokens: int, used: int = 0) -> TokenBudget:
    budget = TokenBudget(BudgetConfig(max_tokens=max_tokens))
    budget.update_usage(used)
    return budget


class TestUsage:
    def test_percentage_and_level_at_96(self):
        budget = _budget(1_000, 960)
        assert budget.get_usage_percentage() == 96.0
        assert budget.get_warning_level() is WarningLevel.HIGH

    def test_zero_budget_never_divides(self):
        budget = _budget(0, 500)
        assert budget.get_usage_percentage() == 0.0
        assert budget.get_warning_level() is WarningLevel.NONE
        assert budget.get_remaining_budget() == 0

    def test_remaining_is_clamped_at_zero(self):
        assert _budget(100, 150).get_remaining_budget() == 0
        assert _budget(100, 40).get_remaining_budget() == 60

    def test_negative_delta_rejected(self):
        budget = _budget(100)
        with pytest.raises(ValueError):
            budget.update_usage(-1)

    def test_reset_usage(self):
        budget = _budget(100, 80)
        budget.reset_usage()
        assert budget.current_usage == 0

    def test_set_budget(self):
        budget = _budget(100, 50)
        budget.set_budget(1_000)
        assert budget.max_tokens == 1_000
        assert budget.get_usage_percentage() == 5.0
        with pytest.raises(ValueError):
            budget.set_budget(-1)


class TestWarningLevels:
    @pytest.mark.parametrize(
        ("used", "level"),
        [
            (0, WarningLevel.NONE),
            (499, WarningLevel.NONE),
            (500, WarningLevel.LOW),
            (749, WarningLevel.LOW),
            (750, WarningLevel.MEDIUM),
            (899, WarningLevel.MEDIUM),
            (900, WarningLevel.HIGH),
            (2_000, WarningLevel.HIGH),
        ],
    )
    def test_thresholds_inclusive_lower_bound(self, used, level):
        assert _budget(1_000, used).get_warning_level() is level

    def test_level_never_decreases_as_usage_grows(self):
        budget = _budget(1_000)
        previous = budget.get_warning_level()
        for _ in range(120):
            budget.update_usage(10)
            current = budget.get_warning_level()
            assert current >= previous
            previous = current

    def test_suggestion_tiers(self):
        assert "healthy" in _budget(1_000, 100).get_optimization_suggestion()
        assert "moderate" in _budget(1_000, 600).get_optimization_suggestion()
        assert _budget(1_000, 800).get_optimization_suggestion().startswith("Notice")
        assert _budget(1_000, 950).get_optimization_suggestion().startswith("Warning")
        assert _budget(1_000, 1_000).get_optimization_suggestion().startswith("Critical")


class TestCheckBudget:
    def test_request_that_fits(self):
        budget = _budget(10_000)
        assert budget.check_budget([ChatMessage.user("hello")]) is True

    def test_request_over_remaining_fires_callback(self):
        budget = _budget(1_000, 600)
        warnings: list[str] = []
        budget.set_warning_callback(warnings.append)
        # 500 allowance + message > 400 remaining
        assert budget.check_budget([ChatMessage.user("hello")]) is False
        assert len(warnings) == 1
        assert "exceeds the remaining budget" in warnings[0]

    def test_tools_count_towards_estimate(self):
        budget = TokenBudget(BudgetConfig(max_tokens=1_000, system_prompt_allowance=0))
        tool = ToolDefinition(name="t", description="d" * 400, input_schema={"type": "object"})
        assert budget.estimate_request([], [tool]) == 100
        assert budget.estimate_request([ChatMessage.user("abcd")], [tool]) == 101

    def test_failing_callback_does_not_propagate(self):
        budget = _budget(100, 100)

        def explode(message: str) -> None:
            raise RuntimeError("boom")

        budget.set_warning_callback(explode)
        assert budget.check_budget([ChatMessage.user("hi")]) is False
