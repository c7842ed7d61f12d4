"""Token estimation and budgeting."""

from clawloop.tokens.budget import TokenBudget, WarningLevel
from clawloop.tokens.estimator import TOKENS_PER_TOOL_CALL, TokenEstimator

__all__ = [
    "TOKENS_PER_TOOL_CALL",
    "TokenBudget",
    "TokenEstimator",
    "WarningLevel",
]
