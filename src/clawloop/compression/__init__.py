"""clawloop history compression components."""

from clawloop.compression.compressor import HistoryCompressor, tool_call_marker
from clawloop.compression.optimizer import TokenOptimizer

__all__ = [
    "HistoryCompressor",
    "TokenOptimizer",
    "tool_call_marker",
]
