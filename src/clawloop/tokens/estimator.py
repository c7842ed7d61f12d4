"""Mixed-language token estimation with a bounded LRU cache."""

from __future__ import annotations

import hashlib
import json
import threading
from collections import OrderedDict
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from clawloop.models.config import TokenOptimizationConfig
    from clawloop.models.message import ChatMessage, ToolDefinition

from clawloop.models.message import Role

TOKENS_PER_TOOL_CALL = 50
"""Flat surcharge for every tool call carried by an assistant message."""

# Characters per token for each character class.
_CHARS_PER_TOKEN_ASCII = 4
_CHARS_PER_TOKEN_SPACE = 10
# Non-ASCII (mostly CJK) text runs at ~1.5 chars/token; kept as a 2/3 ratio so
# the ceiling stays in integer arithmetic.
_NON_ASCII_TOKENS_NUM = 2
_NON_ASCII_TOKENS_DEN = 3

_ASCII_WHITESPACE = frozenset(" \t\n\v\f\r")

# Strings up to this length are their own cache key; longer ones are hashed.
_LITERAL_KEY_MAX_LEN = 100


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


class TokenEstimator:
    """
    Approximate token counting for planning and budgeting.

    Every character is classified as non-ASCII (≈1.5 chars/token), ASCII
    non-space (4 chars/token) or ASCII whitespace (10 chars/token). Each class
    is rounded up independently and the three are summed. This is a planning
    heuristic, never a billing-accurate count.

    Caching:
    - Per-text results live in a bounded LRU keyed by the literal string (short
      texts) or its SHA-256 digest (long texts).
    - The cache is guarded by a lock so one estimator can be shared between
      agents or read from a UI thread while a request is in flight.
    - Results are identical with the cache enabled or disabled.
    """

    def __init__(
        self,
        *,
        enable_cache: bool = True,
        max_cache_size: int = 1_000,
    ) -> None:
        if max_cache_size <= 0:
            raise ValueError("max_cache_size must be positive")
        self._enable_cache = enable_cache
        self._max_cache_size = max_cache_size
        self._cache: OrderedDict[str, int] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @classmethod
    def from_config(cls, config: TokenOptimizationConfig) -> TokenEstimator:
        return cls(enable_cache=config.enable_token_cache, max_cache_size=config.max_cache_size)

    # ── Estimation ─────────────────────────────────────────────────────────────

    def estimate(self, text: str) -> int:
        """
        Estimate the token count for a string.

        Args:
            text: The text to estimate.

        Returns:
            0 for empty text, otherwise an estimate >= 1.
        """
        if not text:
            return 0
        if not self._enable_cache:
            return self._heuristic(text)

        key = self._cache_key(text)
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                self._cache.move_to_end(key)
                self._hits += 1
                return cached
            self._misses += 1

        count = self._heuristic(text)

        with self._lock:
            self._cache[key] = count
            self._cache.move_to_end(key)
            while len(self._cache) > self._max_cache_size:
                self._cache.popitem(last=False)
        return count

    def estimate_messages(self, messages: Iterable[ChatMessage]) -> int:
        """
        Estimate a whole message list.

        Sums per-message content estimates and adds ``TOKENS_PER_TOOL_CALL``
        for every tool call carried by an assistant message.
        """
        total = 0
        for msg in messages:
            total += self.estimate(msg.content)
            if msg.role is Role.ASSISTANT and msg.tool_calls:
                total += len(msg.tool_calls) * TOKENS_PER_TOOL_CALL
        return total

    def estimate_tool_definition(self, tool: ToolDefinition) -> int:
        """Estimate the request cost of advertising one tool to the provider."""
        tokens = self.estimate(tool.description)
        if "properties" in tool.input_schema:
            tokens += self.estimate(json.dumps(tool.input_schema, sort_keys=True))
        return tokens

    @staticmethod
    def _heuristic(text: str) -> int:
        non_ascii = 0
        ascii_chars = 0
        whitespace = 0
        for ch in text:
            if ord(ch) > 127:
                non_ascii += 1
            elif ch in _ASCII_WHITESPACE:
                whitespace += 1
            else:
                ascii_chars += 1

        tokens = (
            _ceil_div(non_ascii * _NON_ASCII_TOKENS_NUM, _NON_ASCII_TOKENS_DEN)
            + _ceil_div(ascii_chars, _CHARS_PER_TOKEN_ASCII)
            + _ceil_div(whitespace, _CHARS_PER_TOKEN_SPACE)
        )
        return max(1, tokens)

    # ── Cache management ───────────────────────────────────────────────────────

    @staticmethod
    def _cache_key(text: str) -> str:
        if len(text) <= _LITERAL_KEY_MAX_LEN:
            return "t:" + text
        return "h:" + TokenEstimator.content_hash(text)

    @staticmethod
    def content_hash(text: str) -> str:
        """Return a stable SHA-256 hex digest for use as a cache key."""
        return hashlib.sha256(text.encode()).hexdigest()

    def clear_cache(self) -> None:
        """Drop all cached estimates and reset hit/miss counters."""
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0

    @property
    def cache_size(self) -> int:
        with self._lock:
            return len(self._cache)

    @property
    def cache_hits(self) -> int:
        return self._hits

    @property
    def cache_misses(self) -> int:
        return self._misses
