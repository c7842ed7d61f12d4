"""TokenOptimizer: the token-saving entry point used by the Agent."""

from __future__ import annotations

import threading
from collections.abc import Sequence

import structlog

from clawloop.compression.compressor import HistoryCompressor
from clawloop.models.config import TokenOptimizationConfig
from clawloop.models.message import ChatMessage, TokenStats, ToolDefinition
from clawloop.tokens.estimator import TokenEstimator

DEFAULT_SYSTEM_PROMPT_ALLOWANCE = 500
LONG_HISTORY_INPUT_TOKENS = 10_000

ANTHROPIC_PROMPT_CACHE_BETA = "prompt-caching-2024-07-31"


class TokenOptimizer:
    """
    Single entry point for the token-saving features the Agent uses.

    Owns one ``TokenEstimator`` (shared with the compressor so both hit the same
    cache) and a ``HistoryCompressor``. Cumulative ``TokenStats`` are guarded by
    a lock.

    Example::

        optimizer = TokenOptimizer(TokenOptimizationConfig(compression_threshold=4_000))
        outbound = optimizer.compress_history(history)
        optimizer.update_stats(response.input_tokens, response.output_tokens)
        print(optimizer.get_optimization_suggestion())
    """

    def __init__(
        self,
        config: TokenOptimizationConfig | None = None,
        estimator: TokenEstimator | None = None,
    ) -> None:
        self._config = config or TokenOptimizationConfig()
        self._estimator = estimator or TokenEstimator.from_config(self._config)
        self._compressor = HistoryCompressor(self._config, self._estimator)
        self._stats = TokenStats()
        self._stats_lock = threading.Lock()
        self._logger = structlog.get_logger("clawloop.optimizer")

    @property
    def config(self) -> TokenOptimizationConfig:
        return self._config

    @property
    def estimator(self) -> TokenEstimator:
        return self._estimator

    @property
    def compressor(self) -> HistoryCompressor:
        return self._compressor

    # ── Estimation ─────────────────────────────────────────────────────────────

    def estimate_tokens(self, value: str | Sequence[ChatMessage]) -> int:
        """Estimate a single text or a whole message list."""
        if isinstance(value, str):
            return self._estimator.estimate(value)
        return self._estimator.estimate_messages(value)

    def estimate_next_request(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDefinition] = (),
        system_prompt_allowance: int = DEFAULT_SYSTEM_PROMPT_ALLOWANCE,
    ) -> int:
        """Estimate the next request: history + tool definitions + system prompt allowance."""
        tokens = self._estimator.estimate_messages(messages)
        tokens += sum(self._estimator.estimate_tool_definition(tool) for tool in tools)
        tokens += system_prompt_allowance
        with self._stats_lock:
            self._stats = self._stats.model_copy(update={"estimated_next": tokens})
        return tokens

    # ── Compression ────────────────────────────────────────────────────────────

    def needs_compression(self, messages: Sequence[ChatMessage]) -> bool:
        return self._compressor.needs_compression(messages)

    def compress_history(
        self,
        history: Sequence[ChatMessage],
        target_tokens: int | None = None,
    ) -> list[ChatMessage]:
        """See :meth:`HistoryCompressor.compress`."""
        return self._compressor.compress(history, target_tokens)

    def compress_tool_result(self, result: str, tool_name: str) -> str:
        """
        Trim a tool result that exceeds ``max_tool_result_length``.

        The head of the output is kept and a note records how much was dropped.
        Returns ``result`` unchanged when trimming is disabled or not needed.
        """
        limit = self._config.max_tool_result_length
        if not self._config.compress_tool_results or len(result) <= limit:
            return result
        omitted = len(result) - limit
        self._logger.debug("tool_result_truncated", tool=tool_name, omitted_chars=omitted)
        return f"{result[:limit]}\n... (output truncated, {omitted} characters omitted)"

    # ── Prompt caching ─────────────────────────────────────────────────────────

    def generate_cache_headers(self, provider: str, system_prompt: str) -> dict[str, str]:
        """
        Return extra HTTP headers enabling provider-side prompt caching.

        Anthropic needs an explicit beta header; OpenAI-compatible providers
        cache long prefixes implicitly, so no header is produced for them.
        """
        if not self._config.enable_prompt_caching or not system_prompt:
            return {}
        if provider.lower() == "anthropic":
            return {"anthropic-beta": ANTHROPIC_PROMPT_CACHE_BETA}
        return {}

    # ── Stats ──────────────────────────────────────────────────────────────────

    def update_stats(self, input_tokens: int, output_tokens: int) -> None:
        with self._stats_lock:
            inp = self._stats.input_tokens + input_tokens
            out = self._stats.output_tokens + output_tokens
            self._stats = self._stats.model_copy(
                update={"input_tokens": inp, "output_tokens": out, "total_tokens": inp + out}
            )

    @property
    def stats(self) -> TokenStats:
        with self._stats_lock:
            return self._stats.model_copy()

    def reset_stats(self) -> None:
        with self._stats_lock:
            self._stats = TokenStats()

    def get_optimization_suggestion(self) -> str:
        """Return a suggestion based on cumulative stats and the current settings."""
        stats = self.stats
        if stats.total_tokens > self._config.target_budget:
            return (
                "The token budget has been reached. Enable history compression "
                "or start a new conversation."
            )
        if stats.input_tokens > LONG_HISTORY_INPUT_TOKENS:
            return "The conversation history is long. Enabling compression will save tokens."
        if not self._config.enable_prompt_caching:
            return "Enable prompt caching to avoid re-billing the system prompt on every request."
        return "Token usage is healthy. No optimization needed."
