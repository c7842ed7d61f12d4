"""Three-tier history compression.

A history that exceeds its token target is rebuilt as::

    old_summary ++ middle ++ recent

* **recent**: the last ``recent_messages`` messages, verbatim.
* **middle**: the ``middle_messages`` before that, simplified one by one:
  USER and TOOL messages pass through untouched (TOOL messages carry the
  ``tool_call_id`` providers need for correlation), assistant tool-call turns
  collapse to a short marker, plain assistant replies are truncated.
* **old_summary**: at most one synthetic SYSTEM message describing
  everything older.

The summary is present exactly when messages older than the middle tier
exist. No tier is ever dropped, so USER turns in the middle window survive.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from clawloop.models.config import TokenOptimizationConfig
from clawloop.models.message import ChatMessage, CompressionLayers, Role
from clawloop.tokens.estimator import TokenEstimator

logger = structlog.get_logger("clawloop.compression")

ELLIPSIS = "..."
SUMMARY_PREFIX = "[Earlier conversation summary]"


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS


def tool_call_marker(count: int) -> str:
    """Replacement content for an assistant turn whose tool calls were collapsed."""
    noun = "tool call" if count == 1 else "tool calls"
    return f"[Used {count} {noun}]"


class HistoryCompressor:
    """
    Builds the compressed, read-only view of a conversation history.

    The input history is never modified; every call returns a new list.

    Example::

        compressor = HistoryCompressor(TokenOptimizationConfig(), estimator)
        outbound = compressor.compress(agent.history, target_tokens=8_000)
    """

    def __init__(
        self,
        config: TokenOptimizationConfig | None = None,
        estimator: TokenEstimator | None = None,
    ) -> None:
        self._config = config or TokenOptimizationConfig()
        self._estimator = estimator or TokenEstimator.from_config(self._config)

    @property
    def estimator(self) -> TokenEstimator:
        return self._estimator

    # ── Public API ─────────────────────────────────────────────────────────────

    def needs_compression(self, messages: Sequence[ChatMessage]) -> bool:
        """Return True when compression is enabled and the threshold is exceeded."""
        if not self._config.enable_compression:
            return False
        return self._estimator.estimate_messages(messages) > self._config.compression_threshold

    def compress(
        self,
        history: Sequence[ChatMessage],
        target_tokens: int | None = None,
    ) -> list[ChatMessage]:
        """
        Compress ``history`` to approach ``target_tokens``.

        Args:
            history: The canonical conversation history (not modified).
            target_tokens: Token target. ``None`` or a non-positive value uses
                ``compression_threshold``.

        Returns:
            A copy of ``history`` when compression is disabled or the history
            already fits, otherwise the layered representation.
        """
        if not self._config.enable_compression:
            return list(history)

        target = (
            target_tokens
            if target_tokens is not None and target_tokens > 0
            else self._config.compression_threshold
        )
        tokens_before = self._estimator.estimate_messages(history)
        if tokens_before <= target:
            return list(history)

        compressed = self.create_layers(history).flatten()
        tokens_after = self._estimator.estimate_messages(compressed)

        logger.info(
            "history_compressed",
            messages_before=len(history),
            messages_after=len(compressed),
            tokens_before=tokens_before,
            tokens_after=tokens_after,
            target=target,
        )
        return compressed

    def create_layers(self, history: Sequence[ChatMessage]) -> CompressionLayers:
        """
        Split ``history`` into recent, middle and old-summary tiers.

        ``recent_count = min(recent_messages, total)``,
        ``middle_count = min(middle_messages, total - recent_count)``; anything
        older than both is folded into the summary.
        """
        layers = CompressionLayers()
        total = len(history)
        if total == 0:
            return layers

        recent_count = min(self._config.recent_messages, total)
        middle_count = min(self._config.middle_messages, total - recent_count)
        middle_start = total - recent_count - middle_count

        layers.recent = list(history[total - recent_count :])
        layers.middle = [
            self._simplify(msg) for msg in history[middle_start : total - recent_count]
        ]
        if middle_start > 0:
            layers.old_summary = [self.summarise(history[:middle_start])]
        return layers

    def summarise(self, messages: Sequence[ChatMessage]) -> ChatMessage:
        """
        Build the single SYSTEM message standing in for ``messages``.

        Reports the first user message (truncated) as the topic plus the count
        of summarised messages.
        """
        topic = next((msg.content for msg in messages if msg.role is Role.USER), "")
        parts = [SUMMARY_PREFIX]
        if topic:
            parts.append(f"Topic: {_truncate(topic, self._config.summary_topic_length)}")
        parts.append(f"[{len(messages)} messages]")
        return ChatMessage.system(" ".join(parts))

    # ── Internals ──────────────────────────────────────────────────────────────

    def _simplify(self, msg: ChatMessage) -> ChatMessage:
        if msg.role is not Role.ASSISTANT:
            return msg
        if msg.tool_calls:
            return ChatMessage.assistant(tool_call_marker(len(msg.tool_calls)))
        content = _truncate(msg.content, self._config.max_compressed_length)
        if content == msg.content:
            return msg
        return ChatMessage.assistant(content)
