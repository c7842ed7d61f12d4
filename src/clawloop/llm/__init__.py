"""LLM provider adapters."""

from __future__ import annotations

import os
from typing import Any

from clawloop.llm.litellm_provider import LiteLLMProvider
from clawloop.llm.mock import MockProvider
from clawloop.llm.provider import ChunkCallback, LLMProvider, emit_chunk
from clawloop.models.config import AgentConfig

MOCK_ENV_VAR = "CLAWLOOP_MOCK_LLM"


def create_provider(
    model: str,
    config: AgentConfig | None = None,
    **kwargs: Any,
) -> LLMProvider:
    """
    Build a provider for ``model``.

    Returns a :class:`MockProvider` when ``CLAWLOOP_MOCK_LLM=1`` is set,
    otherwise a :class:`LiteLLMProvider` receiving ``kwargs``. ``config``
    supplies ``max_tokens`` and ``temperature`` unless ``kwargs`` override them.
    """
    if os.environ.get(MOCK_ENV_VAR) == "1":
        return MockProvider(model=model)
    if config is not None:
        kwargs.setdefault("max_tokens", config.max_tokens)
        kwargs.setdefault("temperature", config.temperature)
    return LiteLLMProvider(model, **kwargs)


__all__ = [
    "MOCK_ENV_VAR",
    "ChunkCallback",
    "LLMProvider",
    "LiteLLMProvider",
    "MockProvider",
    "create_provider",
    "emit_chunk",
]
