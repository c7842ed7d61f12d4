"""clawloop data models."""

from clawloop.models.config import (
    AgentConfig,
    BudgetConfig,
    ClawConfig,
    StoreConfig,
    TokenOptimizationConfig,
)
from clawloop.models.message import (
    AgentResponse,
    AgentStatus,
    ChatMessage,
    CompressionLayers,
    LLMResponse,
    Role,
    TokenStats,
    TokenUsage,
    ToolCall,
    ToolDefinition,
    decode_arguments,
)

__all__ = [
    # Config
    "AgentConfig",
    "BudgetConfig",
    "ClawConfig",
    "StoreConfig",
    "TokenOptimizationConfig",
    # Messages
    "Role",
    "ToolCall",
    "ToolDefinition",
    "ChatMessage",
    "decode_arguments",
    # Usage and results
    "TokenUsage",
    "TokenStats",
    "LLMResponse",
    "AgentStatus",
    "AgentResponse",
    "CompressionLayers",
]
