"""
clawloop: the orchestration core of an agentic coding assistant.

Primary entry point::

    from clawloop import Agent, ToolExecutor, ToolRegistry, create_provider

    agent = Agent(create_provider("anthropic/claude-sonnet-4-5"), ToolExecutor(ToolRegistry()))
    response = await agent.process("Hello!")
    print(response.content)
"""

from clawloop.agent import Agent
from clawloop.compression import HistoryCompressor, TokenOptimizer
from clawloop.events.bus import AgentEvent, EventBus
from clawloop.llm import LiteLLMProvider, LLMProvider, MockProvider, create_provider
from clawloop.models import (
    AgentConfig,
    AgentResponse,
    AgentStatus,
    BudgetConfig,
    ChatMessage,
    ClawConfig,
    CompressionLayers,
    LLMResponse,
    Role,
    StoreConfig,
    TokenOptimizationConfig,
    TokenStats,
    TokenUsage,
    ToolCall,
    ToolDefinition,
)
from clawloop.prompt import PromptBuilder, PromptMode
from clawloop.store import HistoryStore, SessionMetadata, SessionNotFoundError, StoreError
from clawloop.tokens import TokenBudget, TokenEstimator, WarningLevel
from clawloop.tools import (
    FunctionTool,
    ParameterError,
    Tool,
    ToolArguments,
    ToolDescription,
    ToolExecutor,
    ToolParameter,
    ToolRegistry,
    ToolResult,
)
from clawloop.utils import make_id

__version__ = "0.1.0"

__all__ = [
    # Core
    "Agent",
    "make_id",
    # Config
    "ClawConfig",
    "AgentConfig",
    "BudgetConfig",
    "StoreConfig",
    "TokenOptimizationConfig",
    # Models
    "Role",
    "ChatMessage",
    "ToolCall",
    "ToolDefinition",
    "LLMResponse",
    "AgentResponse",
    "AgentStatus",
    "TokenUsage",
    "TokenStats",
    "CompressionLayers",
    # Tokens and compression
    "TokenEstimator",
    "TokenBudget",
    "WarningLevel",
    "HistoryCompressor",
    "TokenOptimizer",
    # Providers
    "LLMProvider",
    "LiteLLMProvider",
    "MockProvider",
    "create_provider",
    # Tools
    "Tool",
    "FunctionTool",
    "ToolArguments",
    "ToolDescription",
    "ToolParameter",
    "ToolResult",
    "ParameterError",
    "ToolRegistry",
    "ToolExecutor",
    # Prompt
    "PromptBuilder",
    "PromptMode",
    # Events
    "AgentEvent",
    "EventBus",
    # Store
    "HistoryStore",
    "SessionMetadata",
    "StoreError",
    "SessionNotFoundError",
]
