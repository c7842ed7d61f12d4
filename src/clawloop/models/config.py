"""Configuration models for clawloop agents and components."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TokenOptimizationConfig(BaseModel):
    """
    Token estimation, compression and prompt-caching settings.

    Immutable after construction: use ``model_copy(update=...)`` to derive a
    variant.
    """

    model_config = ConfigDict(frozen=True)

    enable_compression: bool = True
    """Whether ``compress_history`` may rewrite history at all."""

    compression_threshold: int = Field(
        default=8_000,
        gt=0,
        description="Estimated token count above which history is compressed "
        "when no explicit target is given.",
    )

    enable_prompt_caching: bool = True
    """Whether provider prompt-cache headers are generated."""

    compress_tool_results: bool = True
    """Whether oversized tool results are truncated before entering history."""

    max_tool_result_length: int = Field(
        default=5_000,
        ge=100,
        le=50_000,
        description="Maximum characters kept from a single tool result.",
    )

    target_budget: int = Field(
        default=12_000,
        ge=1_000,
        le=200_000,
        description="Overall cumulative token budget used for optimization suggestions.",
    )

    enable_token_cache: bool = True
    """Whether token estimates are memoised in the bounded LRU cache."""

    max_cache_size: int = Field(
        default=1_000,
        gt=0,
        description="Maximum number of entries kept in the token-estimate cache.",
    )

    recent_messages: int = Field(
        default=5,
        ge=1,
        description="Messages kept verbatim at the tail of a compressed history.",
    )

    middle_messages: int = Field(
        default=10,
        ge=0,
        description="Messages before the recent tier that are simplified individually.",
    )

    max_compressed_length: int = Field(
        default=100,
        ge=10,
        description="Maximum characters kept from a plain assistant reply in the middle tier.",
    )

    summary_topic_length: int = Field(
        default=50,
        ge=10,
        description="Maximum characters of the first user message quoted in the old summary.",
    )


class BudgetConfig(BaseModel):
    """Settings for the cumulative TokenBudget."""

    max_tokens: int = Field(
        default=12_000,
        ge=0,
        description="Soft ceiling on cumulative estimated token usage. 0 disables percentages.",
    )

    system_prompt_allowance: int = Field(
        default=500,
        ge=0,
        description="Fixed token allowance added for the system prompt when checking a request.",
    )


class AgentConfig(BaseModel):
    """Settings for the Agent orchestration loop."""

    max_iterations: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum provider round-trips per process() call.",
    )

    max_tokens: int = Field(
        default=4_096,
        ge=1,
        description="Maximum output tokens requested from the provider per call.",
    )

    temperature: float = Field(default=0.0, ge=0.0, le=2.0)

    concurrent_tool_execution: bool = False
    """Run the tool calls of one round concurrently. History order is unchanged."""

    token_optimization: bool = False
    """Compress outbound history and truncate tool results."""

    compression_target: int = Field(
        default=8_000,
        gt=0,
        description="Target token count handed to the compressor on each round.",
    )

    call_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Wall-clock seconds allowed for each provider call and each tool call. "
        "None = unbounded.",
    )

    doom_loop_threshold: int = Field(
        default=3,
        ge=2,
        le=10,
        description="Number of consecutive identical tool calls that triggers doom loop detection.",
    )


class StoreConfig(BaseModel):
    """Configuration for the SQLite history store."""

    db_path: str = Field(
        default="~/.clawloop/sessions.db",
        description="Path to the SQLite database file. ~ is expanded at runtime.",
    )

    wal_mode: bool = True
    """Use WAL journal mode for better concurrent read performance."""

    connection_timeout: float = 30.0
    """Seconds to wait for the database connection before raising."""


class ClawConfig(BaseModel):
    """
    Top-level configuration bundle.

    All sub-configs have sensible defaults and can be overridden individually.

    Example::

        config = ClawConfig(
            agent=AgentConfig(max_iterations=20, token_optimization=True),
            optimization=TokenOptimizationConfig(compression_threshold=4_000),
        )
    """

    agent: AgentConfig = Field(default_factory=AgentConfig)
    optimization: TokenOptimizationConfig = Field(default_factory=TokenOptimizationConfig)
    budget: BudgetConfig = Field(default_factory=BudgetConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

    @model_validator(mode="after")
    def validate_optimization(self) -> ClawConfig:
        if (
            self.agent.token_optimization
            and not self.optimization.enable_compression
            and not self.optimization.compress_tool_results
        ):
            raise ValueError(
                "agent.token_optimization requires compression or tool-result compression"
            )
        return self

    @classmethod
    def default(cls) -> ClawConfig:
        """Return a config instance with all defaults."""
        return cls()
