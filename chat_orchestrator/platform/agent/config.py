"""Configuration dataclasses for agent components.

This module provides immutable configuration objects for agent behavior,
sampling parameters, MCP servers and the agent specification consumed by
the agent factory.
"""

from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any

from chat_orchestrator.platform.agent.errors import ConfigurationError


class AgentMode(StrEnum):
    """How much autonomy the agent has.

    CHAT never exposes tools; AGENT uses tools when the model requests them;
    AUTO additionally allows autopilot continuation.
    """

    CHAT = "chat"
    AGENT = "agent"
    AUTO = "auto"


@dataclass(frozen=True)
class SamplingParams:
    """Sampling parameters forwarded to the provider.

    Attributes:
        temperature: Sampling temperature
        max_tokens: Maximum tokens to generate
        top_p: Nucleus sampling probability mass
        frequency_penalty: Penalty for frequent tokens
        presence_penalty: Penalty for tokens already present
    """

    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None

    def as_kwargs(self) -> dict[str, Any]:
        """Return only the parameters that were set."""
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass(frozen=True)
class AgentConfig:
    """Configuration for agent behavior.

    Attributes:
        mode: Agent mode (chat, agent, auto)
        max_iterations: Maximum provider calls per run
        require_confirmation: Suspend before dispatching non-read-only tool calls
        readonly_tools: Tool names (frozenset) considered read-only; never need confirmation
        enable_tool_inspection: Tell the model it may inspect tool results
        enable_auto_compact: Summarize old turns when the context fills up
        compact_threshold: Fraction of the context window that triggers compaction
        max_turns_without_tools: Consecutive tool-less turns allowed in autopilot
        enable_autopilot: Keep going after a tool-less reply until the model signals completion
        enable_extensions: Allow dispatching extension (MCP) tools
        extension_timeout: Timeout in seconds for a single extension tool call
    """

    mode: AgentMode = AgentMode.AGENT
    max_iterations: int = 10
    require_confirmation: bool = False
    readonly_tools: frozenset[str] = frozenset()
    enable_tool_inspection: bool = True
    enable_auto_compact: bool = True
    compact_threshold: float = 0.8
    max_turns_without_tools: int = 3
    enable_autopilot: bool = False
    enable_extensions: bool = True
    extension_timeout: float = 30.0

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ConfigurationError(f"max_iterations must be positive, got {self.max_iterations}")
        if not 0.0 <= self.compact_threshold <= 1.0:
            raise ConfigurationError(
                f"compact_threshold must be within [0, 1], got {self.compact_threshold}"
            )
        if self.max_turns_without_tools < 1:
            raise ConfigurationError(
                f"max_turns_without_tools must be positive, got {self.max_turns_without_tools}"
            )
        if self.extension_timeout <= 0:
            raise ConfigurationError(
                f"extension_timeout must be positive, got {self.extension_timeout}"
            )
        # Accept any iterable of names but store a frozenset so equal configs hash equal
        if not isinstance(self.readonly_tools, frozenset):
            object.__setattr__(self, "readonly_tools", frozenset(self.readonly_tools))

    @property
    def uses_tools(self) -> bool:
        return self.mode is not AgentMode.CHAT

    @property
    def autopilot(self) -> bool:
        """Whether tool-less replies continue the run instead of finishing it."""
        return self.enable_autopilot and self.uses_tools

    def fingerprint_fields(self) -> dict[str, Any]:
        fields = asdict(self)
        fields["mode"] = str(self.mode)
        fields["readonly_tools"] = sorted(self.readonly_tools)
        return fields


@dataclass(frozen=True)
class MCPConfig:
    """Configuration for MCP (Model Context Protocol) clients.

    Attributes:
        server_url: URL of the MCP server endpoint
        tool_prefix: Optional prefix for tool names to avoid collisions with multiple MCP servers.
                     All MCP tools get 'mcp_' prefix; this adds: mcp_<tool_prefix>_<name>
        headers: Optional HTTP headers to include in requests
        timeout: Connection timeout in seconds (default: 60.0)
        sse_read_timeout: SSE stream read timeout in seconds (default: 300.0)
        read_timeout: General read timeout in seconds (default: 120.0)
    """

    server_url: str
    tool_prefix: str | None = None
    headers: dict[str, str] | None = None
    timeout: float = 60.0
    sse_read_timeout: float = 300.0
    read_timeout: float = 120.0


@dataclass(frozen=True)
class AgentSpec:
    """Everything needed to build (or look up) an Agent.

    Attributes:
        provider_id: Provider variant identifier (e.g. "openai", "anthropic", "mock")
        model_id: Model identifier understood by the provider
        system_prompt: Caller-supplied system prompt (may be empty)
        sampling: Sampling parameters
        config: Agent behavior configuration
        tool_names: Tools bound to the agent; None binds every registered tool
    """

    provider_id: str
    model_id: str
    system_prompt: str = ""
    sampling: SamplingParams = field(default_factory=SamplingParams)
    config: AgentConfig = field(default_factory=AgentConfig)
    tool_names: frozenset[str] | None = None

    def __post_init__(self) -> None:
        if self.tool_names is not None and not isinstance(self.tool_names, frozenset):
            object.__setattr__(self, "tool_names", frozenset(self.tool_names))
