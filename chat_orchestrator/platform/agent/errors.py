"""Error taxonomy for agent orchestration.

Configuration errors are surfaced immediately, provider errors carry a
retryable flag consumed by the retry policy, tool errors are folded back into
the conversation as failed tool results, and cache errors indicate a defect.
"""

from chat_orchestrator.platform.agent.messages import ErrorReport


class OrchestrationError(Exception):
    """Base class for all orchestration errors."""

    retryable: bool = False


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationError(OrchestrationError):
    """Invalid AgentConfig, ToolSpec, model identifier or provider setup."""


class UnknownProvider(ConfigurationError):
    """No provider variant is registered under the requested id."""

    def __init__(self, provider_id: str) -> None:
        super().__init__(f"Unknown provider '{provider_id}'")
        self.provider_id = provider_id


class MissingCredential(ConfigurationError):
    """The credential required by a provider is not configured."""

    def __init__(self, provider_id: str) -> None:
        super().__init__(f"No credential configured for provider '{provider_id}'")
        self.provider_id = provider_id


class DuplicateTool(ConfigurationError):
    """A tool with the same name is already registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool '{name}' is already registered")
        self.tool_name = name


# =============================================================================
# Providers
# =============================================================================


class ProviderError(OrchestrationError):
    """A provider call failed."""

    def __init__(self, provider_id: str, message: str) -> None:
        super().__init__(f"{provider_id}: {message}")
        self.provider_id = provider_id


class ProviderUnavailable(ProviderError):
    """Network or authentication failure reaching the provider."""

    retryable = True


class ProviderRateLimited(ProviderError):
    """The provider throttled the request."""

    retryable = True

    def __init__(self, provider_id: str, message: str, retry_after: float | None = None) -> None:
        super().__init__(provider_id, message)
        self.retry_after = retry_after


class ProviderTimeout(ProviderError):
    """The provider did not answer in time."""

    retryable = True


class ProviderRejected(ProviderError):
    """The provider rejected the request as invalid. Never retried."""


# =============================================================================
# Tools
# =============================================================================


class ToolError(OrchestrationError):
    """A tool call could not be completed."""

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class UnknownTool(ToolError):
    """No tool is registered under the requested name."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(tool_name, f"Unknown tool '{tool_name}'")


class InvalidArguments(ToolError):
    """The argument payload does not satisfy the tool's input schema."""


class ToolExecutionError(ToolError):
    """The tool raised or timed out while executing."""


class ToolRejected(ToolExecutionError):
    """The tool call was rejected at the confirmation step."""


class ExtensionsDisabled(ToolError):
    """An extension (MCP) tool was requested while extensions are disabled."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(tool_name, f"Extension tool '{tool_name}' called while extensions are disabled")


class ToolFailureBudgetExceeded(OrchestrationError):
    """Too many tool calls failed within one run."""

    def __init__(self, failures: int, budget: int, tool_name: str | None = None) -> None:
        super().__init__(f"{failures} tool failures exceed the per-run budget of {budget}")
        self.failures = failures
        self.budget = budget
        self.tool_name = tool_name


# =============================================================================
# Confirmation
# =============================================================================


class ConfirmationNotPending(OrchestrationError):
    """No tool confirmation is awaiting a decision for the run."""

    def __init__(self, run_id: str) -> None:
        super().__init__(f"No confirmation pending for run '{run_id}'")
        self.run_id = run_id


# =============================================================================
# Cache
# =============================================================================


class CacheError(OrchestrationError):
    """Two incompatible agent specs produced the same fingerprint."""


def to_report(error: Exception, last_successful_turn: int = -1) -> ErrorReport:
    """Convert an exception into the ErrorReport surfaced at the run boundary.

    Args:
        error: The error that terminated the run
        last_successful_turn: Index of the last message appended successfully

    Returns:
        ErrorReport with provider/tool context when the error carries it
    """
    return ErrorReport(
        kind=type(error).__name__,
        message=str(error),
        retryable=getattr(error, "retryable", False),
        provider_id=getattr(error, "provider_id", None),
        tool_name=getattr(error, "tool_name", None),
        last_successful_turn=last_successful_turn,
    )
