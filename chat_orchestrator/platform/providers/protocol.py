"""Provider adapter protocol.

This module defines the uniform interface every LLM provider variant
implements, hiding individual wire protocols from the orchestration loop.
"""

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from typing import Protocol

from chat_orchestrator.platform.agent.config import SamplingParams
from chat_orchestrator.platform.agent.messages import Message, ToolSpec


@dataclass(frozen=True)
class ProviderFragment:
    """One incremental piece of a streamed provider response.

    Attributes:
        delta: Newly generated content text
        reasoning: Newly generated reasoning ("thinking") text
        done: True for the final fragment of the stream
        message: The assembled assistant message (final fragment only)
    """

    delta: str = ""
    reasoning: str = ""
    done: bool = False
    message: Message | None = None


class ProviderAdapter(Protocol):
    """Protocol for an LLM provider."""

    @property
    def provider_id(self) -> str:
        """Identifier of the provider variant (e.g. "openai")."""
        ...

    async def complete(
        self,
        model_id: str,
        messages: Sequence[Message],
        tools: Sequence[ToolSpec],
        sampling: SamplingParams,
    ) -> Message:
        """Request a complete assistant message.

        Args:
            model_id: Model identifier understood by the provider
            messages: Conversation so far, system prompt first
            tools: Tools the model may call (empty to disable tool use)
            sampling: Sampling parameters

        Returns:
            Assistant message, possibly carrying tool call requests

        Raises:
            ProviderError: On any provider failure
        """
        ...

    def stream(
        self,
        model_id: str,
        messages: Sequence[Message],
        tools: Sequence[ToolSpec],
        sampling: SamplingParams,
    ) -> AsyncIterator[ProviderFragment]:
        """Stream an assistant message as fragments.

        The stream is finite and single-use. Its last fragment has done=True and
        carries the assembled message. Closing the iterator early releases the
        underlying provider call.

        Raises:
            ProviderError: On any provider failure
        """
        ...

    async def context_window(self, model_id: str) -> int:
        """Maximum number of input tokens the model accepts."""
        ...
