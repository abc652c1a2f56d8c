"""Deterministic in-memory provider for tests and local development."""

import asyncio
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeAlias

from chat_orchestrator.platform.agent.config import SamplingParams
from chat_orchestrator.platform.agent.messages import Message, Role, ToolCallRequest, ToolSpec
from chat_orchestrator.platform.providers.protocol import ProviderFragment

Responder: TypeAlias = Callable[[Sequence[Message], Sequence[ToolSpec], int], Message | str]


@dataclass(frozen=True)
class MockCall:
    """A recorded provider call."""

    model_id: str
    messages: tuple[Message, ...]
    tools: tuple[ToolSpec, ...]
    sampling: SamplingParams
    streamed: bool


def echo_responder(messages: Sequence[Message], tools: Sequence[ToolSpec], call_index: int) -> str:
    last_user = next((m for m in reversed(messages) if m.role is Role.USER), None)
    return f"Echo: {last_user.content if last_user else ''}"


class MockProvider:
    """Provider whose replies are computed by a responder function.

    Args:
        responder: Builds the reply from (messages, tools, call_index); echoes
            the last user message by default
        chunk_size: Characters per streamed content fragment
        fragment_delay: Seconds to sleep before each streamed fragment
        context_window: Reported context window in tokens
        failures: Exceptions raised by the first calls, one per call
    """

    provider_id = "mock"

    def __init__(
        self,
        responder: Responder | None = None,
        *,
        chunk_size: int = 8,
        fragment_delay: float = 0.0,
        context_window: int = 8192,
        failures: Sequence[Exception] = (),
    ) -> None:
        self._responder = responder or echo_responder
        self._chunk_size = max(1, chunk_size)
        self._fragment_delay = fragment_delay
        self._context_window = context_window
        self._failures = list(failures)
        self.calls: list[MockCall] = []
        self.fragments_emitted = 0
        self.aborted_streams = 0
        self.completed_streams = 0

    @property
    def call_count(self) -> int:
        return len(self.calls)

    @classmethod
    def tool_caller(cls, tool_name: str, arguments: dict[str, Any] | None = None) -> Responder:
        """Responder that requests the same tool on every call."""

        def respond(messages: Sequence[Message], tools: Sequence[ToolSpec], call_index: int) -> Message:
            call = ToolCallRequest(id=f"call_{call_index}", name=tool_name, arguments=dict(arguments or {}))
            return Message.assistant("", tool_calls=[call])

        return respond

    @classmethod
    def scripted(cls, *replies: Message | str) -> Responder:
        """Responder returning the given replies in order, repeating the last one."""
        if not replies:
            raise ValueError("scripted() needs at least one reply")

        def respond(messages: Sequence[Message], tools: Sequence[ToolSpec], call_index: int) -> Message | str:
            return replies[min(call_index, len(replies) - 1)]

        return respond

    def _next(
        self,
        model_id: str,
        messages: Sequence[Message],
        tools: Sequence[ToolSpec],
        sampling: SamplingParams,
        streamed: bool,
    ) -> Message:
        call_index = len(self.calls)
        self.calls.append(MockCall(model_id, tuple(messages), tuple(tools), sampling, streamed))
        if self._failures:
            raise self._failures.pop(0)
        reply = self._responder(messages, tools, call_index)
        return Message.assistant(reply) if isinstance(reply, str) else reply

    async def complete(
        self,
        model_id: str,
        messages: Sequence[Message],
        tools: Sequence[ToolSpec],
        sampling: SamplingParams,
    ) -> Message:
        return self._next(model_id, messages, tools, sampling, streamed=False)

    async def stream(
        self,
        model_id: str,
        messages: Sequence[Message],
        tools: Sequence[ToolSpec],
        sampling: SamplingParams,
    ) -> AsyncIterator[ProviderFragment]:
        message = self._next(model_id, messages, tools, sampling, streamed=True)
        finished = False
        try:
            if message.reasoning:
                await asyncio.sleep(self._fragment_delay)
                self.fragments_emitted += 1
                yield ProviderFragment(reasoning=message.reasoning)
            content = message.content
            for start in range(0, len(content), self._chunk_size):
                await asyncio.sleep(self._fragment_delay)
                self.fragments_emitted += 1
                yield ProviderFragment(delta=content[start : start + self._chunk_size])
            finished = True
        finally:
            if finished:
                self.completed_streams += 1
            else:
                self.aborted_streams += 1
        yield ProviderFragment(done=True, message=message)

    async def context_window(self, model_id: str) -> int:
        return self._context_window
