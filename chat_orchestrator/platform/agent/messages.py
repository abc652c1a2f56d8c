"""Framework-agnostic message, chunk and result types.

These types are shared by the providers, the orchestration loop and the
HTTP layer and define the common vocabulary for a run.
"""

import json
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Self


class Role(StrEnum):
    """Author of a message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCallRequest:
    """A tool invocation requested by the model.

    Attributes:
        id: Correlation ID, unique within one orchestration run
        name: Name of the tool to invoke
        arguments: Argument payload, expected to match the tool's input schema
    """

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolCallResult:
    """Outcome of a single tool invocation.

    Attributes:
        call_id: Correlation ID of the ToolCallRequest this result answers
        tool_name: Name of the invoked tool
        ok: Whether the tool completed successfully
        output: Result payload (successful calls)
        error: Error description (failed calls)
        error_kind: Name of the error class for failed calls
    """

    call_id: str
    tool_name: str
    ok: bool
    output: Any = None
    error: str | None = None
    error_kind: str | None = None

    @classmethod
    def success(cls, request: ToolCallRequest, output: Any) -> Self:
        return cls(call_id=request.id, tool_name=request.name, ok=True, output=output)

    @classmethod
    def failure(cls, request: ToolCallRequest, error: Exception) -> Self:
        return cls(
            call_id=request.id,
            tool_name=request.name,
            ok=False,
            error=str(error),
            error_kind=type(error).__name__,
        )

    def as_text(self) -> str:
        """Render the payload as text for the provider and for stream chunks."""
        if not self.ok:
            return f"Error ({self.error_kind}): {self.error}"
        if self.output is None:
            return "No result"
        if isinstance(self.output, str):
            return self.output
        return json.dumps(self.output, default=str)


@dataclass(frozen=True)
class Message:
    """A single conversation turn.

    Attributes:
        role: Message role
        content: Message text content
        timestamp: When the message was produced, if known
        tool_calls: Tool calls requested by an assistant message
        tool_results: Tool results carried by a tool message
        reasoning: Provider reasoning ("thinking") content, if any
    """

    role: Role
    content: str
    timestamp: datetime | None = None
    tool_calls: tuple[ToolCallRequest, ...] = ()
    tool_results: tuple[ToolCallResult, ...] = ()
    reasoning: str | None = None

    @classmethod
    def system(cls, content: str) -> Self:
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Self:
        return cls(role=Role.USER, content=content, timestamp=datetime.now(UTC))

    @classmethod
    def assistant(
        cls,
        content: str,
        tool_calls: Iterable[ToolCallRequest] = (),
        reasoning: str | None = None,
    ) -> Self:
        return cls(
            role=Role.ASSISTANT,
            content=content,
            tool_calls=tuple(tool_calls),
            reasoning=reasoning,
        )

    @classmethod
    def tool(cls, results: Iterable[ToolCallResult]) -> Self:
        results = tuple(results)
        content = "\n".join(f"{r.tool_name}: {r.as_text()}" for r in results)
        return cls(role=Role.TOOL, content=content, tool_results=results)


class Conversation:
    """Ordered, append-only sequence of messages.

    A Conversation always owns its storage: constructing one from another
    sequence copies it, so the orchestration loop can extend its own copy
    without touching the caller's history.
    """

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._messages: list[Message] = list(messages)

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def extend(self, messages: Iterable[Message]) -> None:
        self._messages.extend(messages)

    def copy(self) -> "Conversation":
        return Conversation(self._messages)

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def __len__(self) -> int:
        return len(self._messages)

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]

    def __repr__(self) -> str:
        return f"Conversation({len(self._messages)} messages)"


class ChunkType(StrEnum):
    """Kind of a streamed response chunk."""

    CONTENT = "content"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    THINKING = "thinking"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class ResponseChunk:
    """One incremental unit of a streamed response.

    Attributes:
        type: Chunk type
        text: Textual payload
        metadata: Structured metadata (tool name, iteration index, ...)
    """

    type: ChunkType
    text: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


class RunState(StrEnum):
    """Terminal state of an orchestration run."""

    FINISHED = "finished"
    TRUNCATED = "truncated"
    FAILED = "failed"


@dataclass(frozen=True)
class ErrorReport:
    """Error information reported at the run boundary.

    Attributes:
        kind: Name of the error class
        message: Human-readable description
        retryable: Whether retrying the request may succeed
        provider_id: Offending provider, if any
        tool_name: Offending tool, if any
        last_successful_turn: Index of the last message appended successfully (-1 if none)
    """

    kind: str
    message: str
    retryable: bool = False
    provider_id: str | None = None
    tool_name: str | None = None
    last_successful_turn: int = -1


@dataclass(frozen=True)
class RunResult:
    """Result of one orchestration run.

    Attributes:
        state: Terminal loop state
        message: Final assistant message (None if the run failed before one was produced)
        messages: Full conversation of the run, including the caller's input
        iterations: Number of provider calls performed
        run_id: Identifier of the run
        error: Error report for failed runs
        truncation_reason: Why the run was truncated, for truncated runs
    """

    state: RunState
    message: Message | None
    messages: tuple[Message, ...]
    iterations: int
    run_id: str
    error: ErrorReport | None = None
    truncation_reason: str | None = None


@dataclass(frozen=True)
class ToolSpec:
    """Description of a tool exposed to the model.

    Attributes:
        name: Unique tool name
        description: Human-readable description for the model
        input_schema: JSON Schema (object) for the tool arguments
        is_extension: Whether the tool comes from an external source (MCP)
    """

    name: str
    description: str
    input_schema: dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})
    is_extension: bool = False
