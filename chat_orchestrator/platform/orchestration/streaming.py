"""Streaming adapter.

Turns the orchestration loop's events into the ordered, typed ResponseChunk
sequence consumed by chat front-ends. Every sequence ends with exactly one
Done chunk; a failed run emits an Error chunk right before it.
"""

import json
import uuid
from collections.abc import AsyncIterator, Iterator, Sequence
from contextlib import aclosing
from dataclasses import asdict

import structlog

from chat_orchestrator.platform.agent.errors import to_report
from chat_orchestrator.platform.agent.messages import (
    ChunkType,
    Conversation,
    ErrorReport,
    Message,
    ResponseChunk,
    RunState,
)
from chat_orchestrator.platform.orchestration.factory import Agent
from chat_orchestrator.platform.orchestration.loop import (
    ContentDelta,
    LoopEvent,
    Orchestrator,
    RunFinished,
    ThinkingDelta,
    ToolCallsProposed,
    ToolResultReady,
)

logger = structlog.get_logger(__name__)


def _error_chunk(report: ErrorReport) -> ResponseChunk:
    return ResponseChunk(type=ChunkType.ERROR, text=report.message, metadata=asdict(report))


def _done_chunk(state: RunState, run_id: str, iterations: int = 0, truncation_reason: str | None = None) -> ResponseChunk:
    return ResponseChunk(
        type=ChunkType.DONE,
        metadata={
            "state": str(state),
            "run_id": run_id,
            "iterations": iterations,
            "truncation_reason": truncation_reason,
        },
    )


def stream_failure(error: Exception, run_id: str | None = None) -> Iterator[ResponseChunk]:
    """Chunks reporting an error raised before a run could start."""
    yield _error_chunk(to_report(error))
    yield _done_chunk(RunState.FAILED, run_id or "")


def to_sse(chunk: ResponseChunk) -> str:
    """Frame a chunk as a server-sent event."""
    payload = {"type": str(chunk.type), "text": chunk.text, "metadata": chunk.metadata}
    return f"data: {json.dumps(payload, default=str)}\n\n"


class StreamingAdapter:
    """Streams agent runs as ResponseChunks.

    Closing the returned iterator early, or cancelling the task consuming it,
    closes the loop and the provider stream; nothing is emitted afterwards.
    """

    def __init__(self, orchestrator: Orchestrator) -> None:
        self._orchestrator = orchestrator

    async def stream(
        self,
        agent: Agent,
        conversation: Sequence[Message] | Conversation,
        *,
        run_id: str | None = None,
    ) -> AsyncIterator[ResponseChunk]:
        run_id = run_id or uuid.uuid4().hex
        done = False
        try:
            events = self._orchestrator.events(agent, conversation, run_id=run_id, streaming=True)
            async with aclosing(events):
                async for event in events:
                    for chunk in self._to_chunks(event, run_id):
                        done = chunk.type is ChunkType.DONE
                        yield chunk
        except Exception as e:
            if done:
                raise
            logger.exception("stream_failed", run_id=run_id, error=str(e))
            for chunk in stream_failure(e, run_id):
                yield chunk

    @staticmethod
    def _to_chunks(event: LoopEvent, run_id: str) -> Iterator[ResponseChunk]:
        match event:
            case ContentDelta(text=text, iteration=iteration):
                yield ResponseChunk(type=ChunkType.CONTENT, text=text, metadata={"iteration": iteration})
            case ThinkingDelta(text=text, iteration=iteration):
                yield ResponseChunk(type=ChunkType.THINKING, text=text, metadata={"iteration": iteration})
            case ToolCallsProposed(requests=requests, iteration=iteration):
                for request in requests:
                    yield ResponseChunk(
                        type=ChunkType.TOOL_CALL,
                        text=request.name,
                        metadata={
                            "tool_name": request.name,
                            "call_id": request.id,
                            "arguments": request.arguments,
                            "iteration": iteration,
                            "requires_confirmation": event.requires_confirmation(request.id),
                            "run_id": run_id,
                        },
                    )
            case ToolResultReady(result=result, iteration=iteration):
                yield ResponseChunk(
                    type=ChunkType.TOOL_RESULT,
                    text=result.as_text(),
                    metadata={
                        "tool_name": result.tool_name,
                        "call_id": result.call_id,
                        "ok": result.ok,
                        "error_kind": result.error_kind,
                        "iteration": iteration,
                    },
                )
            case RunFinished(result=result):
                if result.state is RunState.FAILED and result.error is not None:
                    yield _error_chunk(result.error)
                yield _done_chunk(result.state, result.run_id, result.iterations, result.truncation_reason)
