"""Chat HTTP endpoints.

Single responses are returned as JSON; streamed responses are server-sent
events, one ResponseChunk per event.
"""

from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse

from chat_orchestrator.agents.chat.schemas import (
    AgentPresetInfo,
    ChatRequest,
    ChatResponse,
    ConfirmationPayload,
    ConfirmationResponse,
    ToolInfo,
)
from chat_orchestrator.agents.chat.service import ChatService
from chat_orchestrator.platform.agent.errors import ConfirmationNotPending
from chat_orchestrator.platform.orchestration.streaming import to_sse
from chat_orchestrator.platform.server.dependencies.agents import get_chat_service

chat_router = APIRouter(tags=["chat"])

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


def _sse_response(service: ChatService, payload: ChatRequest) -> StreamingResponse:
    async def generate() -> AsyncIterator[str]:
        async for chunk in service.stream(payload):
            yield to_sse(chunk)

    return StreamingResponse(generate(), media_type="text/event-stream", headers=SSE_HEADERS)


@chat_router.post("/chat", response_model=ChatResponse)
async def chat(payload: ChatRequest, service: ChatService = Depends(get_chat_service)):
    """Run a chat turn.

    Returns:
        The final response as JSON, or an event stream when ``stream`` is set.
        Failed runs answer 502 with the error report in the body.
    """
    if payload.stream:
        return _sse_response(service, payload)
    response = await service.send(payload)
    if response.error is not None:
        return JSONResponse(status_code=502, content=response.model_dump(mode="json"))
    return response


@chat_router.post("/chat/stream")
async def chat_stream(payload: ChatRequest, service: ChatService = Depends(get_chat_service)) -> StreamingResponse:
    return _sse_response(service, payload)


@chat_router.get("/tools", response_model=list[ToolInfo])
async def list_tools(service: ChatService = Depends(get_chat_service)) -> list[ToolInfo]:
    return service.list_tools()


@chat_router.get("/agents/types", response_model=list[AgentPresetInfo])
async def list_agent_types(service: ChatService = Depends(get_chat_service)) -> list[AgentPresetInfo]:
    return service.list_agent_types()


@chat_router.post("/chat/runs/{run_id}/confirmation", response_model=ConfirmationResponse)
async def confirm_tool_calls(
    run_id: str,
    payload: ConfirmationPayload,
    service: ChatService = Depends(get_chat_service),
) -> ConfirmationResponse:
    """Approve or reject the tool calls a run is waiting on.

    Raises:
        HTTPException: 404 if the run is not waiting for a confirmation
    """
    try:
        return service.confirm(run_id, payload)
    except ConfirmationNotPending as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
