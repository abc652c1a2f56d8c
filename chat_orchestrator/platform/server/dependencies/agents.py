"""Chat dependencies for FastAPI routes."""

from typing import TYPE_CHECKING

from fastapi import Request

if TYPE_CHECKING:
    from chat_orchestrator.agents.chat.service import ChatService


def get_chat_service(request: Request) -> "ChatService":
    """Return the ChatService built during application startup.

    Example:
        @router.post("/chat")
        async def chat(payload: ChatRequest, service: ChatService = Depends(get_chat_service)):
            return await service.send(payload)
    """
    return request.app.state.chat_service
