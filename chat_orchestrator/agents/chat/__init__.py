"""Chat front-end contract: presets, request models, service and routes."""

from chat_orchestrator.agents.chat.routes import chat_router
from chat_orchestrator.agents.chat.service import ChatService

__all__ = ["ChatService", "chat_router"]
