"""chat-orchestrator - Agent orchestration between a chat front-end and LLM providers."""

from .platform.server.app import create_app
from .platform.settings import Settings


def app():
    """Create the FastAPI application instance."""
    settings = Settings()
    return create_app(settings)
