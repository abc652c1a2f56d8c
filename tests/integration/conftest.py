"""Integration test fixtures.

This module provides a shallow FastAPI app (no middleware, no lifespan)
wired to a real ChatService whose agents all use one MockProvider. Override
the ``provider`` fixture to script the model's replies.

For the full app with lifespan, see test_app_lifespan.py.
"""

from collections.abc import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from chat_orchestrator.agents.chat.prompt import build_system_prompt
from chat_orchestrator.agents.chat.routes import chat_router
from chat_orchestrator.agents.chat.service import ChatService
from chat_orchestrator.platform.agent.errors import ConfigurationError
from chat_orchestrator.platform.orchestration.factory import AgentFactory
from chat_orchestrator.platform.orchestration.loop import Orchestrator
from chat_orchestrator.platform.orchestration.streaming import StreamingAdapter
from chat_orchestrator.platform.providers.mock import MockProvider
from chat_orchestrator.platform.server.app import configuration_error_handler
from chat_orchestrator.platform.server.health import HealthCheck
from chat_orchestrator.platform.server.routes import root as root_router
from chat_orchestrator.platform.tools.registry import ToolRegistry


@pytest.fixture
def provider() -> MockProvider:
    """Provider shared by every agent of the test app; echoes by default."""
    return MockProvider()


@pytest.fixture
def routed_service(tool_registry: ToolRegistry, orchestrator: Orchestrator, provider: MockProvider) -> ChatService:
    """ChatService whose provider factory always returns the ``provider`` fixture."""

    async def create(provider_id: str) -> MockProvider:
        return provider

    factory = AgentFactory(tool_registry, create, capacity=8, prompt_builder=build_system_prompt)
    return ChatService(
        factory=factory,
        orchestrator=orchestrator,
        streaming=StreamingAdapter(orchestrator),
        tool_registry=tool_registry,
        default_model="mock/echo",
    )


@pytest.fixture
def test_app(routed_service: ChatService) -> FastAPI:
    """Create a minimal test FastAPI app for integration tests.

    This is intentionally SHALLOW - no middleware, no lifespan.
    Tests route handlers and their interaction with the chat service.
    """
    app = FastAPI()
    app.state.chat_service = routed_service
    app.add_exception_handler(ConfigurationError, configuration_error_handler)

    app.include_router(root_router)
    app.include_router(chat_router)

    return app


@pytest.fixture
def client(test_app: FastAPI) -> TestClient:
    """Create a test client for the test app.

    No context manager needed since we're not using lifespan.
    """
    return TestClient(test_app)


@pytest.fixture
def client_with_health_enabled(test_app: FastAPI) -> Generator[TestClient]:
    """Create a test client with health checks enabled."""
    HealthCheck.enable()
    yield TestClient(test_app)
    HealthCheck.disable()


@pytest.fixture
def client_with_health_disabled(test_app: FastAPI) -> Generator[TestClient]:
    """Create a test client with health checks disabled."""
    HealthCheck.disable()
    yield TestClient(test_app)
