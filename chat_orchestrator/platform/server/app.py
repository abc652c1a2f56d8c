"""FastAPI application factory and server configuration.

This module creates and configures the FastAPI application with all middleware,
routes, and lifecycle management.
"""

import asyncio
import logging
import os
import signal
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from chat_orchestrator.agents.chat.prompt import build_system_prompt
from chat_orchestrator.agents.chat.routes import chat_router
from chat_orchestrator.agents.chat.service import ChatService
from chat_orchestrator.platform.agent.errors import ConfigurationError
from chat_orchestrator.platform.observability import errors as bugsnag
from chat_orchestrator.platform.observability.logging import configure_logging, json_output_for
from chat_orchestrator.platform.observability.metrics import prometheus_middleware
from chat_orchestrator.platform.observability.tracing import initialize_tracing
from chat_orchestrator.platform.orchestration.compaction import Compactor
from chat_orchestrator.platform.orchestration.factory import AgentFactory
from chat_orchestrator.platform.orchestration.loop import Orchestrator, RetryPolicy
from chat_orchestrator.platform.orchestration.streaming import StreamingAdapter
from chat_orchestrator.platform.providers.registry import ProviderRegistry
from chat_orchestrator.platform.server.health import HealthCheck, metadata
from chat_orchestrator.platform.server.middlewares import CorrelationIdMiddleware
from chat_orchestrator.platform.server.routes import root as root_router
from chat_orchestrator.platform.settings import Settings
from chat_orchestrator.platform.tools.builtin import register_builtin_tools
from chat_orchestrator.platform.tools.mcp import MCPToolSource
from chat_orchestrator.platform.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


async def build_chat_service(settings: Settings, tool_registry: ToolRegistry | None = None) -> ChatService:
    """Wire the tool registry, providers, agent factory and orchestrator.

    Args:
        settings: Application settings
        tool_registry: Pre-populated registry; built-in and MCP tools are loaded when omitted

    Returns:
        The ChatService serving the chat routes
    """
    if tool_registry is None:
        tool_registry = ToolRegistry()
        register_builtin_tools(tool_registry)
        await MCPToolSource.load_all(settings.mcp_servers, tool_registry)

    providers = ProviderRegistry(settings.providers)
    factory = AgentFactory(
        tool_registry,
        providers.create,
        capacity=settings.agent_cache.capacity,
        prompt_builder=build_system_prompt,
    )
    orchestration = settings.orchestration
    orchestrator = Orchestrator(
        tool_registry,
        retry_policy=RetryPolicy.from_settings(orchestration),
        compactor=Compactor(
            keep_recent=orchestration.compaction_keep_recent,
            max_summary_length=orchestration.summary_max_length,
        ),
        tool_failure_budget=orchestration.tool_failure_budget,
        confirmation_timeout=orchestration.confirmation_timeout,
    )
    metadata.metadata["tools"] = tool_registry.names()
    metadata.metadata["providers"] = {info.provider_id: info.configured for info in providers.list_providers()}
    return ChatService(
        factory=factory,
        orchestrator=orchestrator,
        streaming=StreamingAdapter(orchestrator),
        tool_registry=tool_registry,
        default_model=settings.default_model,
    )


def lifespan_closure(settings: Settings, tool_registry: ToolRegistry | None = None):
    @asynccontextmanager
    async def lifespan(app):
        """
        Use this to initialize all of the singleton dependencies and shared
        objects.  i.e. tools, providers, agent cache, bugsnag, etc
        """
        if settings.bugsnag.release_stage in ["production", "development"]:
            signal_handler = SignalHandler(app)
            signal_handler.register_signal_handler()
        bugsnag.initialize_bugsnag(
            settings.bugsnag.api_key,
            settings.bugsnag.release_stage,
        )

        # JSON in prod/dev, console in local
        configure_logging(
            settings.app_http.log_level,
            json_output=json_output_for(settings.bugsnag.release_stage, settings.app_http.log_json),
        )

        if settings.opentelemetry.enabled:
            initialize_tracing(settings.opentelemetry.host, settings.opentelemetry.port)

        app.state.settings = settings
        app.state.chat_service = await build_chat_service(settings, tool_registry)

        HealthCheck.enable()
        yield
        HealthCheck.disable()

    return lifespan


async def configuration_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "kind": type(exc).__name__},
    )


def create_app(settings: Settings, tool_registry: ToolRegistry | None = None):
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings instance
        tool_registry: Optional pre-populated tool registry (tests, embedding)

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(lifespan=lifespan_closure(settings, tool_registry))
    app.add_middleware(CorrelationIdMiddleware)
    app.middleware("http")(prometheus_middleware)
    app.add_exception_handler(ConfigurationError, configuration_error_handler)
    if settings.opentelemetry.enabled:
        FastAPIInstrumentor.instrument_app(app, excluded_urls=settings.opentelemetry.excluded_urls)

    # Platform routes (health, info, metrics)
    app.include_router(root_router)

    app.include_router(chat_router)

    return app


class SignalHandler:
    def __init__(self, app: FastAPI):
        self.app = app

    async def handle_exit(self):
        """
        Handle the exit of the server
        Do NOT use FastAPI @app.on_event("shutdown") or lifespan
        The problem with this method is, it is invoked *after* server
        stops accepting request, so it does not give us any time to
        drain requests in progress and DNS cache to refresh
        """
        HealthCheck.disable()
        for _ in range(20):
            logging.info("Shutting down...")
            await asyncio.sleep(1)

        # stop service successfully
        os.kill(os.getpid(), signal.SIGUSR1)

    def signal_handler(self):
        asyncio.create_task(self.handle_exit())

    def register_signal_handler(self) -> None:
        """
        Register signal handlers for the server
        """
        loop = asyncio.get_running_loop()
        for sig in [signal.SIGINT, signal.SIGTERM]:
            loop.add_signal_handler(sig, self.signal_handler)
