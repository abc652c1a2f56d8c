"""Shared test fixtures.

Provides a tool registry with the built-in tools plus a few test tools,
an agent builder backed by the MockProvider and an orchestrator without
retry delays.
"""

from collections.abc import Callable
from typing import Any

import pytest

from chat_orchestrator.agents.chat.prompt import build_system_prompt
from chat_orchestrator.agents.chat.service import ChatService
from chat_orchestrator.platform.agent.config import AgentConfig, AgentSpec
from chat_orchestrator.platform.agent.messages import ToolSpec
from chat_orchestrator.platform.orchestration.compaction import Compactor
from chat_orchestrator.platform.orchestration.factory import Agent, AgentFactory, fingerprint
from chat_orchestrator.platform.orchestration.loop import Orchestrator, RetryPolicy
from chat_orchestrator.platform.orchestration.streaming import StreamingAdapter
from chat_orchestrator.platform.providers.mock import MockProvider
from chat_orchestrator.platform.providers.registry import ProviderRegistry
from chat_orchestrator.platform.settings import ProvidersSettings
from chat_orchestrator.platform.tools.builtin import register_builtin_tools
from chat_orchestrator.platform.tools.registry import ToolRegistry

ADD_SPEC = ToolSpec(
    name="add",
    description="Add two integers",
    input_schema={
        "type": "object",
        "properties": {
            "a": {"type": "integer"},
            "b": {"type": "integer"},
        },
        "required": ["a", "b"],
        "additionalProperties": False,
    },
)

EXPLODE_SPEC = ToolSpec(name="explode", description="Always fails")

LOOKUP_SPEC = ToolSpec(
    name="mcp_lookup",
    description="Look up a record on an extension server",
    input_schema={
        "type": "object",
        "properties": {"key": {"type": "string"}},
    },
    is_extension=True,
)


def add(a: int, b: int) -> int:
    return a + b


def explode() -> None:
    raise RuntimeError("boom")


class FakeExtension:
    """Fake extension tool implementation that records its calls."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    async def __call__(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(kwargs)
        return {"key": kwargs.get("key"), "value": "found"}


@pytest.fixture
def fake_extension() -> FakeExtension:
    return FakeExtension()


@pytest.fixture
def tool_registry(fake_extension: FakeExtension) -> ToolRegistry:
    """Registry with built-in tools, add, explode and one extension tool."""
    registry = ToolRegistry()
    register_builtin_tools(registry)
    registry.register(ADD_SPEC, add)
    registry.register(EXPLODE_SPEC, explode)
    registry.register(LOOKUP_SPEC, fake_extension)
    return registry


@pytest.fixture
def make_agent(tool_registry: ToolRegistry) -> Callable[..., Agent]:
    """Build an Agent directly, bypassing the factory cache.

    Example:
        agent = make_agent(MockProvider(), mode=AgentMode.CHAT)
    """

    def build(
        provider: MockProvider | None = None,
        *,
        tool_names: set[str] | None = None,
        system_prompt: str = "",
        **config: Any,
    ) -> Agent:
        names = tool_registry.names() if tool_names is None else tool_names
        spec = AgentSpec(
            provider_id="mock",
            model_id="echo",
            system_prompt=system_prompt,
            config=AgentConfig(**config),
            tool_names=frozenset(names),
        )
        return Agent(
            fingerprint=fingerprint(spec),
            spec=spec,
            provider=provider or MockProvider(),
            tools=tuple(tool_registry.get(name) for name in sorted(names)),
            system_prompt=system_prompt,
        )

    return build


@pytest.fixture
def retry_policy() -> RetryPolicy:
    """Retry policy with three attempts and no backoff."""
    return RetryPolicy(max_attempts=3, backoff_initial=0, backoff_max=0)


@pytest.fixture
def orchestrator(tool_registry: ToolRegistry, retry_policy: RetryPolicy) -> Orchestrator:
    return Orchestrator(tool_registry, retry_policy=retry_policy, compactor=Compactor())


@pytest.fixture
def chat_service(tool_registry: ToolRegistry, orchestrator: Orchestrator) -> ChatService:
    """ChatService over the mock provider; no provider credentials configured."""
    providers = ProviderRegistry(ProvidersSettings())
    factory = AgentFactory(tool_registry, providers.create, capacity=8, prompt_builder=build_system_prompt)
    return ChatService(
        factory=factory,
        orchestrator=orchestrator,
        streaming=StreamingAdapter(orchestrator),
        tool_registry=tool_registry,
        default_model="mock/echo",
    )
