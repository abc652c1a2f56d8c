"""Agent construction and caching.

An Agent is the immutable binding of a provider, a model, a system prompt,
sampling parameters, an AgentConfig and a tool subset. Agents are cached by
a fingerprint of exactly those inputs so that equal requests share one Agent.
"""

import asyncio
import hashlib
import json
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import asdict, dataclass, field, replace
from datetime import UTC, datetime
from typing import TypeAlias

from chat_orchestrator.platform.agent.config import AgentConfig, AgentSpec
from chat_orchestrator.platform.agent.errors import CacheError, ConfigurationError
from chat_orchestrator.platform.agent.messages import ToolSpec
from chat_orchestrator.platform.agent.metrics import record_cache_event
from chat_orchestrator.platform.observability.logging import get_logger
from chat_orchestrator.platform.providers.protocol import ProviderAdapter
from chat_orchestrator.platform.tools.registry import ToolRegistry

logger = get_logger(__name__)

ProviderFactory: TypeAlias = Callable[[str], Awaitable[ProviderAdapter]]
PromptBuilder: TypeAlias = Callable[[AgentSpec, Sequence[ToolSpec]], str]


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(eq=False)
class Agent:
    """A configured, provider-backed agent.

    Agents are shared between concurrent runs and never change after
    construction, apart from the last-used timestamp.

    Attributes:
        fingerprint: Cache key derived from the agent's inputs
        spec: The (tool-resolved) specification the agent was built from
        provider: Bound provider adapter
        tools: Bound tool subset, sorted by name
        system_prompt: Effective system prompt
        created_at: Construction time
        last_used_at: Time of the last cache lookup that returned this agent
    """

    fingerprint: str
    spec: AgentSpec
    provider: ProviderAdapter
    tools: tuple[ToolSpec, ...]
    system_prompt: str
    created_at: datetime = field(default_factory=_now)
    last_used_at: datetime = field(default_factory=_now)

    @property
    def name(self) -> str:
        return f"{self.spec.provider_id}/{self.spec.model_id}"

    @property
    def config(self) -> AgentConfig:
        return self.spec.config

    @property
    def tool_names(self) -> frozenset[str]:
        return frozenset(tool.name for tool in self.tools)

    def touch(self) -> None:
        self.last_used_at = _now()


def fingerprint(spec: AgentSpec) -> str:
    """Compute the cache key of a tool-resolved AgentSpec.

    SHA-256 over canonical JSON of the provider, model, system prompt, sampling
    parameters, AgentConfig fields and the sorted tool names.
    """
    payload = {
        "provider_id": spec.provider_id,
        "model_id": spec.model_id,
        "system_prompt": spec.system_prompt,
        "sampling": asdict(spec.sampling),
        "config": spec.config.fingerprint_fields(),
        "tools": sorted(spec.tool_names or ()),
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()


def _default_prompt(spec: AgentSpec, tools: Sequence[ToolSpec]) -> str:
    return spec.system_prompt


@dataclass
class _BuildLock:
    """Construction lock for one fingerprint and the number of callers using it."""

    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class AgentFactory:
    """Builds agents and keeps the most recently used ones in an LRU cache.

    A cache hit never awaits. On a miss, construction for one fingerprint is
    serialized behind a per-fingerprint lock with a re-check, so concurrent
    first use of one spec constructs exactly one Agent. A lock lives only while
    callers are building or waiting, so failed builds leave nothing behind.
    Eviction only drops the cache record; runs holding the evicted Agent are
    unaffected.
    """

    def __init__(
        self,
        tool_registry: ToolRegistry,
        provider_factory: ProviderFactory,
        capacity: int = 32,
        prompt_builder: PromptBuilder | None = None,
    ) -> None:
        if capacity < 1:
            raise ConfigurationError(f"Agent cache capacity must be positive, got {capacity}")
        self._tool_registry = tool_registry
        self._provider_factory = provider_factory
        self._capacity = capacity
        self._prompt_builder = prompt_builder or _default_prompt
        self._agents: OrderedDict[str, Agent] = OrderedDict()
        self._locks: dict[str, _BuildLock] = {}

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, key: object) -> bool:
        return key in self._agents

    def get(self, key: str) -> Agent | None:
        return self._agents.get(key)

    def clear(self) -> None:
        self._agents.clear()

    def resolve(self, spec: AgentSpec) -> AgentSpec:
        """Pin the tool selection of a spec to concrete registered names.

        Raises:
            ConfigurationError: If the selection names an unregistered tool
        """
        if spec.tool_names is None:
            return replace(spec, tool_names=frozenset(self._tool_registry.names()))
        unknown = sorted(name for name in spec.tool_names if name not in self._tool_registry)
        if unknown:
            raise ConfigurationError(f"Unknown tools requested: {', '.join(unknown)}")
        return spec

    async def get_or_create(self, spec: AgentSpec) -> Agent:
        """Return the cached Agent for spec, constructing it on first use.

        Raises:
            ConfigurationError: Unknown tools, unknown provider or missing credential
            CacheError: If the cached Agent under the same fingerprint was built
                from a different spec
        """
        resolved = self.resolve(spec)
        key = fingerprint(resolved)

        agent = self._lookup(key, resolved)
        if agent is not None:
            return agent

        build_lock = self._locks.setdefault(key, _BuildLock())
        build_lock.users += 1
        try:
            async with build_lock.lock:
                agent = self._lookup(key, resolved)
                if agent is not None:
                    return agent
                return await self._build(key, resolved)
        finally:
            build_lock.users -= 1
            if not build_lock.users and self._locks.get(key) is build_lock:
                del self._locks[key]

    async def _build(self, key: str, resolved: AgentSpec) -> Agent:
        record_cache_event("miss")
        provider = await self._provider_factory(resolved.provider_id)
        tools = tuple(self._tool_registry.get(name) for name in sorted(resolved.tool_names or ()))
        agent = Agent(
            fingerprint=key,
            spec=resolved,
            provider=provider,
            tools=tools,
            system_prompt=self._prompt_builder(resolved, tools),
        )
        self._agents[key] = agent
        logger.info(
            "agent_created",
            agent=agent.name,
            fingerprint=key[:12],
            mode=str(resolved.config.mode),
            tools=len(tools),
        )
        self._evict()
        return agent

    def _lookup(self, key: str, spec: AgentSpec) -> Agent | None:
        agent = self._agents.get(key)
        if agent is None:
            return None
        if agent.spec != spec:
            raise CacheError(f"Fingerprint {key[:12]} is already bound to a different agent spec")
        self._agents.move_to_end(key)
        agent.touch()
        record_cache_event("hit")
        return agent

    def _evict(self) -> None:
        while len(self._agents) > self._capacity:
            key, agent = self._agents.popitem(last=False)
            record_cache_event("eviction")
            logger.info("agent_evicted", agent=agent.name, fingerprint=key[:12])
