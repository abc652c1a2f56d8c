"""Chat service: turns chat requests into agent runs."""

from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any

from chat_orchestrator.agents.chat.presets import PRESETS, AgentPreset
from chat_orchestrator.agents.chat.schemas import (
    AgentPresetInfo,
    ChatRequest,
    ChatResponse,
    ConfirmationPayload,
    ConfirmationResponse,
    ToolInfo,
)
from chat_orchestrator.platform.agent.config import AgentConfig, AgentSpec, SamplingParams
from chat_orchestrator.platform.agent.errors import ConfigurationError, OrchestrationError
from chat_orchestrator.platform.agent.messages import Conversation, ResponseChunk
from chat_orchestrator.platform.observability.logging import get_logger
from chat_orchestrator.platform.orchestration.factory import AgentFactory
from chat_orchestrator.platform.orchestration.loop import Orchestrator
from chat_orchestrator.platform.orchestration.streaming import StreamingAdapter, stream_failure
from chat_orchestrator.platform.providers.registry import parse_model
from chat_orchestrator.platform.tools.registry import ToolRegistry

logger = get_logger(__name__)


class ChatService:
    """Front door for chat requests.

    Builds (or reuses) the Agent for a request and runs it, either to a
    single response or as a chunk stream.
    """

    def __init__(
        self,
        factory: AgentFactory,
        orchestrator: Orchestrator,
        streaming: StreamingAdapter,
        tool_registry: ToolRegistry,
        default_model: str,
    ) -> None:
        self._factory = factory
        self._orchestrator = orchestrator
        self._streaming = streaming
        self._tool_registry = tool_registry
        self._default_model = default_model

    def build_spec(self, request: ChatRequest) -> AgentSpec:
        """Combine the request with its preset into an AgentSpec.

        Raises:
            ConfigurationError: Unknown agent type, malformed model or invalid config
        """
        preset: AgentPreset | None = None
        if request.agent_type is not None:
            preset = PRESETS.get(request.agent_type)
            if preset is None:
                raise ConfigurationError(f"Unknown agent type '{request.agent_type}'")

        provider_id, model_id = parse_model(request.model or self._default_model)

        if request.agent_config is not None:
            config = request.agent_config.to_config()
        else:
            config = preset.config if preset else AgentConfig()

        system_prompt = request.system_prompt
        if system_prompt is None:
            system_prompt = preset.system_prompt if preset else ""

        temperature = request.temperature
        if temperature is None and preset is not None:
            temperature = preset.temperature

        return AgentSpec(
            provider_id=provider_id,
            model_id=model_id,
            system_prompt=system_prompt,
            sampling=SamplingParams(
                temperature=temperature,
                max_tokens=request.max_tokens,
                top_p=request.top_p,
                frequency_penalty=request.frequency_penalty,
                presence_penalty=request.presence_penalty,
            ),
            config=config,
            tool_names=frozenset(request.tools) if request.tools is not None else None,
        )

    @staticmethod
    def _conversation(request: ChatRequest) -> Conversation:
        return Conversation(message.to_message() for message in request.messages)

    async def send(self, request: ChatRequest) -> ChatResponse:
        """Run the request to completion.

        Raises:
            ConfigurationError: If no agent can be built for the request, or the
                agent needs tool confirmations but the caller chose no run_id
                to confirm them under
        """
        spec = self.build_spec(request)
        if spec.config.require_confirmation and spec.config.uses_tools and "run_id" not in request.model_fields_set:
            raise ConfigurationError("run_id is required when tool calls need confirmation")
        agent = await self._factory.get_or_create(spec)
        result = await self._orchestrator.run(agent, self._conversation(request), run_id=request.run_id)
        return ChatResponse.from_result(result, model=agent.name)

    async def stream(self, request: ChatRequest) -> AsyncIterator[ResponseChunk]:
        """Run the request as a chunk stream.

        Errors raised while building the agent are reported in-band as an
        Error chunk followed by Done.
        """
        try:
            agent = await self._factory.get_or_create(self.build_spec(request))
        except OrchestrationError as e:
            logger.warning("agent_build_failed", run_id=request.run_id, error=str(e))
            for chunk in stream_failure(e, request.run_id):
                yield chunk
            return

        chunks = self._streaming.stream(agent, self._conversation(request), run_id=request.run_id)
        async with aclosing(chunks):
            async for chunk in chunks:
                yield chunk

    def list_tools(self) -> list[ToolInfo]:
        return [ToolInfo.from_spec(spec) for spec in self._tool_registry.list_specs()]

    def list_agent_types(self) -> list[AgentPresetInfo]:
        return [AgentPresetInfo.from_preset(preset) for preset in PRESETS.values()]

    def runtime_info(self) -> dict[str, Any]:
        return {
            "cached_agents": len(self._factory),
            "pending_confirmations": len(self._orchestrator.confirmations.pending_runs()),
        }

    def confirm(self, run_id: str, payload: ConfirmationPayload) -> ConfirmationResponse:
        """Approve or reject the tool calls a run is waiting on.

        Raises:
            ConfirmationNotPending: If the run is not waiting for a decision
        """
        broker = self._orchestrator.confirmations
        if payload.approve:
            pending = broker.approve(run_id, payload.call_ids)
        else:
            pending = broker.reject(run_id, payload.reason or "Rejected by user")
        if payload.approve:
            approved = pending.call_ids if payload.call_ids is None else pending.call_ids & set(payload.call_ids)
        else:
            approved = frozenset()
        logger.info("tool_confirmation", run_id=run_id, approved=len(approved), total=len(pending.call_ids))
        return ConfirmationResponse(
            run_id=run_id,
            approved=sorted(approved),
            rejected=sorted(pending.call_ids - approved),
        )
