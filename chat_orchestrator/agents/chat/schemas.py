"""Request and response models of the chat API."""

import uuid
from typing import Any, Literal, Self

from pydantic import BaseModel, Field

from chat_orchestrator.agents.chat.presets import AgentPreset
from chat_orchestrator.platform.agent.config import AgentConfig, AgentMode
from chat_orchestrator.platform.agent.messages import ErrorReport, Message, Role, RunResult, ToolSpec


class ChatMessagePayload(BaseModel):
    """A conversation message sent by the front-end."""

    role: Literal["system", "user", "assistant"] = Field(..., description="Message author")
    content: str = Field(..., max_length=100_000, description="Message text")

    def to_message(self) -> Message:
        return Message(role=Role(self.role), content=self.content)


class ToolCallPayload(BaseModel):
    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ChatMessageOut(BaseModel):
    role: str
    content: str
    tool_calls: list[ToolCallPayload] = Field(default_factory=list)
    reasoning: str | None = None

    @classmethod
    def from_message(cls, message: Message) -> Self:
        return cls(
            role=str(message.role),
            content=message.content,
            tool_calls=[
                ToolCallPayload(id=call.id, name=call.name, arguments=call.arguments)
                for call in message.tool_calls
            ],
            reasoning=message.reasoning,
        )


class AgentConfigPayload(BaseModel):
    """Agent behavior settings; defaults match AgentConfig."""

    mode: AgentMode = AgentMode.AGENT
    max_iterations: int = Field(10, ge=1, le=100)
    require_confirmation: bool = False
    readonly_tools: list[str] = Field(default_factory=list)
    enable_tool_inspection: bool = True
    enable_auto_compact: bool = True
    compact_threshold: float = Field(0.8, ge=0.0, le=1.0)
    max_turns_without_tools: int = Field(3, ge=1)
    enable_autopilot: bool = False
    enable_extensions: bool = True
    extension_timeout: float = Field(30.0, gt=0)

    def to_config(self) -> AgentConfig:
        return AgentConfig(**(self.model_dump() | {"readonly_tools": frozenset(self.readonly_tools)}))

    @classmethod
    def from_config(cls, config: AgentConfig) -> Self:
        return cls(
            mode=config.mode,
            max_iterations=config.max_iterations,
            require_confirmation=config.require_confirmation,
            readonly_tools=sorted(config.readonly_tools),
            enable_tool_inspection=config.enable_tool_inspection,
            enable_auto_compact=config.enable_auto_compact,
            compact_threshold=config.compact_threshold,
            max_turns_without_tools=config.max_turns_without_tools,
            enable_autopilot=config.enable_autopilot,
            enable_extensions=config.enable_extensions,
            extension_timeout=config.extension_timeout,
        )


class ChatRequest(BaseModel):
    """A chat turn.

    Attributes:
        messages: Conversation so far, oldest first
        model: "provider/model" identifier; the service default when omitted
        agent_type: Preset supplying defaults for prompt, temperature and config
        system_prompt: Overrides the preset prompt
        stream: Answer with server-sent events instead of JSON
        agent_config: Overrides the preset config
        tools: Tool names to bind; all registered tools when omitted
        run_id: Identifier for the run, used for tool confirmations; non-streaming
            requests that require confirmation must supply it
    """

    messages: list[ChatMessagePayload] = Field(..., min_length=1)
    model: str | None = Field(None, description="Model as 'provider/model'")
    agent_type: str | None = None
    system_prompt: str | None = Field(None, max_length=20_000)
    temperature: float | None = Field(None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(None, ge=1)
    top_p: float | None = Field(None, ge=0.0, le=1.0)
    frequency_penalty: float | None = Field(None, ge=-2.0, le=2.0)
    presence_penalty: float | None = Field(None, ge=-2.0, le=2.0)
    stream: bool = False
    agent_config: AgentConfigPayload | None = None
    tools: list[str] | None = None
    run_id: str = Field(default_factory=lambda: uuid.uuid4().hex, min_length=1, max_length=128)


class ErrorPayload(BaseModel):
    kind: str
    message: str
    retryable: bool = False
    provider_id: str | None = None
    tool_name: str | None = None
    last_successful_turn: int = -1

    @classmethod
    def from_report(cls, report: ErrorReport) -> Self:
        return cls(
            kind=report.kind,
            message=report.message,
            retryable=report.retryable,
            provider_id=report.provider_id,
            tool_name=report.tool_name,
            last_successful_turn=report.last_successful_turn,
        )


class ChatResponse(BaseModel):
    message: ChatMessageOut | None
    state: str
    iterations: int
    run_id: str
    model: str
    truncation_reason: str | None = None
    error: ErrorPayload | None = None

    @classmethod
    def from_result(cls, result: RunResult, model: str) -> Self:
        return cls(
            message=ChatMessageOut.from_message(result.message) if result.message else None,
            state=str(result.state),
            iterations=result.iterations,
            run_id=result.run_id,
            model=model,
            truncation_reason=result.truncation_reason,
            error=ErrorPayload.from_report(result.error) if result.error else None,
        )


class ToolInfo(BaseModel):
    name: str
    description: str
    input_schema: dict[str, Any]
    is_extension: bool

    @classmethod
    def from_spec(cls, spec: ToolSpec) -> Self:
        return cls(
            name=spec.name,
            description=spec.description,
            input_schema=spec.input_schema,
            is_extension=spec.is_extension,
        )


class AgentPresetInfo(BaseModel):
    name: str
    description: str
    system_prompt: str
    temperature: float
    config: AgentConfigPayload

    @classmethod
    def from_preset(cls, preset: AgentPreset) -> Self:
        return cls(
            name=preset.name,
            description=preset.description,
            system_prompt=preset.system_prompt,
            temperature=preset.temperature,
            config=AgentConfigPayload.from_config(preset.config),
        )


class ConfirmationPayload(BaseModel):
    """Decision for the tool calls a run is waiting on.

    Attributes:
        approve: Approve (True) or reject (False) the calls
        call_ids: Approve only these calls; the others are rejected
        reason: Reason reported to the model for rejected calls
    """

    approve: bool = True
    call_ids: list[str] | None = None
    reason: str | None = Field(None, max_length=1000)


class ConfirmationResponse(BaseModel):
    run_id: str
    approved: list[str]
    rejected: list[str]
