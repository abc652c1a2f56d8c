"""LiteLLM-backed provider adapters.

LiteLLM speaks the wire protocol of each vendor; this module converts between
the service's message types and LiteLLM's OpenAI-shaped requests and
responses, and maps LiteLLM exceptions onto the ProviderError family.
"""

import json
import logging
import uuid
from collections.abc import AsyncIterator, Sequence
from typing import Any

import litellm

from chat_orchestrator.platform.agent.config import SamplingParams
from chat_orchestrator.platform.agent.errors import (
    ProviderError,
    ProviderRateLimited,
    ProviderRejected,
    ProviderTimeout,
    ProviderUnavailable,
)
from chat_orchestrator.platform.agent.messages import Message, Role, ToolCallRequest, ToolSpec
from chat_orchestrator.platform.agent.metrics import record_agent_tokens
from chat_orchestrator.platform.providers.protocol import ProviderFragment

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_WINDOW = 8192


# =============================================================================
# Wire conversion
# =============================================================================


def to_wire_messages(messages: Sequence[Message]) -> list[dict[str, Any]]:
    """Convert messages to OpenAI-style chat messages.

    A tool message expands into one wire message per result, keyed by the
    originating tool call id.
    """
    wire: list[dict[str, Any]] = []
    for message in messages:
        if message.role is Role.TOOL:
            for result in message.tool_results:
                wire.append(
                    {"role": "tool", "tool_call_id": result.call_id, "content": result.as_text()}
                )
        elif message.role is Role.ASSISTANT and message.tool_calls:
            wire.append(
                {
                    "role": "assistant",
                    "content": message.content or None,
                    "tool_calls": [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
                        }
                        for call in message.tool_calls
                    ],
                }
            )
        else:
            wire.append({"role": str(message.role), "content": message.content})
    return wire


def to_wire_tools(tools: Sequence[ToolSpec]) -> list[dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.input_schema,
            },
        }
        for tool in tools
    ]


def _parse_arguments(name: str, raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        arguments = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Model sent malformed arguments for tool '%s': %r", name, raw)
        return {}
    return arguments if isinstance(arguments, dict) else {}


def parse_message(wire_message: Any) -> Message:
    """Convert a LiteLLM response message into an assistant Message."""
    tool_calls = [
        ToolCallRequest(
            id=call.id or f"call_{uuid.uuid4().hex[:12]}",
            name=call.function.name,
            arguments=_parse_arguments(call.function.name, call.function.arguments),
        )
        for call in getattr(wire_message, "tool_calls", None) or []
    ]
    return Message.assistant(
        content=getattr(wire_message, "content", None) or "",
        tool_calls=tool_calls,
        reasoning=getattr(wire_message, "reasoning_content", None) or None,
    )


class StreamAssembler:
    """Accumulates streamed deltas into one assistant message.

    Tool call deltas arrive split across chunks and are stitched together by
    their index.
    """

    def __init__(self) -> None:
        self.content: list[str] = []
        self.reasoning: list[str] = []
        self._calls: dict[int, dict[str, str]] = {}

    def add_tool_call_delta(self, delta: Any) -> None:
        index = getattr(delta, "index", None) or 0
        call = self._calls.setdefault(index, {"id": "", "name": "", "arguments": ""})
        if getattr(delta, "id", None):
            call["id"] = delta.id
        function = getattr(delta, "function", None)
        if function is not None:
            if getattr(function, "name", None):
                call["name"] = function.name
            if getattr(function, "arguments", None):
                call["arguments"] += function.arguments

    def message(self) -> Message:
        tool_calls = [
            ToolCallRequest(
                id=call["id"] or f"call_{uuid.uuid4().hex[:12]}",
                name=call["name"],
                arguments=_parse_arguments(call["name"], call["arguments"]),
            )
            for _, call in sorted(self._calls.items())
        ]
        return Message.assistant(
            content="".join(self.content),
            tool_calls=tool_calls,
            reasoning="".join(self.reasoning) or None,
        )


# =============================================================================
# Error mapping
# =============================================================================


def _retry_after(error: Exception) -> float | None:
    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None) or {}
    try:
        return float(headers.get("retry-after"))
    except (TypeError, ValueError):
        return None


def map_error(provider_id: str, error: Exception) -> ProviderError:
    """Map a LiteLLM (or transport) exception onto the ProviderError family."""
    if isinstance(error, ProviderError):
        return error
    message = str(error)
    # Timeout subclasses APIConnectionError, so it is checked first
    if isinstance(error, (litellm.Timeout, TimeoutError)):
        return ProviderTimeout(provider_id, message)
    if isinstance(error, litellm.RateLimitError):
        return ProviderRateLimited(provider_id, message, retry_after=_retry_after(error))
    if isinstance(
        error,
        (litellm.BadRequestError, litellm.NotFoundError, litellm.UnprocessableEntityError),
    ):
        return ProviderRejected(provider_id, message)
    if isinstance(
        error,
        (
            litellm.AuthenticationError,
            litellm.APIConnectionError,
            litellm.ServiceUnavailableError,
            litellm.InternalServerError,
            litellm.APIError,
        ),
    ):
        return ProviderUnavailable(provider_id, message)
    return ProviderUnavailable(provider_id, f"{type(error).__name__}: {message}")


# =============================================================================
# Providers
# =============================================================================


class LiteLLMProvider:
    """Provider adapter calling ``litellm.acompletion``.

    Subclasses pick the LiteLLM model prefix that selects the vendor protocol.
    """

    provider_id: str = ""
    model_prefix: str = ""
    requires_api_key: bool = True
    default_api_base: str | None = None

    def __init__(self, api_key: str | None = None, api_base: str | None = None, timeout: float = 120.0) -> None:
        self._api_key = api_key
        self._api_base = api_base or self.default_api_base
        self._timeout = timeout
        self._context_windows: dict[str, int] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(api_base={self._api_base!r}, api_key=<obfuscated>)"

    def litellm_model(self, model_id: str) -> str:
        return f"{self.model_prefix}/{model_id}"

    def _request(
        self,
        model_id: str,
        messages: Sequence[Message],
        tools: Sequence[ToolSpec],
        sampling: SamplingParams,
    ) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": self.litellm_model(model_id),
            "messages": to_wire_messages(messages),
            "timeout": self._timeout,
            "drop_params": True,
            **sampling.as_kwargs(),
        }
        if self._api_key:
            request["api_key"] = self._api_key
        if self._api_base:
            request["api_base"] = self._api_base
        if tools:
            request["tools"] = to_wire_tools(tools)
        return request

    def _record_usage(self, model_id: str, usage: Any) -> None:
        if usage is None:
            return
        record_agent_tokens(
            self.provider_id,
            model_id,
            getattr(usage, "prompt_tokens", 0) or 0,
            getattr(usage, "completion_tokens", 0) or 0,
        )

    async def complete(
        self,
        model_id: str,
        messages: Sequence[Message],
        tools: Sequence[ToolSpec],
        sampling: SamplingParams,
    ) -> Message:
        try:
            response = await litellm.acompletion(**self._request(model_id, messages, tools, sampling))
        except Exception as e:
            raise map_error(self.provider_id, e) from e
        self._record_usage(model_id, getattr(response, "usage", None))
        if not response.choices:
            raise ProviderRejected(self.provider_id, "Response contained no choices")
        return parse_message(response.choices[0].message)

    async def stream(
        self,
        model_id: str,
        messages: Sequence[Message],
        tools: Sequence[ToolSpec],
        sampling: SamplingParams,
    ) -> AsyncIterator[ProviderFragment]:
        request = self._request(model_id, messages, tools, sampling)
        request["stream"] = True
        request["stream_options"] = {"include_usage": True}
        try:
            response = await litellm.acompletion(**request)
        except Exception as e:
            raise map_error(self.provider_id, e) from e

        assembler = StreamAssembler()
        try:
            async for chunk in response:
                self._record_usage(model_id, getattr(chunk, "usage", None))
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                for call_delta in getattr(delta, "tool_calls", None) or []:
                    assembler.add_tool_call_delta(call_delta)
                text = getattr(delta, "content", None) or ""
                reasoning = getattr(delta, "reasoning_content", None) or ""
                if text:
                    assembler.content.append(text)
                if reasoning:
                    assembler.reasoning.append(reasoning)
                if text or reasoning:
                    yield ProviderFragment(delta=text, reasoning=reasoning)
        except Exception as e:
            raise map_error(self.provider_id, e) from e
        finally:
            await _close_stream(response)

        yield ProviderFragment(done=True, message=assembler.message())

    async def context_window(self, model_id: str) -> int:
        """Resolve the model's input token limit.

        Resolution order: cached value, LiteLLM's model database (prefixed and
        bare model id), then DEFAULT_CONTEXT_WINDOW.
        """
        if model_id in self._context_windows:
            return self._context_windows[model_id]
        window = DEFAULT_CONTEXT_WINDOW
        for candidate in (self.litellm_model(model_id), model_id):
            try:
                info = litellm.get_model_info(candidate)
            except Exception:
                continue
            found = info.get("max_input_tokens") or info.get("max_tokens")
            if found:
                window = int(found)
                break
        self._context_windows[model_id] = window
        return window


async def _close_stream(response: Any) -> None:
    """Release the HTTP response behind a LiteLLM stream wrapper."""
    for target in (response, getattr(response, "completion_stream", None)):
        close = getattr(target, "aclose", None) or getattr(target, "close", None)
        if close is None:
            continue
        try:
            result = close()
            if hasattr(result, "__await__"):
                await result
        except Exception as e:
            logger.debug("Error while closing provider stream: %s", e)
        return


class OpenAICompatibleProvider(LiteLLMProvider):
    """OpenAI and OpenAI-compatible endpoints (set api_base for gateways)."""

    provider_id = "openai"
    model_prefix = "openai"


class AnthropicCompatibleProvider(LiteLLMProvider):
    """Anthropic Messages API."""

    provider_id = "anthropic"
    model_prefix = "anthropic"


class DeepSeekProvider(LiteLLMProvider):
    provider_id = "deepseek"
    model_prefix = "deepseek"


class OpenRouterProvider(LiteLLMProvider):
    """OpenRouter model marketplace; model ids keep their vendor path."""

    provider_id = "openrouter"
    model_prefix = "openrouter"


class OllamaProvider(LiteLLMProvider):
    """Local Ollama server. Needs no API key; api_base points at the server."""

    provider_id = "ollama"
    model_prefix = "ollama_chat"
    requires_api_key = False
    default_api_base = "http://localhost:11434"
