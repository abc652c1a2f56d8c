"""Named tool registry with schema validation.

Tools are registered with a ToolSpec and an implementation. The JSON Schema
of each tool is compiled into a Pydantic model once at registration time and
used to validate every invocation before the implementation runs.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, ValidationError, create_model

from chat_orchestrator.platform.agent.errors import (
    ConfigurationError,
    DuplicateTool,
    InvalidArguments,
    ToolError,
    ToolExecutionError,
    UnknownTool,
)
from chat_orchestrator.platform.agent.messages import ToolCallRequest, ToolCallResult, ToolSpec
from chat_orchestrator.platform.agent.metrics import ToolMetricsLabels, collect_tool_metrics

logger = logging.getLogger(__name__)

ToolImplementation: TypeAlias = Callable[..., Any] | Callable[..., Awaitable[Any]]

_JSON_TYPES: dict[str, type] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "object": dict,
    "array": list,
}


def _json_type_to_python(json_type: Any) -> Any:
    """Convert a JSON Schema type (or list of types) to a Python annotation.

    Unknown or missing types map to Any so the value passes through unchanged.
    """
    if isinstance(json_type, list):
        types = [_JSON_TYPES.get(t, Any) for t in json_type if t != "null"]
        annotation = types[0] if len(types) == 1 else Any
        if "null" in json_type and annotation is not Any:
            return annotation | None
        return annotation
    return _JSON_TYPES.get(json_type, Any)


def build_args_model(name: str, schema: dict[str, Any]) -> type[BaseModel]:
    """Build a Pydantic model from a tool's JSON Schema.

    Args:
        name: Tool name, used to name the generated model
        schema: JSON Schema describing an object

    Returns:
        Dynamically created Pydantic model class

    Raises:
        ConfigurationError: If the schema does not describe an object
    """
    if not isinstance(schema, dict):
        raise ConfigurationError(
            f"Invalid input schema for tool '{name}': expected an object, got {type(schema).__name__}"
        )
    if schema.get("type", "object") != "object":
        raise ConfigurationError(
            f"Invalid input schema for tool '{name}': top-level type must be 'object'"
        )
    properties = schema.get("properties", {})
    if not isinstance(properties, dict):
        raise ConfigurationError(f"Invalid input schema for tool '{name}': 'properties' must be an object")
    required = set(schema.get("required", []))
    unknown_required = required - properties.keys()
    if unknown_required:
        raise ConfigurationError(
            f"Invalid input schema for tool '{name}': required fields {sorted(unknown_required)} "
            "are not declared in 'properties'"
        )

    fields: dict[str, Any] = {}
    for field_name, info in properties.items():
        if not isinstance(info, dict):
            raise ConfigurationError(
                f"Invalid input schema for tool '{name}': property '{field_name}' must be an object"
            )
        field_type = _json_type_to_python(info.get("type"))
        description = info.get("description", "")
        if field_name in required:
            fields[field_name] = (field_type, Field(description=description))
        else:
            fields[field_name] = (
                field_type | None if field_type is not Any else Any,
                Field(default=info.get("default"), description=description),
            )

    extra = "forbid" if schema.get("additionalProperties") is False else "allow"
    model_name = "".join(part.title() for part in name.replace("-", "_").split("_")) + "Args"
    return create_model(model_name, __config__=ConfigDict(extra=extra), **fields)  # type: ignore


def _takes_any_keyword(implementation: ToolImplementation) -> bool:
    try:
        parameters = inspect.signature(implementation).parameters.values()
    except (TypeError, ValueError):
        return True
    return any(parameter.kind is inspect.Parameter.VAR_KEYWORD for parameter in parameters)


@dataclass(frozen=True)
class RegisteredTool:
    """A tool spec bound to its implementation and compiled argument model."""

    spec: ToolSpec
    implementation: ToolImplementation
    args_model: type[BaseModel]
    accepts_extra: bool = False


class ToolRegistry:
    """Registry of callable tools, keyed by unique name.

    Registration happens at startup; lookups and invocations are safe to run
    concurrently from many orchestration runs.
    """

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    def register(
        self,
        spec: ToolSpec,
        implementation: ToolImplementation,
        *,
        replace: bool = False,
    ) -> None:
        """Register a tool.

        Args:
            spec: Tool description and input schema
            implementation: Sync or async callable taking the arguments as keywords
            replace: Overwrite an existing registration with the same name

        Raises:
            DuplicateTool: If the name is taken and replace is False
            ConfigurationError: If the name is empty or the schema is invalid
        """
        if not spec.name:
            raise ConfigurationError("Tool name must not be empty")
        if spec.name in self._tools and not replace:
            raise DuplicateTool(spec.name)
        args_model = build_args_model(spec.name, spec.input_schema)
        self._tools[spec.name] = RegisteredTool(spec, implementation, args_model, _takes_any_keyword(implementation))
        logger.debug("Registered tool '%s' (extension=%s)", spec.name, spec.is_extension)

    def unregister(self, name: str) -> None:
        if self._tools.pop(name, None) is None:
            raise UnknownTool(name)

    def get(self, name: str) -> ToolSpec:
        try:
            return self._tools[name].spec
        except KeyError:
            raise UnknownTool(name) from None

    def names(self) -> list[str]:
        return sorted(self._tools)

    def list_specs(
        self,
        readonly_only: bool = False,
        readonly_tools: Iterable[str] = (),
    ) -> list[ToolSpec]:
        """List registered tool specs sorted by name.

        Args:
            readonly_only: Only return tools named in readonly_tools
            readonly_tools: Names of tools considered read-only
        """
        specs = [self._tools[name].spec for name in sorted(self._tools)]
        if readonly_only:
            allowed = set(readonly_tools)
            specs = [spec for spec in specs if spec.name in allowed]
        return specs

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    async def invoke(
        self,
        request: ToolCallRequest,
        *,
        timeout: float | None = None,
        agent: str = "",
    ) -> ToolCallResult:
        """Invoke a tool and fold any tool error into a failure result.

        Args:
            request: The tool call requested by the model
            timeout: Optional time limit in seconds for the implementation
            agent: Agent label for metrics

        Returns:
            A successful or failed ToolCallResult for the request
        """
        labels = ToolMetricsLabels(agent=agent, tool_name=request.name)
        try:
            async with collect_tool_metrics(labels):
                output = await self._execute(request, timeout)
        except ToolError as e:
            logger.info("Tool '%s' failed: %s", request.name, e)
            return ToolCallResult.failure(request, e)
        return ToolCallResult.success(request, output)

    async def _execute(self, request: ToolCallRequest, timeout: float | None) -> Any:
        try:
            tool = self._tools[request.name]
        except KeyError:
            raise UnknownTool(request.name) from None

        try:
            validated = tool.args_model.model_validate(request.arguments or {})
        except ValidationError as e:
            raise InvalidArguments(request.name, f"Invalid arguments for '{request.name}': {e}") from e
        kwargs = validated.model_dump(exclude_unset=True)
        if not tool.accepts_extra:
            # undeclared arguments only reach implementations taking **kwargs
            dropped = kwargs.keys() - tool.args_model.model_fields.keys()
            if dropped:
                logger.debug("Dropping undeclared arguments for '%s': %s", request.name, sorted(dropped))
                kwargs = {key: value for key, value in kwargs.items() if key not in dropped}

        try:
            async with asyncio.timeout(timeout):
                return await self._call(tool.implementation, kwargs)
        except ToolError:
            raise
        except TimeoutError as e:
            raise ToolExecutionError(request.name, f"Tool '{request.name}' timed out after {timeout}s") from e
        except Exception as e:
            raise ToolExecutionError(request.name, f"Tool '{request.name}' raised: {e}") from e

    @staticmethod
    async def _call(implementation: ToolImplementation, kwargs: dict[str, Any]) -> Any:
        if inspect.iscoroutinefunction(implementation):
            return await implementation(**kwargs)
        result = await asyncio.to_thread(implementation, **kwargs)
        if inspect.isawaitable(result):
            return await result
        return result
