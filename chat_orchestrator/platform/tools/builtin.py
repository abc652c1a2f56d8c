"""Built-in tools available to every deployment."""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from chat_orchestrator.platform.agent.messages import ToolSpec
from chat_orchestrator.platform.tools.registry import ToolRegistry

CURRENT_TIME_SPEC = ToolSpec(
    name="get_current_time",
    description="Get the current date and time",
    input_schema={
        "type": "object",
        "properties": {
            "timezone": {
                "type": "string",
                "description": "IANA timezone name, e.g. 'Europe/Dublin'. Defaults to UTC.",
            },
        },
    },
)

WEATHER_SPEC = ToolSpec(
    name="get_weather",
    description="Get weather information for a location",
    input_schema={
        "type": "object",
        "properties": {
            "location": {
                "type": "string",
                "description": "The location to get weather for",
            },
        },
        "required": ["location"],
    },
)


def get_current_time(timezone: str | None = None) -> str:
    """Return the current time as an ISO 8601 timestamp."""
    if not timezone:
        return datetime.now(UTC).isoformat()
    try:
        tz = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone '{timezone}'") from e
    return datetime.now(tz).isoformat()


async def get_weather(location: str) -> str:
    # Canned forecast; no weather backend is wired in
    return f"The weather in {location} is sunny and 75°F"


def register_builtin_tools(registry: ToolRegistry) -> None:
    registry.register(CURRENT_TIME_SPEC, get_current_time)
    registry.register(WEATHER_SPEC, get_weather)
