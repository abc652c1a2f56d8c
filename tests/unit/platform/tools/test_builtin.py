"""Unit tests for the built-in tools."""

from datetime import datetime

import pytest

from chat_orchestrator.platform.tools.builtin import get_current_time, get_weather, register_builtin_tools
from chat_orchestrator.platform.tools.registry import ToolRegistry


class TestGetCurrentTime:
    def test_defaults_to_utc(self):
        value = datetime.fromisoformat(get_current_time())
        assert value.utcoffset().total_seconds() == 0

    def test_named_timezone(self):
        value = datetime.fromisoformat(get_current_time("Asia/Tokyo"))
        assert value.utcoffset().total_seconds() == 9 * 3600

    def test_unknown_timezone(self):
        with pytest.raises(ValueError, match="Unknown timezone"):
            get_current_time("Mars/Olympus_Mons")


class TestGetWeather:
    async def test_canned_forecast(self):
        assert await get_weather("Dublin") == "The weather in Dublin is sunny and 75°F"


class TestRegisterBuiltinTools:
    def test_registers_both_tools(self):
        registry = ToolRegistry()
        register_builtin_tools(registry)
        assert registry.names() == ["get_current_time", "get_weather"]
        assert not any(spec.is_extension for spec in registry.list_specs())
