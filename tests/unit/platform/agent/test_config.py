"""Unit tests for agent configuration dataclasses."""

import pytest

from chat_orchestrator.platform.agent.config import AgentConfig, AgentMode, AgentSpec, MCPConfig, SamplingParams
from chat_orchestrator.platform.agent.errors import ConfigurationError


class TestAgentConfig:
    """Tests for AgentConfig defaults and validation."""

    def test_defaults(self):
        config = AgentConfig()
        assert config.mode is AgentMode.AGENT
        assert config.max_iterations == 10
        assert config.require_confirmation is False
        assert config.readonly_tools == frozenset()
        assert config.compact_threshold == 0.8
        assert config.max_turns_without_tools == 3
        assert config.enable_autopilot is False
        assert config.enable_extensions is True
        assert config.extension_timeout == 30.0

    def test_is_frozen(self):
        """AgentConfig is immutable."""
        config = AgentConfig()
        with pytest.raises(AttributeError):
            config.max_iterations = 5  # type: ignore

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_iterations": 0},
            {"compact_threshold": 1.5},
            {"compact_threshold": -0.1},
            {"max_turns_without_tools": 0},
            {"extension_timeout": 0},
        ],
    )
    def test_invalid_values_raise(self, kwargs):
        """Out-of-range values are configuration errors."""
        with pytest.raises(ConfigurationError):
            AgentConfig(**kwargs)

    def test_readonly_tools_coerced_to_frozenset(self):
        """Any iterable of names is stored as a frozenset."""
        config = AgentConfig(readonly_tools=["b", "a"])  # type: ignore[arg-type]
        assert config.readonly_tools == frozenset({"a", "b"})

    def test_equal_configs_hash_equal(self):
        """Configs with the same values are interchangeable as dict keys."""
        first = AgentConfig(readonly_tools=frozenset({"a", "b"}))
        second = AgentConfig(readonly_tools=frozenset({"b", "a"}))
        assert first == second
        assert hash(first) == hash(second)

    def test_chat_mode_uses_no_tools(self):
        assert AgentConfig(mode=AgentMode.CHAT).uses_tools is False
        assert AgentConfig(mode=AgentMode.AGENT).uses_tools is True

    def test_autopilot_requires_tool_mode(self):
        """Autopilot has no effect in chat mode."""
        assert AgentConfig(mode=AgentMode.AUTO, enable_autopilot=True).autopilot is True
        assert AgentConfig(mode=AgentMode.CHAT, enable_autopilot=True).autopilot is False
        assert AgentConfig(mode=AgentMode.AUTO).autopilot is False

    def test_fingerprint_fields_are_json_friendly(self):
        """Fingerprint fields use plain strings and sorted lists."""
        fields = AgentConfig(readonly_tools=frozenset({"z", "a"})).fingerprint_fields()
        assert fields["mode"] == "agent"
        assert fields["readonly_tools"] == ["a", "z"]
        assert set(fields) == set(AgentConfig.__dataclass_fields__)


class TestSamplingParams:
    """Tests for SamplingParams."""

    def test_as_kwargs_drops_unset(self):
        """Only explicitly set parameters are forwarded."""
        params = SamplingParams(temperature=0.2, max_tokens=100)
        assert params.as_kwargs() == {"temperature": 0.2, "max_tokens": 100}

    def test_as_kwargs_keeps_zero(self):
        """Zero is a value, not an unset parameter."""
        assert SamplingParams(temperature=0.0).as_kwargs() == {"temperature": 0.0}

    def test_empty_by_default(self):
        assert SamplingParams().as_kwargs() == {}


class TestAgentSpec:
    """Tests for AgentSpec."""

    def test_tool_names_default_to_all(self):
        """None means every registered tool."""
        assert AgentSpec(provider_id="mock", model_id="echo").tool_names is None

    def test_tool_names_coerced_to_frozenset(self):
        spec = AgentSpec(provider_id="mock", model_id="echo", tool_names=["b", "a"])  # type: ignore[arg-type]
        assert spec.tool_names == frozenset({"a", "b"})

    def test_equal_specs(self):
        """Specs built from the same inputs are equal."""
        first = AgentSpec(provider_id="mock", model_id="echo", sampling=SamplingParams(temperature=0.5))
        second = AgentSpec(provider_id="mock", model_id="echo", sampling=SamplingParams(temperature=0.5))
        assert first == second


class TestMCPConfig:
    """Tests for MCPConfig."""

    def test_default_timeouts(self):
        config = MCPConfig(server_url="http://localhost:8000/mcp")
        assert config.tool_prefix is None
        assert config.headers is None
        assert config.timeout == 60.0
        assert config.sse_read_timeout == 300.0
        assert config.read_timeout == 120.0
