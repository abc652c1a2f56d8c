"""Predefined agent types.

Each preset bundles a system prompt, a default temperature and an
AgentConfig. Chat requests name a preset through ``agent_type`` and may
override any of its parts.
"""

from dataclasses import dataclass, field

from chat_orchestrator.platform.agent.config import AgentConfig, AgentMode


@dataclass(frozen=True)
class AgentPreset:
    """A named agent type.

    Attributes:
        name: Identifier used in chat requests
        description: One-line description for agent pickers
        system_prompt: Default system prompt
        temperature: Default sampling temperature
        config: Default agent behavior
    """

    name: str
    description: str
    system_prompt: str
    temperature: float
    config: AgentConfig = field(default_factory=AgentConfig)


_PRESETS = [
    AgentPreset(
        name="conversational",
        description="Natural conversation without tools",
        system_prompt=(
            "You are a helpful and friendly AI assistant. "
            "Engage in natural conversations and provide thoughtful responses."
        ),
        temperature=0.7,
        config=AgentConfig(mode=AgentMode.CHAT),
    ),
    AgentPreset(
        name="tool_agent",
        description="Uses tools when they help answer the request",
        system_prompt=(
            "You are a capable AI assistant with access to various tools. "
            "Use tools when they are helpful for completing the user's request."
        ),
        temperature=0.3,
        config=AgentConfig(mode=AgentMode.AGENT, enable_tool_inspection=True),
    ),
    AgentPreset(
        name="autonomous",
        description="Works independently across many turns until the task is done",
        system_prompt=(
            "You are an autonomous AI assistant that can take initiative "
            "and work independently to help users achieve their goals."
        ),
        temperature=0.5,
        config=AgentConfig(
            mode=AgentMode.AUTO,
            enable_autopilot=True,
            enable_tool_inspection=True,
            enable_extensions=True,
            max_iterations=20,
        ),
    ),
    AgentPreset(
        name="programming",
        description="Writes and explains code",
        system_prompt=(
            "You are an expert programming assistant. "
            "Provide clear, well-commented code and explain your solutions thoroughly."
        ),
        temperature=0.2,
    ),
    AgentPreset(
        name="research",
        description="Detailed, sourced answers",
        system_prompt=(
            "You are a research assistant. "
            "Provide detailed, well-researched information and cite your sources when possible."
        ),
        temperature=0.3,
    ),
    AgentPreset(
        name="creative",
        description="Creative writing and brainstorming",
        system_prompt=(
            "You are a creative assistant. "
            "Help with creative writing, brainstorming, and artistic projects."
        ),
        temperature=0.8,
    ),
    AgentPreset(
        name="analysis",
        description="Structured problem breakdowns",
        system_prompt=(
            "You are an analytical assistant. "
            "Break down complex problems and provide structured, logical solutions."
        ),
        temperature=0.1,
    ),
]

PRESETS: dict[str, AgentPreset] = {preset.name: preset for preset in _PRESETS}
