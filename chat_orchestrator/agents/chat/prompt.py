"""System prompt assembly for chat agents.

The effective system prompt is the caller's prompt followed by a preamble for
the agent mode and short capability hints.
"""

from collections.abc import Sequence

from chat_orchestrator.platform.agent.config import AgentMode, AgentSpec
from chat_orchestrator.platform.agent.messages import ToolSpec
from chat_orchestrator.platform.orchestration.loop import COMPLETION_MARKER

MODE_PREAMBLES: dict[AgentMode, str] = {
    AgentMode.AGENT: (
        "You are an AI agent with access to tools. "
        "Use the available tools when they are helpful for answering the user's request. "
        "Always think step by step and explain your reasoning when using tools."
    ),
    AgentMode.CHAT: (
        "You are a helpful AI assistant focused on natural conversation. "
        "Be friendly, engaging, and conversational."
    ),
    AgentMode.AUTO: (
        "You are an autonomous AI assistant. "
        "Proactively help the user and use tools as needed. "
        "Anticipate needs and provide comprehensive assistance."
    ),
}

AUTOPILOT_HINT = (
    "You can take initiative and suggest actions or tools that might be helpful. "
    f"Keep working until the task is done, then end your final reply with {COMPLETION_MARKER}."
)
TOOL_INSPECTION_HINT = "You can inspect and analyze tool results."
EXTENSIONS_HINT = "You have access to extended capabilities and can perform complex multi-step operations."


def build_system_prompt(spec: AgentSpec, tools: Sequence[ToolSpec]) -> str:
    """Build the effective system prompt of an agent.

    Args:
        spec: Agent specification (caller prompt and configuration)
        tools: Tools bound to the agent

    Returns:
        The system prompt sent as the first message of every provider call
    """
    config = spec.config
    hints = [MODE_PREAMBLES[config.mode]]
    if config.uses_tools:
        if config.autopilot:
            hints.append(AUTOPILOT_HINT)
        if config.enable_tool_inspection and tools:
            hints.append(TOOL_INSPECTION_HINT)
        if config.enable_extensions and any(tool.is_extension for tool in tools):
            hints.append(EXTENSIONS_HINT)

    sections = [spec.system_prompt.strip()] if spec.system_prompt.strip() else []
    sections.append(" ".join(hints))
    return "\n\n".join(sections)
