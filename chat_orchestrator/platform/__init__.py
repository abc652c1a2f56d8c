"""Agent orchestration infrastructure.

This module provides the building blocks behind the chat API:
- Message types, agent configuration and errors (``agent``)
- Tool registry with built-in and MCP extension tools (``tools``)
- LLM provider adapters (``providers``)
- Agent cache, orchestration loop and streaming (``orchestration``)
- FastAPI server and observability utilities
"""

from chat_orchestrator.platform.agent.config import AgentConfig, AgentMode, AgentSpec, SamplingParams
from chat_orchestrator.platform.agent.messages import Conversation, Message, ResponseChunk, RunResult
from chat_orchestrator.platform.orchestration.factory import Agent, AgentFactory
from chat_orchestrator.platform.orchestration.loop import Orchestrator
from chat_orchestrator.platform.orchestration.streaming import StreamingAdapter
from chat_orchestrator.platform.settings import Settings
from chat_orchestrator.platform.tools.registry import ToolRegistry

__all__ = [
    "Agent",
    "AgentConfig",
    "AgentFactory",
    "AgentMode",
    "AgentSpec",
    "Conversation",
    "Message",
    "Orchestrator",
    "ResponseChunk",
    "RunResult",
    "SamplingParams",
    "Settings",
    "StreamingAdapter",
    "ToolRegistry",
]
