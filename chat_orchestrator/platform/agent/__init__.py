"""Agent data model.

This module provides the framework-agnostic vocabulary shared by every layer:
- Message, conversation, chunk and run result types
- Agent configuration and specification dataclasses
- The orchestration error taxonomy
- Agent-specific metrics
"""

from chat_orchestrator.platform.agent.config import (
    AgentConfig,
    AgentMode,
    AgentSpec,
    MCPConfig,
    SamplingParams,
)
from chat_orchestrator.platform.agent.messages import (
    ChunkType,
    Conversation,
    ErrorReport,
    Message,
    ResponseChunk,
    Role,
    RunResult,
    RunState,
    ToolCallRequest,
    ToolCallResult,
    ToolSpec,
)

__all__ = [
    # Configuration
    "AgentConfig",
    "AgentMode",
    "AgentSpec",
    "MCPConfig",
    "SamplingParams",
    # Message types
    "ChunkType",
    "Conversation",
    "ErrorReport",
    "Message",
    "ResponseChunk",
    "Role",
    "RunResult",
    "RunState",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolSpec",
]
