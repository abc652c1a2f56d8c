"""Tool registry, built-in tools and MCP extension tools."""

from chat_orchestrator.platform.tools.builtin import register_builtin_tools
from chat_orchestrator.platform.tools.mcp import MCPClient, MCPClientError, MCPToolSource
from chat_orchestrator.platform.tools.registry import ToolRegistry

__all__ = [
    "MCPClient",
    "MCPClientError",
    "MCPToolSource",
    "ToolRegistry",
    "register_builtin_tools",
]
