"""MCP (Model Context Protocol) extension tools.

MCPClient talks to a StreamableHTTP MCP server; MCPToolSource turns the
server's tools into extension tools in a ToolRegistry.

Usage:
    registry = ToolRegistry()
    names = await MCPToolSource.load_all(settings.mcp_servers, registry)
"""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import httpx
from mcp.client.session import ClientSession
from mcp.client.streamable_http import streamable_http_client
from mcp.types import Tool as MCPTool
from tenacity import retry, stop_after_attempt, stop_after_delay, wait_fixed

from chat_orchestrator.platform.agent.config import MCPConfig
from chat_orchestrator.platform.agent.errors import ConfigurationError
from chat_orchestrator.platform.agent.messages import ToolSpec
from chat_orchestrator.platform.constants import USER_AGENT
from chat_orchestrator.platform.settings import MCPServerSettings
from chat_orchestrator.platform.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_mcp_retry = retry(
    wait=wait_fixed(2),
    stop=(stop_after_attempt(3) | stop_after_delay(10)),
    reraise=True,
)


class MCPClientError(Exception):
    """MCP client error."""


class MCPClient:
    """MCP client for StreamableHTTP servers.

    Each operation opens its own session. Transient failures are retried
    up to 3 times with 2-second delays.
    """

    def __init__(
        self,
        server_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 60.0,
        sse_read_timeout: float = 300.0,
        read_timeout: float = 120.0,
    ) -> None:
        """Initialize the MCP client.

        Args:
            server_url: URL of the MCP server endpoint
            headers: Optional HTTP headers to include in requests
            timeout: Connection timeout in seconds
            sse_read_timeout: SSE stream read timeout in seconds
            read_timeout: Per-request read timeout in seconds
        """
        self.server_url = server_url
        self._headers = (headers or {}) | {"user-agent": USER_AGENT}
        self.timeout = timeout
        self.sse_read_timeout = sse_read_timeout
        self.read_timeout = timedelta(seconds=read_timeout)

    def __repr__(self) -> str:
        # Headers may carry credentials
        return f"MCPClient(server_url={self.server_url!r}, headers=<obfuscated>)"

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[ClientSession]:
        timeout = httpx.Timeout(
            connect=self.timeout,
            read=self.sse_read_timeout,
            write=self.timeout,
            pool=self.timeout,
        )
        async with httpx.AsyncClient(headers=self._headers, timeout=timeout) as http_client:
            async with streamable_http_client(
                url=self.server_url,
                http_client=http_client,
            ) as (read_stream, write_stream, _):
                async with ClientSession(
                    read_stream,
                    write_stream,
                    read_timeout_seconds=self.read_timeout,
                ) as session:
                    await session.initialize()
                    yield session

    @_mcp_retry
    async def list_tools(self) -> list[MCPTool]:
        """Fetch available tools from the MCP server.

        Raises:
            MCPClientError: If tool listing fails after retries
        """
        try:
            async with self._session() as session:
                response = await session.list_tools()
                return response.tools
        except Exception as e:
            raise MCPClientError(f"Failed to list tools from {self.server_url}: {e}") from e

    @_mcp_retry
    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        """Call a tool on the MCP server.

        Args:
            name: Name of the tool on the server (without any local prefix)
            arguments: Arguments to pass to the tool

        Returns:
            Parsed tool result (JSON decoded where possible)

        Raises:
            MCPClientError: If the call fails after retries or the server reports a tool error
        """
        try:
            async with self._session() as session:
                result = await session.call_tool(name, arguments)
        except Exception as e:
            raise MCPClientError(f"Failed to call tool '{name}': {e}") from e
        if getattr(result, "isError", False):
            raise MCPClientError(f"Tool '{name}' reported an error: {parse_result(result)}")
        return parse_result(result)


def parse_result(result: Any) -> Any:
    """Decode the content array of an MCP tool result.

    Returns:
        None when empty, a single decoded item, or a list of decoded items
    """
    if not result.content:
        return None
    items = [_parse_content(item) for item in result.content]
    return items[0] if len(items) == 1 else items


def _parse_content(content: Any) -> Any:
    text = getattr(content, "text", None) or str(content)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


class MCPToolSource:
    """Exposes the tools of one MCP server as extension tools.

    Every tool is named 'mcp_<name>' or, with a prefix, 'mcp_<prefix>_<name>';
    calls are forwarded to the server under the original name.
    """

    def __init__(self, client: MCPClient, tool_prefix: str | None = None) -> None:
        self.client = client
        self.tool_prefix = tool_prefix

    @classmethod
    def from_config(cls, config: MCPConfig) -> "MCPToolSource":
        client = MCPClient(
            server_url=config.server_url,
            headers=config.headers,
            timeout=config.timeout,
            sse_read_timeout=config.sse_read_timeout,
            read_timeout=config.read_timeout,
        )
        return cls(client, config.tool_prefix)

    @classmethod
    def from_settings(cls, settings: MCPServerSettings) -> "MCPToolSource":
        return cls.from_config(
            MCPConfig(
                server_url=settings.url,
                tool_prefix=settings.prefix,
                timeout=settings.timeout,
                sse_read_timeout=settings.sse_read_timeout,
                read_timeout=settings.read_timeout,
            )
        )

    def prefixed_name(self, name: str) -> str:
        if self.tool_prefix:
            return f"mcp_{self.tool_prefix}_{name}"
        return f"mcp_{name}"

    async def fetch_tools(self) -> list[tuple[ToolSpec, Any]]:
        """List the server's tools as (spec, implementation) pairs."""
        tools = await self.client.list_tools()
        return [self._to_tool(tool) for tool in tools]

    def _to_tool(self, mcp_tool: MCPTool) -> tuple[ToolSpec, Any]:
        original_name = mcp_tool.name

        async def invoke(**kwargs: Any) -> Any:
            return await self.client.call_tool(original_name, kwargs)

        schema = mcp_tool.inputSchema if isinstance(mcp_tool.inputSchema, dict) else {}
        spec = ToolSpec(
            name=self.prefixed_name(original_name),
            description=mcp_tool.description or f"MCP tool: {original_name}",
            input_schema=schema or {"type": "object", "properties": {}},
            is_extension=True,
        )
        return spec, invoke

    @classmethod
    async def load_all(
        cls,
        configs: Sequence[MCPServerSettings],
        registry: ToolRegistry,
    ) -> list[str]:
        """Fetch tools from every configured server and register them.

        Servers are queried concurrently. An unreachable server is logged and
        skipped; the service starts without its tools.

        Args:
            configs: MCP server settings
            registry: Registry receiving the extension tools

        Returns:
            Names of the registered extension tools

        Raises:
            ConfigurationError: If two servers expose the same tool name
        """
        if not configs:
            return []

        async def fetch(config: MCPServerSettings) -> list[tuple[ToolSpec, Any]] | Exception:
            try:
                return await cls.from_settings(config).fetch_tools()
            except MCPClientError as e:
                return e

        async with asyncio.TaskGroup() as tg:
            tasks = [tg.create_task(fetch(config)) for config in configs]

        registered: list[str] = []
        seen: dict[str, str] = {}  # tool_name -> server url
        for config, task in zip(configs, tasks):
            result = task.result()
            if isinstance(result, Exception):
                logger.warning(
                    "MCP server unavailable at %s: %s. Continuing without its tools.",
                    config.url,
                    result,
                )
                continue
            for spec, implementation in result:
                if spec.name in seen:
                    raise ConfigurationError(
                        f"Tool name collision: '{spec.name}' from {config.url} "
                        f"conflicts with {seen[spec.name]}. Set a prefix on one or both servers."
                    )
                seen[spec.name] = config.url
                registry.register(spec, implementation)
                registered.append(spec.name)
        logger.info("Registered %d MCP tools from %d servers", len(registered), len(configs))
        return registered
