"""Unit tests for MCP extension tools.

MCPClient is exercised against a stubbed session; MCPToolSource against a
stubbed client. No network access is required.
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, Mock, patch

import pytest
from mcp.types import Tool as MCPTool
from tenacity import wait_none

from chat_orchestrator.platform.agent.config import MCPConfig
from chat_orchestrator.platform.agent.errors import ConfigurationError
from chat_orchestrator.platform.agent.messages import ToolCallRequest
from chat_orchestrator.platform.settings import MCPServerSettings
from chat_orchestrator.platform.tools.mcp import MCPClient, MCPClientError, MCPToolSource, parse_result
from chat_orchestrator.platform.tools.registry import ToolRegistry


@pytest.fixture(autouse=True)
def disable_tenacity_wait():
    """Disable tenacity wait times to speed up retry tests.

    Tenacity decorators capture wait strategy at import time, so we need
    to modify the retry object directly on the decorated methods.
    """
    original_list_wait = MCPClient.list_tools.retry.wait  # type: ignore[attr-defined]
    original_call_wait = MCPClient.call_tool.retry.wait  # type: ignore[attr-defined]

    MCPClient.list_tools.retry.wait = wait_none()  # type: ignore[attr-defined]
    MCPClient.call_tool.retry.wait = wait_none()  # type: ignore[attr-defined]

    yield

    MCPClient.list_tools.retry.wait = original_list_wait  # type: ignore[attr-defined]
    MCPClient.call_tool.retry.wait = original_call_wait  # type: ignore[attr-defined]


def mcp_tool(name: str, properties: dict | None = None, description: str | None = None) -> MCPTool:
    return MCPTool(
        name=name,
        description=description,
        inputSchema={"type": "object", "properties": properties or {}},
    )


def session_cm(session: AsyncMock):
    @asynccontextmanager
    async def stub_session_cm():
        yield session

    return stub_session_cm


class TestMCPClientConfiguration:
    """Tests verifying MCPClient configuration and obfuscation."""

    def test_default_timeout_values(self):
        client = MCPClient(server_url="http://localhost:8000/mcp")

        assert client.timeout == 60.0
        assert client.sse_read_timeout == 300.0
        assert client.read_timeout.total_seconds() == 120.0

    def test_user_agent_header_added(self):
        """Headers are stored with user-agent added."""
        client = MCPClient(server_url="http://localhost:8000/mcp", headers={"Authorization": "Bearer token"})
        assert "Authorization" in client._headers
        assert client._headers["user-agent"].startswith("chat-orchestrator/")

    def test_repr_obfuscates_headers(self):
        """Headers may carry credentials and are never shown."""
        client = MCPClient(server_url="http://localhost:8000/mcp", headers={"Authorization": "Bearer token_456"})

        repr_str = repr(client)

        assert "headers=<obfuscated>" in repr_str
        assert "token_456" not in repr_str
        assert "http://localhost:8000/mcp" in repr_str


class TestMCPClientListTools:
    """Tests for MCPClient.list_tools()."""

    async def test_list_tools_returns_tools(self):
        session = AsyncMock()
        response = Mock()
        response.tools = [mcp_tool("search"), mcp_tool("fetch")]
        session.list_tools = AsyncMock(return_value=response)
        client = MCPClient(server_url="http://localhost:8000/mcp")

        with patch.object(client, "_session", session_cm(session)):
            tools = await client.list_tools()

        assert [tool.name for tool in tools] == ["search", "fetch"]

    async def test_list_tools_retries_then_raises(self):
        """list_tools raises MCPClientError after three attempts."""
        client = MCPClient(server_url="http://localhost:8000/mcp")

        with patch.object(client, "_session", side_effect=ConnectionError("Connection refused")) as stub:
            with pytest.raises(MCPClientError, match="Failed to list tools"):
                await client.list_tools()

        assert stub.call_count == 3


class TestMCPClientCallTool:
    """Tests for MCPClient.call_tool()."""

    @pytest.fixture
    def stub_session(self) -> AsyncMock:
        session = AsyncMock()
        result = Mock()
        result.isError = False
        result.content = [Mock(text='{"result": "success"}')]
        session.call_tool = AsyncMock(return_value=result)
        return session

    async def test_call_tool_returns_parsed_result(self, stub_session: AsyncMock):
        client = MCPClient(server_url="http://localhost:8000/mcp")

        with patch.object(client, "_session", session_cm(stub_session)):
            result = await client.call_tool("search", {"query": "test"})

        assert result == {"result": "success"}
        stub_session.call_tool.assert_called_once_with("search", {"query": "test"})

    async def test_call_tool_raises_on_tool_error(self, stub_session: AsyncMock):
        """A result flagged isError is surfaced as MCPClientError."""
        stub_session.call_tool.return_value.isError = True
        stub_session.call_tool.return_value.content = [Mock(text="not found")]
        client = MCPClient(server_url="http://localhost:8000/mcp")

        with patch.object(client, "_session", session_cm(stub_session)):
            with pytest.raises(MCPClientError, match="not found"):
                await client.call_tool("search", {"query": "test"})

    async def test_call_tool_raises_on_connection_error(self):
        client = MCPClient(server_url="http://localhost:8000/mcp")

        with patch.object(client, "_session", side_effect=ConnectionError("Connection refused")):
            with pytest.raises(MCPClientError, match="Failed to call tool 'search'"):
                await client.call_tool("search", {"query": "test"})


class TestParseResult:
    """Tests for parse_result()."""

    def test_empty_content(self):
        assert parse_result(Mock(content=[])) is None

    def test_single_json_item(self):
        assert parse_result(Mock(content=[Mock(text='{"a": 1}')])) == {"a": 1}

    def test_plain_text_item(self):
        assert parse_result(Mock(content=[Mock(text="hello")])) == "hello"

    def test_multiple_items(self):
        result = parse_result(Mock(content=[Mock(text="1"), Mock(text="two")]))
        assert result == [1, "two"]


class TestMCPToolSource:
    """Tests for MCPToolSource."""

    def test_prefixed_names(self):
        client = Mock(spec=MCPClient)
        assert MCPToolSource(client).prefixed_name("search") == "mcp_search"
        assert MCPToolSource(client, "crm").prefixed_name("search") == "mcp_crm_search"

    def test_from_config(self):
        source = MCPToolSource.from_config(
            MCPConfig(server_url="http://tools:8000/mcp", tool_prefix="crm", timeout=5.0)
        )
        assert source.tool_prefix == "crm"
        assert source.client.server_url == "http://tools:8000/mcp"
        assert source.client.timeout == 5.0

    async def test_fetch_tools_builds_extension_specs(self):
        client = Mock(spec=MCPClient)
        client.list_tools = AsyncMock(
            return_value=[mcp_tool("search", {"query": {"type": "string"}}, "Search documents"), mcp_tool("fetch")]
        )

        tools = await MCPToolSource(client, "docs").fetch_tools()

        specs = [spec for spec, _ in tools]
        assert [spec.name for spec in specs] == ["mcp_docs_search", "mcp_docs_fetch"]
        assert all(spec.is_extension for spec in specs)
        assert specs[0].description == "Search documents"
        assert specs[1].description == "MCP tool: fetch"
        assert specs[0].input_schema["properties"] == {"query": {"type": "string"}}

    async def test_tool_forwards_original_name(self):
        """Invocations reach the server under the unprefixed name."""
        client = Mock(spec=MCPClient)
        client.call_tool = AsyncMock(return_value={"hits": 2})
        source = MCPToolSource(client, "docs")
        spec, implementation = source._to_tool(mcp_tool("search", {"query": {"type": "string"}}))
        registry = ToolRegistry()
        registry.register(spec, implementation)

        result = await registry.invoke(ToolCallRequest(id="c1", name="mcp_docs_search", arguments={"query": "x"}))

        assert result.ok is True
        assert result.output == {"hits": 2}
        client.call_tool.assert_awaited_once_with("search", {"query": "x"})

    async def test_server_error_becomes_failed_result(self):
        client = Mock(spec=MCPClient)
        client.call_tool = AsyncMock(side_effect=MCPClientError("Tool 'search' reported an error"))
        spec, implementation = MCPToolSource(client)._to_tool(mcp_tool("search"))
        registry = ToolRegistry()
        registry.register(spec, implementation)

        result = await registry.invoke(ToolCallRequest(id="c1", name="mcp_search"))

        assert result.ok is False
        assert result.error_kind == "ToolExecutionError"


class TestMCPToolSourceLoadAll:
    """Tests for MCPToolSource.load_all()."""

    @staticmethod
    def fake_fetch(tools_by_url: dict):
        async def fetch_tools(self):
            tools = tools_by_url[self.client.server_url]
            if isinstance(tools, Exception):
                raise tools
            return [self._to_tool(tool) for tool in tools]

        return fetch_tools

    async def test_no_servers(self):
        registry = ToolRegistry()
        assert await MCPToolSource.load_all([], registry) == []
        assert len(registry) == 0

    async def test_registers_tools_from_all_servers(self):
        registry = ToolRegistry()
        configs = [
            MCPServerSettings(url="http://a/mcp", prefix="a"),
            MCPServerSettings(url="http://b/mcp", prefix="b"),
        ]
        fetch = self.fake_fetch({"http://a/mcp": [mcp_tool("search")], "http://b/mcp": [mcp_tool("search")]})

        with patch.object(MCPToolSource, "fetch_tools", fetch):
            names = await MCPToolSource.load_all(configs, registry)

        assert names == ["mcp_a_search", "mcp_b_search"]
        assert registry.names() == ["mcp_a_search", "mcp_b_search"]

    async def test_unreachable_server_is_skipped(self):
        """The service starts without the tools of an unreachable server."""
        registry = ToolRegistry()
        configs = [MCPServerSettings(url="http://down/mcp"), MCPServerSettings(url="http://up/mcp")]
        fetch = self.fake_fetch(
            {"http://down/mcp": MCPClientError("Connection refused"), "http://up/mcp": [mcp_tool("fetch")]}
        )

        with patch.object(MCPToolSource, "fetch_tools", fetch):
            names = await MCPToolSource.load_all(configs, registry)

        assert names == ["mcp_fetch"]

    async def test_name_collision_raises(self):
        """Two unprefixed servers exposing the same tool are a configuration error."""
        registry = ToolRegistry()
        configs = [MCPServerSettings(url="http://a/mcp"), MCPServerSettings(url="http://b/mcp")]
        fetch = self.fake_fetch({"http://a/mcp": [mcp_tool("search")], "http://b/mcp": [mcp_tool("search")]})

        with patch.object(MCPToolSource, "fetch_tools", fetch):
            with pytest.raises(ConfigurationError, match="collision"):
                await MCPToolSource.load_all(configs, registry)

    async def test_collision_with_registered_tool_raises(self):
        """An extension tool may not shadow an already registered tool."""
        registry = ToolRegistry()
        existing, _ = MCPToolSource(Mock(spec=MCPClient))._to_tool(mcp_tool("weather"))
        registry.register(existing, lambda: None)
        configs = [MCPServerSettings(url="http://a/mcp")]
        fetch = self.fake_fetch({"http://a/mcp": [mcp_tool("weather")]})

        with patch.object(MCPToolSource, "fetch_tools", fetch):
            with pytest.raises(ConfigurationError):
                await MCPToolSource.load_all(configs, registry)

        assert registry.get("mcp_weather") is existing
