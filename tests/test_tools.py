"""Tests for the tool contract, registry merging and MCP-backed tools."""
from __future__ import annotations

from typing import Any, Dict

import pytest

from chat_agent.core.schema import ObjectSchema, StringSchema
from chat_agent.core.tools import FilesystemTool, SkillTool, ToolKind, ToolRegistry
from chat_agent.services.fallback_tools import collect_mcp_tools, fallback_filesystem_tools
from chat_agent.services.mcp import (
    MCPClientManager,
    MCPServerConfig,
    MCPServerUnavailableError,
    ServerStatus,
)
from conftest import FakeConnection, remote_tool


class GreetTool(SkillTool):
    def __init__(self, name: str = "greet") -> None:
        super().__init__(
            name,
            "Say hello",
            ObjectSchema(properties={"who": StringSchema()}, required=("who",)),
        )
        self.runs = 0

    async def run(self, args: Dict[str, Any]) -> Any:
        self.runs += 1
        return {"success": True, "greeting": f"hello {args['who']}"}


class ExplodingTool(FilesystemTool):
    async def run(self, args: Dict[str, Any]) -> Any:
        raise OSError("disk on fire")


@pytest.mark.anyio
async def test_valid_arguments_reach_the_handler() -> None:
    tool = GreetTool()

    assert await tool.execute({"who": "ada"}) == {"success": True, "greeting": "hello ada"}


@pytest.mark.anyio
async def test_invalid_arguments_are_rejected_before_the_handler() -> None:
    tool = GreetTool()

    result = await tool.execute({})

    assert result["success"] is False
    assert "greet" in result["error"]
    assert "who" in result["hint"]
    assert tool.runs == 0


@pytest.mark.anyio
async def test_handler_exceptions_become_failures() -> None:
    tool = ExplodingTool("boom", "Always fails")

    result = await tool.execute(None)

    assert result == {"success": False, "error": "disk on fire"}


def test_registry_merge_applies_later_registries_last() -> None:
    first = GreetTool()
    second = GreetTool()
    other = GreetTool("wave")

    merged = ToolRegistry.merged(ToolRegistry([first, other]), [second], None)

    assert merged.names() == ["greet", "wave"]
    assert merged["greet"] is second
    assert [tool.name for tool in merged.by_kind(ToolKind.SKILL)] == ["greet", "wave"]


def test_openai_tool_definition() -> None:
    definition = GreetTool().to_openai_tool()

    assert definition["type"] == "function"
    assert definition["function"]["name"] == "greet"
    assert definition["function"]["parameters"]["required"] == ["who"]


def _manager(connections: Dict[str, FakeConnection]) -> MCPClientManager:
    configs = [MCPServerConfig(name=name, command="unused") for name in connections]
    return MCPClientManager(configs, connection_factory=lambda config: connections[config.name])


@pytest.mark.anyio
async def test_same_remote_name_on_two_servers_is_kept_twice() -> None:
    connections = {
        "alpha": FakeConnection(None, tools=[remote_tool("read", "Read from alpha")]),
        "beta": FakeConnection(None, tools=[remote_tool("read", "Read from beta")]),
    }
    for name, connection in connections.items():
        connection.config = MCPServerConfig(name=name, command="unused")
    manager = _manager(connections)
    await manager.initialize()

    tools = manager.load_tools()

    assert tools.names() == ["alpha_read", "beta_read"]
    assert await tools["alpha_read"].execute({}) == {"success": True, "content": "alpha:read"}
    assert await tools["beta_read"].execute({}) == {"success": True, "content": "beta:read"}


@pytest.mark.anyio
async def test_colliding_flattened_names_keep_the_first_tool() -> None:
    connections = {
        "a_b": FakeConnection(None, tools=[remote_tool("c", "From a_b")]),
        "a": FakeConnection(None, tools=[remote_tool("b_c", "From a")]),
    }
    for name, connection in connections.items():
        connection.config = MCPServerConfig(name=name, command="unused")
    manager = _manager(connections)
    await manager.initialize()

    tools = manager.load_tools()

    assert tools.names() == ["a_b_c"]
    assert tools["a_b_c"].description == "From a_b"
    assert await tools["a_b_c"].execute({}) == {"success": True, "content": "a_b:c"}
    assert connections["a"].calls == []


@pytest.mark.anyio
async def test_remote_schema_is_enforced_locally() -> None:
    schema = {"type": "object", "properties": {"path": {"type": "string"}}, "required": ["path"]}
    connection = FakeConnection(
        MCPServerConfig(name="filesystem", command="unused"),
        tools=[remote_tool("read_file", "Read a file", schema)],
    )
    manager = _manager({"filesystem": connection})
    await manager.initialize()

    result = await manager.load_tools()["filesystem_read_file"].execute({})

    assert result["success"] is False
    assert connection.calls == []


@pytest.mark.anyio
async def test_failed_server_is_recorded_and_others_still_connect() -> None:
    broken = FakeConnection(MCPServerConfig(name="broken", command="unused"), fail=OSError("no such command"))
    healthy = FakeConnection(
        MCPServerConfig(name="healthy", command="unused"), tools=[remote_tool("ping")]
    )
    manager = _manager({"broken": broken, "healthy": healthy})

    await manager.initialize()

    assert manager.is_initialized()
    assert manager.get_status() == {"broken": ServerStatus.ERROR.value, "healthy": ServerStatus.CONNECTED.value}
    assert broken.closed
    assert manager.load_tools().names() == ["healthy_ping"]
    with pytest.raises(MCPServerUnavailableError):
        await manager.call_tool("broken", "anything", {})


@pytest.mark.anyio
async def test_fallback_tool_reports_disconnected_server_without_raising() -> None:
    broken = FakeConnection(MCPServerConfig(name="filesystem", command="unused"), fail=OSError("npx missing"))
    manager = _manager({"filesystem": broken})
    await manager.initialize()

    tools = collect_mcp_tools(manager)
    result = await tools["readFile"].execute({"path": "README.md"})

    assert tools.names() == ["readFile", "listDirectory", "searchCode", "getFileInfo", "writeFile"]
    assert result["success"] is False
    assert "not connected" in result["error"]
    assert "hint" in result


@pytest.mark.anyio
async def test_fallback_tools_forward_to_connected_filesystem_server() -> None:
    connection = FakeConnection(
        MCPServerConfig(name="filesystem", command="unused"), tools=[remote_tool("search_files")]
    )
    manager = _manager({"filesystem": connection})
    await manager.initialize()

    tools = collect_mcp_tools(manager)
    result = await tools["searchCode"].execute({"query": "*.py"})

    assert result == {"success": True, "content": "filesystem:search_files"}
    assert connection.calls == [("search_files", {"pattern": "*.py", "path": "."})]
    assert "filesystem_search_files" in tools


@pytest.mark.anyio
async def test_close_marks_servers_disconnected() -> None:
    connection = FakeConnection(MCPServerConfig(name="filesystem", command="unused"))
    manager = _manager({"filesystem": connection})
    await manager.initialize()

    await manager.close()

    assert connection.closed
    assert manager.get_status() == {"filesystem": "disconnected"}
    assert not manager.is_initialized()
    assert fallback_filesystem_tools(manager)["readFile"].kind is ToolKind.FILESYSTEM
