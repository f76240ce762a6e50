"""MCP server connections and the remote tools they expose."""
from __future__ import annotations

import logging
import os
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import yaml
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from chat_agent.config import Config
from chat_agent.core.schema import ObjectSchema, Schema, from_json_schema
from chat_agent.core.tools import RemoteTool, ToolRegistry

LOGGER = logging.getLogger(__name__)

FILESYSTEM_SERVER = "filesystem"


class ServerStatus(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class MCPServerUnavailableError(RuntimeError):
    """Raised when a call targets a server that is not connected."""


@dataclass(slots=True)
class MCPServerConfig:
    """How to launch one stdio MCP server."""

    name: str
    command: str
    args: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    enabled: bool = True
    timeout: float = 30.0


class MCPConnection:
    """Stdio session with a single MCP server."""

    def __init__(self, config: MCPServerConfig) -> None:
        self.config = config
        self._stack: Optional[AsyncExitStack] = None
        self._session: Optional[ClientSession] = None

    async def start(self) -> None:
        params = StdioServerParameters(
            command=self.config.command,
            args=list(self.config.args),
            env=_resolve_env(self.config.env),
        )
        stack = AsyncExitStack()
        try:
            read_stream, write_stream = await stack.enter_async_context(stdio_client(params))
            session = await stack.enter_async_context(
                ClientSession(
                    read_stream,
                    write_stream,
                    read_timeout_seconds=timedelta(seconds=self.config.timeout),
                )
            )
            await session.initialize()
        except Exception:
            await stack.aclose()
            raise
        self._stack = stack
        self._session = session

    async def list_tools(self) -> List[Any]:
        result = await self._require_session().list_tools()
        return list(result.tools)

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        result = await self._require_session().call_tool(tool_name, arguments)
        text = "\n".join(item.text for item in result.content if getattr(item, "text", None))
        payload: Dict[str, Any] = {"success": not result.isError, "content": text}
        structured = getattr(result, "structuredContent", None)
        if structured:
            payload["structuredContent"] = structured
        return payload

    async def close(self) -> None:
        if self._stack is not None:
            await self._stack.aclose()
        self._stack = None
        self._session = None

    def _require_session(self) -> ClientSession:
        if self._session is None:
            raise MCPServerUnavailableError(f"MCP server not started: {self.config.name}")
        return self._session


ConnectionFactory = Callable[[MCPServerConfig], Any]


@dataclass(slots=True)
class _ServerState:
    config: MCPServerConfig
    status: ServerStatus
    connection: Optional[Any] = None
    tools: List[Any] = field(default_factory=list)
    error: Optional[str] = None


class MCPTool(RemoteTool):
    """Tool backed by a connected MCP server, exposed as ``<server>_<tool>``."""

    def __init__(
        self,
        server: str,
        remote_name: str,
        description: str,
        schema: Schema,
        manager: "MCPClientManager",
    ) -> None:
        super().__init__(f"{server}_{remote_name}", description, schema)
        self.server = server
        self.remote_name = remote_name
        self._manager = manager

    async def run(self, args: Dict[str, Any]) -> Any:
        return await self._manager.call_tool(self.server, self.remote_name, args)


class MCPClientManager:
    """Connects to configured MCP servers and tracks their status.

    A server that fails to start is recorded with status ``error``; it never
    prevents the other servers, or the application, from starting.
    """

    def __init__(
        self,
        configs: Sequence[MCPServerConfig],
        connection_factory: ConnectionFactory = MCPConnection,
    ) -> None:
        self._configs = list(configs)
        self._connection_factory = connection_factory
        self._servers: Dict[str, _ServerState] = {}
        self._initialized = False

    async def initialize(self) -> None:
        if self._initialized:
            LOGGER.info("MCP clients already initialized, skipping")
            return

        for server_config in self._configs:
            if not server_config.enabled:
                LOGGER.debug("Skipping disabled MCP server: %s", server_config.name)
                continue
            await self._connect(server_config)

        self._initialized = True
        LOGGER.info("MCP initialization finished: %s", self.get_status())

    async def _connect(self, server_config: MCPServerConfig) -> None:
        name = server_config.name
        LOGGER.info("Connecting to MCP server: %s", name)
        connection = self._connection_factory(server_config)
        try:
            await connection.start()
            tools = await connection.list_tools()
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("MCP server %s failed to connect: %s", name, exc)
            self._servers[name] = _ServerState(server_config, ServerStatus.ERROR, error=str(exc))
            try:
                await connection.close()
            except Exception as close_exc:  # noqa: BLE001
                LOGGER.debug("Cleanup after failed connect to %s raised: %s", name, close_exc)
            return

        self._servers[name] = _ServerState(server_config, ServerStatus.CONNECTED, connection, tools)
        LOGGER.info(
            "MCP server %s connected, tools: %s",
            name,
            ", ".join(tool.name for tool in tools) or "(none)",
        )

    def is_initialized(self) -> bool:
        return self._initialized

    def is_connected(self, server: str) -> bool:
        state = self._servers.get(server)
        return state is not None and state.status is ServerStatus.CONNECTED

    def get_status(self) -> Dict[str, str]:
        return {name: state.status.value for name, state in self._servers.items()}

    async def call_tool(self, server: str, tool_name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        state = self._servers.get(server)
        if state is None or state.status is not ServerStatus.CONNECTED:
            raise MCPServerUnavailableError(f'MCP server "{server}" is not connected')
        LOGGER.debug("Calling MCP tool %s on server %s", tool_name, server)
        return await state.connection.call_tool(tool_name, arguments)

    def load_tools(self) -> ToolRegistry:
        """Build tools for every connected server, named ``<server>_<tool>``.

        When two server/tool pairs flatten to the same name the first one wins
        and the later one is skipped with a warning.
        """
        tools: Dict[str, MCPTool] = {}
        for name, state in self._servers.items():
            if state.status is not ServerStatus.CONNECTED:
                continue
            for remote in state.tools:
                input_schema = getattr(remote, "inputSchema", None)
                try:
                    schema = from_json_schema(input_schema) if input_schema else ObjectSchema()
                except Exception as exc:  # noqa: BLE001
                    LOGGER.error("Could not translate schema of %s.%s: %s", name, remote.name, exc)
                    continue
                tool = MCPTool(
                    server=name,
                    remote_name=remote.name,
                    description=getattr(remote, "description", None) or f"MCP tool: {remote.name}",
                    schema=schema,
                    manager=self,
                )
                existing = tools.get(tool.name)
                if existing is not None:
                    LOGGER.warning(
                        "Skipping MCP tool %s.%s: name %s already used by %s.%s",
                        name,
                        remote.name,
                        tool.name,
                        existing.server,
                        existing.remote_name,
                    )
                    continue
                tools[tool.name] = tool
        return ToolRegistry(tools.values())

    async def close(self) -> None:
        for name, state in self._servers.items():
            if state.connection is None or state.status is not ServerStatus.CONNECTED:
                continue
            try:
                await state.connection.close()
                state.status = ServerStatus.DISCONNECTED
                LOGGER.info("MCP client %s closed", name)
            except Exception as exc:  # noqa: BLE001
                LOGGER.error("Failed to close MCP client %s: %s", name, exc)
        self._initialized = False


def load_mcp_config(config_path: Path) -> List[MCPServerConfig]:
    """Read server definitions from a YAML file.

    Expected layout::

        servers:
          filesystem:
            command: npx
            args: ["-y", "@modelcontextprotocol/server-filesystem", "."]
            env: {}
            enabled: true
    """
    if not config_path.exists():
        raise FileNotFoundError(f"MCP config not found: {config_path}")

    with open(config_path, encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    servers = []
    for name, server_cfg in (raw.get("servers") or {}).items():
        servers.append(
            MCPServerConfig(
                name=name,
                command=server_cfg["command"],
                args=[str(arg) for arg in server_cfg.get("args", [])],
                env={key: str(value) for key, value in (server_cfg.get("env") or {}).items()},
                enabled=server_cfg.get("enabled", True),
                timeout=float(server_cfg.get("timeout", 30.0)),
            )
        )
    return servers


def load_server_configs(app_config: Config) -> List[MCPServerConfig]:
    """Server list from ``MCP_CONFIG_PATH``, or the default filesystem server."""
    if app_config.mcp_config_path is not None:
        try:
            return load_mcp_config(app_config.mcp_config_path)
        except (OSError, KeyError, yaml.YAMLError) as exc:
            LOGGER.error("Ignoring unusable MCP config %s: %s", app_config.mcp_config_path, exc)
            return []

    return [
        MCPServerConfig(
            name=FILESYSTEM_SERVER,
            command="npx",
            args=["-y", "@modelcontextprotocol/server-filesystem", *app_config.mcp_allowed_paths],
        )
    ]


def _resolve_env(env: Dict[str, str]) -> Optional[Dict[str, str]]:
    if not env:
        return None
    resolved = os.environ.copy()
    for key, value in env.items():
        if value.startswith("${") and value.endswith("}"):
            resolved[key] = os.environ.get(value[2:-1], "")
        else:
            resolved[key] = value
    return resolved
