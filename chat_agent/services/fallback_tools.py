"""Filesystem tools that stay registered whether or not the filesystem server is up."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from chat_agent.core.schema import ObjectSchema, StringSchema
from chat_agent.core.tools import FilesystemTool, ToolRegistry, failure
from chat_agent.services.mcp import FILESYSTEM_SERVER, MCPClientManager

LOGGER = logging.getLogger(__name__)

SERVER_HINT = "Make sure the MCP filesystem server is running"

ArgumentMapper = Callable[[Dict[str, Any]], Dict[str, Any]]


class RoutedFilesystemTool(FilesystemTool):
    """Forwards to a tool on the filesystem server, or reports it as unavailable."""

    def __init__(
        self,
        name: str,
        description: str,
        schema: ObjectSchema,
        manager: MCPClientManager,
        remote_name: str,
        unavailable_message: str,
        map_arguments: Optional[ArgumentMapper] = None,
    ) -> None:
        super().__init__(name, description, schema)
        self._manager = manager
        self._remote_name = remote_name
        self._unavailable_message = unavailable_message
        self._map_arguments = map_arguments

    async def run(self, args: Dict[str, Any]) -> Any:
        if self._manager.is_connected(FILESYSTEM_SERVER):
            arguments = self._map_arguments(args) if self._map_arguments else args
            try:
                return await self._manager.call_tool(FILESYSTEM_SERVER, self._remote_name, arguments)
            except Exception as exc:  # noqa: BLE001
                LOGGER.error("MCP %s call failed: %s", self._remote_name, exc)
                return failure(f"{self._unavailable_message}: {exc}", hint=SERVER_HINT)

        return failure(self._unavailable_message, hint=SERVER_HINT)


def _path_schema(description: str) -> ObjectSchema:
    return ObjectSchema(properties={"path": StringSchema(description)}, required=("path",))


def fallback_filesystem_tools(manager: MCPClientManager) -> ToolRegistry:
    return ToolRegistry(
        [
            RoutedFilesystemTool(
                "readFile",
                "Read the contents of a file",
                _path_schema("File path"),
                manager,
                remote_name="read_file",
                unavailable_message="MCP filesystem server is not connected, cannot read file",
            ),
            RoutedFilesystemTool(
                "listDirectory",
                "List the entries of a directory",
                _path_schema("Directory path"),
                manager,
                remote_name="list_directory",
                unavailable_message="MCP filesystem server is not connected, cannot list directory",
            ),
            RoutedFilesystemTool(
                "searchCode",
                "Search the code base for matching files",
                ObjectSchema(
                    properties={
                        "query": StringSchema("Search pattern"),
                        "path": StringSchema("Directory to search in"),
                    },
                    required=("query",),
                ),
                manager,
                remote_name="search_files",
                unavailable_message="MCP filesystem server is not connected, cannot search",
                map_arguments=lambda args: {"pattern": args["query"], "path": args.get("path") or "."},
            ),
            RoutedFilesystemTool(
                "getFileInfo",
                "Get detailed metadata about a file",
                _path_schema("File path"),
                manager,
                remote_name="get_file_info",
                unavailable_message="MCP filesystem server is not connected, cannot get file info",
            ),
            RoutedFilesystemTool(
                "writeFile",
                "Write content to a file",
                ObjectSchema(
                    properties={
                        "path": StringSchema("File path"),
                        "content": StringSchema("Content to write"),
                    },
                    required=("path", "content"),
                ),
                manager,
                remote_name="write_file",
                unavailable_message="MCP filesystem server is not connected, cannot write file",
            ),
        ]
    )


def collect_mcp_tools(manager: MCPClientManager) -> ToolRegistry:
    """Fallback filesystem tools merged with every tool discovered on connected servers."""
    fallback = fallback_filesystem_tools(manager)
    dynamic = manager.load_tools() if manager.is_initialized() else ToolRegistry()
    if not dynamic:
        return fallback
    return ToolRegistry.merged(fallback, dynamic)
