"""Callable tool contract shared by remote, filesystem, skill and delegation tools."""
from __future__ import annotations

import abc
import logging
from enum import Enum
from typing import Any, ClassVar, Dict, Iterable, Iterator, List, Mapping, Optional

from chat_agent.core.schema import ObjectSchema, Schema, SchemaValidationError

LOGGER = logging.getLogger(__name__)


class ToolKind(str, Enum):
    """Category a tool belongs to; reported by the tool listing endpoint."""

    REMOTE = "remote"
    FILESYSTEM = "filesystem"
    SKILL = "skill"
    DELEGATION = "delegation"


def failure(error: str, **extra: Any) -> Dict[str, Any]:
    """Build the structured payload returned in place of an exception."""
    payload: Dict[str, Any] = {"success": False, "error": error}
    payload.update(extra)
    return payload


class Tool(abc.ABC):
    """A named capability the model may invoke.

    ``execute`` never raises: invalid arguments and handler failures are both
    returned as ``{"success": False, "error": ...}`` payloads so that a broken
    tool only degrades itself, not the loop that called it.
    """

    kind: ClassVar[ToolKind]

    def __init__(self, name: str, description: str, schema: Optional[Schema] = None) -> None:
        self._name = name
        self._description = description
        self._schema = schema if schema is not None else ObjectSchema()

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def schema(self) -> Schema:
        return self._schema

    async def execute(self, args: Any) -> Any:
        try:
            validated = self._schema.validate({} if args is None else args)
        except SchemaValidationError as exc:
            LOGGER.info("Rejected arguments for tool %s: %s", self._name, exc)
            return failure(
                f"Invalid arguments for tool '{self._name}': {exc}",
                hint=f"Expected parameters: {self._schema.to_json_schema()}",
            )

        try:
            return await self.run(validated)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Tool %s failed: %s", self._name, exc)
            return failure(str(exc) or exc.__class__.__name__)

    @abc.abstractmethod
    async def run(self, args: Dict[str, Any]) -> Any:
        """Perform the tool's work on already-validated arguments."""

    def to_openai_tool(self) -> Dict[str, Any]:
        parameters = self._schema.to_json_schema()
        if parameters.get("type") != "object":
            parameters = {"type": "object", "properties": {}}
        return {
            "type": "function",
            "function": {
                "name": self._name,
                "description": self._description,
                "parameters": parameters,
            },
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self._name!r})"


class RemoteTool(Tool):
    """Tool executed by a remote tool server."""

    kind = ToolKind.REMOTE


class FilesystemTool(Tool):
    """Filesystem-like tool with a fixed local definition."""

    kind = ToolKind.FILESYSTEM


class SkillTool(Tool):
    """Tool giving the model access to the skill catalog."""

    kind = ToolKind.SKILL


class DelegationTool(Tool):
    """Tool that hands work to specialist agents."""

    kind = ToolKind.DELEGATION


class ToolRegistry(Mapping[str, Tool]):
    """Ordered, read-only mapping from tool name to tool."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: Dict[str, Tool] = {}
        for tool in tools:
            self._tools[tool.name] = tool

    @classmethod
    def merged(cls, *registries: Optional[Iterable[Tool]]) -> "ToolRegistry":
        """Combine registries; on a name clash the later registry wins."""
        tools: Dict[str, Tool] = {}
        for registry in registries:
            if not registry:
                continue
            items = registry.values() if isinstance(registry, Mapping) else registry
            for tool in items:
                tools[tool.name] = tool
        return cls(tools.values())

    def __getitem__(self, name: str) -> Tool:
        return self._tools[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> List[str]:
        return list(self._tools)

    def by_kind(self, kind: ToolKind) -> List[Tool]:
        return [tool for tool in self._tools.values() if tool.kind is kind]

    def to_openai_tools(self) -> List[Dict[str, Any]]:
        return [tool.to_openai_tool() for tool in self._tools.values()]

    def describe(self) -> List[Dict[str, str]]:
        return [
            {"name": tool.name, "description": tool.description or "No description"}
            for tool in self._tools.values()
        ]
