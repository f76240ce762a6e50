"""Core data models shared across executor, orchestrator and API components."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from chat_agent.core.tools import ToolRegistry


class TaskStatus(str, Enum):
    """Lifecycle states for a delegated collaboration task."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"


_STATUS_RANK = {
    TaskStatus.PENDING: 0,
    TaskStatus.IN_PROGRESS: 1,
    TaskStatus.COMPLETED: 2,
    TaskStatus.FAILED: 2,
}


@dataclass(frozen=True, slots=True)
class AgentPersona:
    """Static configuration of a specialist agent."""

    name: str
    display_name: str
    description: str
    system_prompt: str
    tools: ToolRegistry = field(default_factory=ToolRegistry)


@dataclass(slots=True)
class ToolCallRecord:
    """One tool invocation made while an agent worked on its task."""

    name: str
    args: Any
    result: Any = None


@dataclass(slots=True)
class AgentResult:
    """Outcome of running one persona against one task."""

    agent_name: str
    success: bool
    result: str
    tool_calls: Optional[List[ToolCallRecord]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class CollaborationTask:
    """A sub-task the orchestrator assigned to one persona."""

    id: str
    description: str
    assigned_agent: str
    status: TaskStatus = TaskStatus.PENDING
    result: Optional[AgentResult] = None
    history: List[TaskStatus] = field(default_factory=lambda: [TaskStatus.PENDING])

    def transition(self, status: TaskStatus) -> None:
        """Move to ``status``; statuses only ever move forward."""
        if _STATUS_RANK[status] <= _STATUS_RANK[self.status]:
            raise ValueError(
                f"Task {self.id} cannot move from {self.status.value} to {status.value}"
            )
        self.status = status
        self.history.append(status)

    def finish(self, result: AgentResult) -> None:
        self.transition(TaskStatus.COMPLETED if result.success else TaskStatus.FAILED)
        self.result = result


@dataclass(frozen=True, slots=True)
class ActiveAgentStatus:
    """Most recent agent activity, shown to polling clients."""

    name: str
    status: str
    task: Optional[str] = None
