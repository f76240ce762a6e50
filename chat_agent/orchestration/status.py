"""Advisory record of the most recent agent activity."""
from __future__ import annotations

from typing import Optional

from chat_agent.core.models import ActiveAgentStatus


class ActiveAgentBoard:
    """Single slot holding the latest agent status, read by a polling client.

    One board is created by the runtime and handed to whatever reports agent
    activity. Concurrent requests overwrite each other and the last write
    wins; nothing reads the board to make decisions.
    """

    def __init__(self) -> None:
        self._current: Optional[ActiveAgentStatus] = None

    @property
    def current(self) -> Optional[ActiveAgentStatus]:
        return self._current

    def report(self, name: str, status: str, task: Optional[str] = None) -> ActiveAgentStatus:
        self._current = ActiveAgentStatus(name=name, status=status, task=task)
        return self._current

    def clear(self) -> None:
        self._current = None
