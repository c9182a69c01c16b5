"""Base agent definition consumed by the A2A connector."""
from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from agentlink.core.models import A2AMessage, A2ATask, Participant

if TYPE_CHECKING:
    from agentlink.orchestration.integration import AgentA2A


@dataclass(slots=True)
class AgentDefinition:
    """Static description of an agent supplied by the host."""

    id: str
    name: str
    tools: List[str] = field(default_factory=list)
    description: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


class Agent(abc.ABC):
    """Abstract agent exposing identity, declared tools and work hooks.

    The A2A core never looks past these hooks; how an agent actually does
    its work is up to the subclass.
    """

    def __init__(self, definition: AgentDefinition) -> None:
        self.definition = definition
        self.a2a: Optional[AgentA2A] = None
        self.task_count = 0

    @property
    def agent_id(self) -> str:
        return self.definition.id

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def tools(self) -> List[str]:
        return list(self.definition.tools)

    @property
    def participant(self) -> Participant:
        return Participant(id=self.agent_id, name=self.name)

    @abc.abstractmethod
    async def handle_request(self, message: A2AMessage) -> str:
        """Answer a generic REQUEST; the returned string becomes the RESPONSE content."""

    async def execute_task(self, task: A2ATask) -> Any:
        """Carry out a delegated task and return its result payload.

        Raising marks the task FAILED with the exception text as the error.
        """
        return {"success": True, "message": "Task completed successfully"}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.agent_id}): {self.name}"
