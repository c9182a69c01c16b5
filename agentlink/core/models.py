"""Core data models shared across the A2A protocol components."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

BROADCAST_ADDRESS = "*"


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class MessageType(str, Enum):
    """Closed set of message kinds understood by the protocol."""

    REQUEST = "request"
    RESPONSE = "response"
    ERROR = "error"
    CAPABILITY_DISCOVERY = "capability_discovery"
    CAPABILITY_RESPONSE = "capability_response"
    TASK_DELEGATION = "task_delegation"
    TASK_COMPLETION = "task_completion"


class TaskStatus(str, Enum):
    """Lifecycle states for a delegated task."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    def can_transition_to(self, status: TaskStatus) -> bool:
        return status in _TASK_TRANSITIONS[self]


_TASK_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.IN_PROGRESS, TaskStatus.FAILED},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
}


@dataclass(slots=True, frozen=True)
class Participant:
    """Identity pair used for senders, recipients and task attribution."""

    id: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Participant:
        return cls(id=str(data.get("id", "")), name=str(data.get("name", data.get("id", ""))))


@dataclass(slots=True, frozen=True)
class Capability:
    """One discrete ability advertised by an agent."""

    id: str
    name: str
    version: str = "1.0.0"
    description: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Capability:
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            version=data.get("version", "1.0.0"),
            description=data.get("description", ""),
        )


@dataclass(slots=True)
class AgentEndpoints:
    """Logical addressing paths advertised for discovery."""

    messaging: str
    task_delegation: str
    capability_discovery: str

    @classmethod
    def for_agent(cls, agent_id: str) -> AgentEndpoints:
        base = f"/a2a/agents/{agent_id}"
        return cls(
            messaging=f"{base}/messages",
            task_delegation=f"{base}/tasks",
            capability_discovery=f"{base}/capabilities",
        )


@dataclass(slots=True)
class AgentEntry:
    """Directory record kept by the registry for each known agent."""

    id: str
    name: str
    capabilities: List[Capability] = field(default_factory=list)
    endpoints: Optional[AgentEndpoints] = None

    def __post_init__(self) -> None:
        if self.endpoints is None:
            self.endpoints = AgentEndpoints.for_agent(self.id)

    def has_capability(self, capability_id: str) -> bool:
        return any(cap.id == capability_id for cap in self.capabilities)


@dataclass(slots=True)
class AgentCard:
    """Exportable discovery document describing one agent."""

    id: str
    name: str
    capabilities: List[Capability]
    endpoints: AgentEndpoints
    version: str = "1.0.0"


@dataclass(slots=True, frozen=True)
class A2AError:
    """Error detail attached to ERROR messages and failed task results."""

    code: str
    message: str
    details: Any = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            data["details"] = self.details
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> A2AError:
        return cls(
            code=str(data.get("code", "")),
            message=str(data.get("message", "")),
            details=data.get("details"),
        )


@dataclass(slots=True)
class MessageMetadata:
    timestamp: Optional[int] = None
    correlation_id: Optional[str] = None
    conversation_id: Optional[str] = None
    ttl: Optional[int] = None


@dataclass(slots=True)
class TaskSummary:
    """Lightweight task view carried on delegation and completion messages."""

    id: str
    description: str
    status: TaskStatus
    delegated_by: Optional[str] = None


@dataclass(slots=True)
class A2AMessage:
    """Canonical unit of exchange between agents.

    Senders may leave ``id``, ``metadata.timestamp`` and
    ``metadata.correlation_id`` empty; the protocol handler fills them in
    before the message reaches the router.
    """

    type: MessageType
    sender: Optional[Participant]
    recipient: Optional[Participant] = None
    content: str = ""
    id: str = ""
    task: Optional[TaskSummary] = None
    metadata: Optional[MessageMetadata] = field(default_factory=MessageMetadata)
    error: Optional[A2AError] = None


@dataclass(slots=True)
class A2ATask:
    """A unit of work handed from one agent to another."""

    description: str
    id: str = ""
    status: TaskStatus = TaskStatus.PENDING
    delegated_by: Optional[Participant] = None
    required_capabilities: List[str] = field(default_factory=list)
    parameters: Dict[str, Any] = field(default_factory=dict)
    priority: Optional[int] = None
    deadline: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "status": self.status.value,
            "delegated_by": self.delegated_by.to_dict() if self.delegated_by else None,
            "required_capabilities": list(self.required_capabilities),
            "parameters": dict(self.parameters),
            "priority": self.priority,
            "deadline": self.deadline,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> A2ATask:
        delegated_by = data.get("delegated_by")
        return cls(
            id=data.get("id") or "",
            description=data.get("description", ""),
            status=TaskStatus(data.get("status") or TaskStatus.PENDING),
            delegated_by=Participant.from_dict(delegated_by) if delegated_by else None,
            required_capabilities=list(data.get("required_capabilities") or []),
            parameters=dict(data.get("parameters") or {}),
            priority=data.get("priority"),
            deadline=data.get("deadline"),
        )


@dataclass(slots=True)
class A2ATaskResult:
    """Terminal outcome of a delegated task, produced exactly once."""

    task_id: str
    status: TaskStatus
    completed_by: Participant
    completed_at: int = field(default_factory=now_ms)
    result: Any = None
    error: Optional[A2AError] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "status": self.status.value,
            "completed_by": self.completed_by.to_dict(),
            "completed_at": self.completed_at,
            "result": self.result,
            "error": self.error.to_dict() if self.error else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> A2ATaskResult:
        error = data.get("error")
        return cls(
            task_id=data["task_id"],
            status=TaskStatus(data["status"]),
            completed_by=Participant.from_dict(data["completed_by"]),
            completed_at=data.get("completed_at") or now_ms(),
            result=data.get("result"),
            error=A2AError.from_dict(error) if error else None,
        )


@dataclass(slots=True)
class A2ATaskUpdate:
    """Status transition announced on the notification channel."""

    task_id: str
    status: TaskStatus
    message: str = ""
    updated_at: int = field(default_factory=now_ms)
    progress: Optional[float] = None


@dataclass(slots=True)
class MessageFilter:
    """Subscription filter; unset fields match everything."""

    sender: Optional[str] = None
    recipient: Optional[str] = None
    type: Any = None

    def matches(self, message: A2AMessage) -> bool:
        if self.sender is not None and (message.sender is None or message.sender.id != self.sender):
            return False
        if self.recipient is not None and (
            message.recipient is None or message.recipient.id != self.recipient
        ):
            return False
        if self.type is not None:
            if isinstance(self.type, MessageType):
                return message.type == self.type
            return message.type in self.type
        return True
