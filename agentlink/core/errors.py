"""Exception hierarchy used inside the A2A core.

These never escape the public operations: the router and connector turn
them into ERROR messages or FAILED task results at their boundaries.
"""
from __future__ import annotations

from typing import Iterable


class A2AProtocolError(Exception):
    """Base class carrying a machine-readable error code."""

    code = "a2a_error"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class InvalidMessageError(A2AProtocolError):
    code = "invalid_message"

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors = list(errors)
        super().__init__(f"Invalid A2A message: {'; '.join(self.errors)}")


class UnsupportedMessageTypeError(A2AProtocolError):
    code = "unsupported_message_type"

    def __init__(self, message_type: object) -> None:
        value = getattr(message_type, "value", message_type)
        super().__init__(f"Unsupported message type: {value}")


class DeliveryError(A2AProtocolError):
    code = "message_routing_error"


class NoHandlerError(DeliveryError):
    def __init__(self, agent_id: str) -> None:
        super().__init__(f"No handler registered for agent {agent_id}")
        self.agent_id = agent_id


class AgentNotFoundError(A2AProtocolError, KeyError):
    code = "agent_not_found"

    def __init__(self, agent_id: str) -> None:
        super().__init__(f"Agent {agent_id} not found in A2A registry")
        self.agent_id = agent_id

    def __str__(self) -> str:
        return self.args[0]


class InvalidTaskTransitionError(A2AProtocolError):
    code = "invalid_task_transition"
