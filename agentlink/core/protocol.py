"""Message shape validation and normalization for the A2A protocol."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Any, List, Optional

from .event_bus import MESSAGE_FORMATTED, EventBus
from .models import (
    BROADCAST_ADDRESS,
    A2AError,
    A2AMessage,
    MessageMetadata,
    MessageType,
    Participant,
    TaskStatus,
    now_ms,
)


@dataclass(slots=True, frozen=True)
class ValidationError:
    field: str
    message: str
    code: str = "missing_field"


@dataclass(slots=True)
class ValidationResult:
    valid: bool
    errors: List[ValidationError] = field(default_factory=list)

    @property
    def messages(self) -> List[str]:
        return [error.message for error in self.errors]


def new_id() -> str:
    return str(uuid.uuid4())


def is_broadcast(message: A2AMessage) -> bool:
    """A message with no recipient, or addressed to ``*``, goes to everyone."""
    recipient = getattr(message, "recipient", None)
    return recipient is None or getattr(recipient, "id", None) == BROADCAST_ADDRESS


def validate_message(message: Any) -> ValidationResult:
    """Check structural rules, collecting every violation found.

    Never raises and never mutates ``message``.
    """
    if not isinstance(message, A2AMessage):
        return ValidationResult(
            valid=False,
            errors=[ValidationError("message", "Message must be an A2AMessage", "invalid_type")],
        )

    errors: List[ValidationError] = []
    if not message.id:
        errors.append(ValidationError("id", "Message ID is required"))

    if message.type is None:
        errors.append(ValidationError("type", "Message type is required"))
    elif not isinstance(message.type, MessageType):
        errors.append(
            ValidationError("type", f"Invalid message type: {message.type}", "invalid_value")
        )

    if message.sender is None:
        errors.append(ValidationError("sender", "Message sender is required"))
    elif not getattr(message.sender, "id", None):
        errors.append(ValidationError("sender.id", "Sender ID is required"))

    if not is_broadcast(message) and not getattr(message.recipient, "id", None):
        errors.append(
            ValidationError(
                "recipient.id",
                "Recipient ID is required for non-broadcast messages",
            )
        )

    if message.metadata is None:
        errors.append(ValidationError("metadata", "Message metadata is required"))

    task = message.task
    if task is not None:
        if not task.id:
            errors.append(ValidationError("task.id", "Task ID is required"))
        if not isinstance(task.status, TaskStatus):
            errors.append(
                ValidationError("task.status", f"Invalid task status: {task.status}", "invalid_value")
            )

    return ValidationResult(valid=not errors, errors=errors)


def format_message(message: A2AMessage) -> A2AMessage:
    """Return a complete copy of ``message`` with derivable fields filled.

    Fields already present are kept as-is, so formatting is idempotent.
    """
    metadata = message.metadata or MessageMetadata()
    metadata = replace(
        metadata,
        timestamp=now_ms() if metadata.timestamp is None else metadata.timestamp,
        correlation_id=new_id() if metadata.correlation_id is None else metadata.correlation_id,
    )
    return replace(
        message,
        id=message.id or new_id(),
        content=message.content if message.content is not None else "",
        metadata=metadata,
    )


def make_error_message(
    sender: Participant,
    recipient: Optional[Participant],
    code: str,
    description: str,
    correlation_id: Optional[str] = None,
    details: Any = None,
) -> A2AMessage:
    """Build a complete ERROR message answering ``recipient``."""
    return format_message(
        A2AMessage(
            type=MessageType.ERROR,
            sender=sender,
            recipient=recipient,
            metadata=MessageMetadata(correlation_id=correlation_id),
            error=A2AError(code=code, message=description, details=details),
        )
    )


def correlation_of(message: Any) -> Optional[str]:
    metadata = getattr(message, "metadata", None)
    return getattr(metadata, "correlation_id", None)


class ProtocolHandler:
    """Gatekeeper for message shape; wraps the module functions."""

    def __init__(self, event_bus: EventBus) -> None:
        self._event_bus = event_bus

    def validate_message(self, message: Any) -> ValidationResult:
        return validate_message(message)

    def format_message(self, message: A2AMessage) -> A2AMessage:
        formatted = format_message(message)
        self._event_bus.emit(
            MESSAGE_FORMATTED, {"messageId": formatted.id, "message": formatted}
        )
        return formatted

    def make_error_message(
        self,
        sender: Participant,
        recipient: Optional[Participant],
        code: str,
        description: str,
        correlation_id: Optional[str] = None,
    ) -> A2AMessage:
        return make_error_message(sender, recipient, code, description, correlation_id)
