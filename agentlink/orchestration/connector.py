"""Agent-facing facade turning message exchange into discovery and delegation."""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Union

from agentlink.agents.base import Agent
from agentlink.core.errors import (
    A2AProtocolError,
    InvalidMessageError,
    InvalidTaskTransitionError,
    UnsupportedMessageTypeError,
)
from agentlink.core.event_bus import AGENT_REGISTERED, TASK_UPDATE, EventBus, Subscription
from agentlink.core.models import (
    BROADCAST_ADDRESS,
    A2AError,
    A2AMessage,
    A2ATask,
    A2ATaskResult,
    A2ATaskUpdate,
    Capability,
    MessageMetadata,
    MessageType,
    Participant,
    TaskStatus,
    TaskSummary,
)
from agentlink.core.protocol import ProtocolHandler, correlation_of, new_id
from agentlink.core.registry import AgentRegistry
from agentlink.core.router import MessageRouter

logger = logging.getLogger(__name__)

TaskUpdateCallback = Callable[[A2ATaskUpdate], Union[None, Awaitable[None]]]

DEFAULT_TIMEOUT: Any = object()


class AgentConnector:
    """Bridge between agents and the A2A protocol components.

    Every public operation reports failure as a value: an ERROR message from
    :meth:`send_message`, a FAILED :class:`A2ATaskResult` from
    :meth:`delegate_task`.
    """

    def __init__(
        self,
        *,
        event_bus: EventBus,
        registry: AgentRegistry,
        router: MessageRouter,
        protocol_handler: ProtocolHandler,
        delegation_timeout: Optional[float] = None,
    ) -> None:
        self._event_bus = event_bus
        self._registry = registry
        self._router = router
        self._protocol = protocol_handler
        self._delegation_timeout = delegation_timeout

    @property
    def system(self) -> Participant:
        return self._router.system

    async def register_agent(self, agent: Agent) -> None:
        """Publish the agent's capabilities and install its inbound handler."""
        capabilities = self.extract_capabilities(agent)
        self._registry.register_agent(agent.agent_id, capabilities, name=agent.name)

        async def handle(message: A2AMessage) -> A2AMessage:
            return await self._handle_agent_message(agent, message)

        self._router.register_handler(agent.agent_id, handle)
        self._event_bus.emit(AGENT_REGISTERED, {"agentId": agent.agent_id})
        logger.info("Agent %s registered with A2A", agent.agent_id)

    @staticmethod
    def extract_capabilities(agent: Agent) -> List[Capability]:
        """One capability per declared tool name."""
        return [
            Capability(id=tool, name=tool, version="1.0.0", description=f"Capability for {tool}")
            for tool in agent.tools
        ]

    async def send_message(
        self,
        from_agent: Agent,
        message: A2AMessage,
        *,
        timeout: Optional[float] = None,
    ) -> A2AMessage:
        """Normalize, validate and route ``message``; failures come back as ERROR."""
        caller = from_agent.participant
        formatted = None
        try:
            if message.sender is None:
                message = replace(message, sender=caller)
            formatted = self._protocol.format_message(message)
            validation = self._protocol.validate_message(formatted)
            if not validation.valid:
                raise InvalidMessageError(validation.messages)

            routing = self._router.route_message(formatted)
            if timeout is not None:
                return await asyncio.wait_for(routing, timeout=timeout)
            return await routing
        except asyncio.TimeoutError:
            recipient = message.recipient.id if message.recipient else "broadcast"
            logger.error("Message from %s to %s timed out after %ss", caller.id, recipient, timeout)
            return self._protocol.make_error_message(
                self.system,
                caller,
                "timeout",
                f"No response from {recipient} within {timeout} seconds",
                correlation_of(formatted or message),
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("Error sending message from agent %s: %s", caller.id, exc)
            return self._protocol.make_error_message(
                self.system,
                caller,
                getattr(exc, "code", "message_sending_error"),
                str(exc) or exc.__class__.__name__,
                correlation_of(formatted or message),
            )

    async def discover_capabilities(
        self, from_agent: Agent, filter: Optional[Iterable[str]] = None
    ) -> List[Capability]:
        """Announce a discovery broadcast, then answer from the registry snapshot."""
        requested = list(dict.fromkeys(filter)) if filter else []
        message = self._protocol.format_message(
            A2AMessage(
                type=MessageType.CAPABILITY_DISCOVERY,
                sender=from_agent.participant,
                recipient=None,
                content=json.dumps(requested) if requested else "",
            )
        )
        try:
            await self._router.broadcast_message(message)
        except Exception as exc:  # noqa: BLE001
            logger.error("Capability discovery broadcast from %s failed: %s", from_agent.agent_id, exc)

        capabilities: List[Capability] = []
        if requested:
            for capability_id in requested:
                for entry in self._registry.find_agents_by_capability(capability_id):
                    capabilities.extend(cap for cap in entry.capabilities if cap.id == capability_id)
        else:
            for entry in self._registry.get_all_agents():
                capabilities.extend(entry.capabilities)
        return list(dict.fromkeys(capabilities))

    async def delegate_task(
        self,
        from_agent: Agent,
        to_agent_id: str,
        task: Union[A2ATask, Mapping[str, Any]],
        *,
        timeout: Any = DEFAULT_TIMEOUT,
    ) -> A2ATaskResult:
        """Hand ``task`` to another agent and wait for its result.

        Never raises: delivery problems, ERROR replies and timeouts all
        produce a FAILED result attributed to the connector.
        """
        if timeout is DEFAULT_TIMEOUT:
            timeout = self._delegation_timeout
        task_id = getattr(task, "id", None) or (task.get("id") if isinstance(task, Mapping) else None)
        task_id = task_id or new_id()
        try:
            if not to_agent_id or to_agent_id == BROADCAST_ADDRESS:
                raise A2AProtocolError(
                    "Tasks must be delegated to a single agent", code="invalid_recipient"
                )
            pending = task if isinstance(task, A2ATask) else A2ATask.from_dict(dict(task))
            pending = replace(
                pending,
                id=task_id,
                status=TaskStatus.PENDING,
                delegated_by=pending.delegated_by or from_agent.participant,
            )
            self._publish_task_update(task_id, TaskStatus.PENDING, f"Task delegated to {to_agent_id}")

            entry = self._registry.get_agent(to_agent_id)
            message = A2AMessage(
                type=MessageType.TASK_DELEGATION,
                sender=from_agent.participant,
                recipient=Participant(id=to_agent_id, name=entry.name if entry else to_agent_id),
                content=json.dumps(pending.to_dict()),
                task=TaskSummary(
                    id=task_id,
                    description=pending.description,
                    status=TaskStatus.PENDING,
                    delegated_by=from_agent.agent_id,
                ),
                metadata=MessageMetadata(correlation_id=new_id()),
            )
            response = await self.send_message(from_agent, message, timeout=timeout)

            if response.type == MessageType.TASK_COMPLETION:
                result = A2ATaskResult.from_dict(json.loads(response.content))
                if result.task_id != task_id:
                    raise A2AProtocolError(
                        f"Completion for task {result.task_id} does not match task {task_id}",
                        code="task_id_mismatch",
                    )
                return result
            if response.type == MessageType.ERROR:
                error = response.error or A2AError("task_delegation_error", "Unknown delegation error")
                raise A2AProtocolError(error.message, code=error.code)
            raise A2AProtocolError(
                f"Unexpected response type: {response.type.value}", code="unexpected_response"
            )
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Error delegating task %s from %s to %s: %s",
                task_id,
                from_agent.agent_id,
                to_agent_id,
                exc,
            )
            description = str(exc) or exc.__class__.__name__
            self._publish_task_update(task_id, TaskStatus.FAILED, description)
            return A2ATaskResult(
                task_id=task_id,
                status=TaskStatus.FAILED,
                completed_by=self.system,
                error=A2AError(code=getattr(exc, "code", "task_delegation_error"), message=description),
            )

    def subscribe_to_task_updates(self, task_id: str, callback: TaskUpdateCallback) -> Subscription:
        def handler(data: Dict[str, Any]) -> Union[None, Awaitable[None]]:
            if data.get("taskId") == task_id:
                return callback(data["update"])
            return None

        return self._event_bus.subscribe(TASK_UPDATE, handler)

    async def _handle_agent_message(self, agent: Agent, message: A2AMessage) -> A2AMessage:
        try:
            validation = self._protocol.validate_message(message)
            if not validation.valid:
                raise InvalidMessageError(validation.messages)

            if message.type == MessageType.CAPABILITY_DISCOVERY:
                return self._handle_capability_discovery(agent, message)
            if message.type == MessageType.TASK_DELEGATION:
                return await self._handle_task_delegation(agent, message)
            if message.type == MessageType.REQUEST:
                return await self._handle_request(agent, message)
            raise UnsupportedMessageTypeError(message.type)
        except Exception as exc:  # noqa: BLE001
            logger.error("Error handling message for agent %s: %s", agent.agent_id, exc)
            return self._protocol.make_error_message(
                agent.participant,
                getattr(message, "sender", None),
                getattr(exc, "code", "message_handling_error"),
                str(exc) or exc.__class__.__name__,
                correlation_of(message),
            )

    def _handle_capability_discovery(self, agent: Agent, message: A2AMessage) -> A2AMessage:
        capabilities = self.extract_capabilities(agent)
        if message.content:
            requested = json.loads(message.content)
            if not isinstance(requested, list):
                raise A2AProtocolError(
                    "Capability filter must be a list of capability ids",
                    code="invalid_capability_filter",
                )
            capabilities = [cap for cap in capabilities if cap.id in requested]
        return self._reply(
            agent,
            message,
            MessageType.CAPABILITY_RESPONSE,
            json.dumps([cap.to_dict() for cap in capabilities]),
        )

    async def _handle_task_delegation(self, agent: Agent, message: A2AMessage) -> A2AMessage:
        task = A2ATask.from_dict(json.loads(message.content))
        if not task.id:
            raise InvalidMessageError(["Delegated task has no id"])
        if not task.status.can_transition_to(TaskStatus.IN_PROGRESS):
            raise InvalidTaskTransitionError(
                f"Task {task.id} cannot move from {task.status.value} to in_progress"
            )

        task = replace(task, status=TaskStatus.IN_PROGRESS)
        self._publish_task_update(task.id, TaskStatus.IN_PROGRESS, "Task received and processing")

        error: Optional[A2AError] = None
        payload: Any = None
        try:
            payload = await agent.execute_task(task)
            status = TaskStatus.COMPLETED
            self._publish_task_update(task.id, status, "Task completed")
        except Exception as exc:  # noqa: BLE001
            logger.error("Agent %s failed task %s: %s", agent.agent_id, task.id, exc)
            status = TaskStatus.FAILED
            error = A2AError(code="task_execution_error", message=str(exc) or exc.__class__.__name__)
            self._publish_task_update(task.id, status, error.message)

        result = A2ATaskResult(
            task_id=task.id,
            status=status,
            completed_by=agent.participant,
            result=payload,
            error=error,
        )
        reply = self._reply(
            agent,
            message,
            MessageType.TASK_COMPLETION,
            json.dumps(result.to_dict(), default=str),
        )
        reply.task = TaskSummary(
            id=task.id,
            description=task.description,
            status=status,
            delegated_by=task.delegated_by.id if task.delegated_by else None,
        )
        return reply

    async def _handle_request(self, agent: Agent, message: A2AMessage) -> A2AMessage:
        content = await agent.handle_request(message)
        return self._reply(agent, message, MessageType.RESPONSE, content)

    def _reply(
        self, agent: Agent, message: A2AMessage, message_type: MessageType, content: str
    ) -> A2AMessage:
        return self._protocol.format_message(
            A2AMessage(
                type=message_type,
                sender=agent.participant,
                recipient=message.sender,
                content=content,
                metadata=MessageMetadata(correlation_id=correlation_of(message)),
            )
        )

    def _publish_task_update(self, task_id: str, status: TaskStatus, text: str) -> None:
        update = A2ATaskUpdate(task_id=task_id, status=status, message=text)
        self._event_bus.emit(TASK_UPDATE, {"taskId": task_id, "update": update})
