"""Tests for the agent connector: messaging, discovery and delegation."""
from __future__ import annotations

import asyncio
import json
from typing import Any, List

import pytest

from agentlink.agents.base import Agent, AgentDefinition
from agentlink.agents.echo import EchoAgent
from agentlink.config import Config
from agentlink.core.event_bus import AGENT_REGISTERED, EventBus
from agentlink.core.models import (
    A2AMessage,
    A2ATask,
    A2ATaskResult,
    A2ATaskUpdate,
    MessageFilter,
    MessageMetadata,
    MessageType,
    Participant,
    TaskStatus,
)
from agentlink.core.protocol import format_message
from agentlink.runtime import A2AComponents, create_a2a_components


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class RecordingAgent(Agent):
    """Agent that remembers every request and task it receives."""

    def __init__(self, definition: AgentDefinition) -> None:
        super().__init__(definition)
        self.requests: List[A2AMessage] = []
        self.tasks: List[A2ATask] = []

    async def handle_request(self, message: A2AMessage) -> str:
        self.requests.append(message)
        return f"ack {message.content}"

    async def execute_task(self, task: A2ATask) -> Any:
        self.tasks.append(task)
        return {"done": task.description}


class FailingAgent(EchoAgent):
    async def execute_task(self, task: A2ATask) -> Any:
        raise RuntimeError("boom")


class SlowAgent(EchoAgent):
    async def execute_task(self, task: A2ATask) -> Any:
        await asyncio.sleep(5)
        return None


def _components(bus: EventBus | None = None) -> A2AComponents:
    return create_a2a_components(bus or EventBus(), Config())


def _agent(agent_id: str, *tools: str, cls: type = EchoAgent) -> Agent:
    return cls(AgentDefinition(id=agent_id, name=agent_id.title(), tools=list(tools)))


def _request(sender: Agent | None, recipient_id: str, content: str = "hi") -> A2AMessage:
    return A2AMessage(
        type=MessageType.REQUEST,
        sender=sender.participant if sender else None,
        recipient=Participant(id=recipient_id, name=recipient_id),
        content=content,
    )


@pytest.mark.anyio
async def test_register_agent_derives_capabilities_and_installs_handler() -> None:
    bus = EventBus()
    registered = []
    bus.on(AGENT_REGISTERED, registered.append)
    components = _components(bus)
    bob = _agent("bob", "search", "write")

    await components.agent_connector.register_agent(bob)

    entry = components.registry.get_agent("bob")
    assert [cap.id for cap in entry.capabilities] == ["search", "write"]
    assert entry.capabilities[0].name == "search"
    assert entry.capabilities[0].version == "1.0.0"
    assert entry.name == "Bob"
    assert components.message_router.has_handler("bob")
    assert registered == [{"agentId": "bob"}]


@pytest.mark.anyio
async def test_send_message_invokes_target_once_with_sender() -> None:
    components = _components()
    connector = components.agent_connector
    alice = _agent("alice")
    bob = _agent("bob", cls=RecordingAgent)
    await connector.register_agent(alice)
    await connector.register_agent(bob)

    response = await connector.send_message(alice, _request(None, "bob"))

    assert len(bob.requests) == 1
    assert bob.requests[0].sender.id == "alice"
    assert bob.requests[0].id and bob.requests[0].metadata.correlation_id
    assert response.type == MessageType.RESPONSE
    assert response.content == "ack hi"
    assert response.recipient.id == "alice"
    assert response.metadata.correlation_id == bob.requests[0].metadata.correlation_id


@pytest.mark.anyio
async def test_send_message_rejects_invalid_shape() -> None:
    components = _components()
    connector = components.agent_connector
    alice = _agent("alice")
    bob = _agent("bob", cls=RecordingAgent)
    await connector.register_agent(bob)

    response = await connector.send_message(alice, _request(alice, ""))

    assert response.type == MessageType.ERROR
    assert response.error.code == "invalid_message"
    assert response.recipient.id == "alice"
    assert bob.requests == []


@pytest.mark.anyio
async def test_send_message_to_unknown_agent_returns_error() -> None:
    components = _components()
    alice = _agent("alice")

    response = await components.agent_connector.send_message(alice, _request(alice, "ghost"))

    assert response.type == MessageType.ERROR
    assert response.recipient.id == "alice"
    assert "ghost" in response.error.message


@pytest.mark.anyio
async def test_send_message_timeout_is_reported_as_error() -> None:
    components = _components()
    alice = _agent("alice")

    async def never_answers(message: A2AMessage) -> A2AMessage:
        await asyncio.sleep(5)
        return message

    components.message_router.register_handler("bob", never_answers)

    response = await components.agent_connector.send_message(
        alice, _request(alice, "bob"), timeout=0.05
    )

    assert response.type == MessageType.ERROR
    assert response.error.code == "timeout"


@pytest.mark.anyio
async def test_inbound_unsupported_type_is_answered_with_error() -> None:
    components = _components()
    bob = _agent("bob")
    await components.agent_connector.register_agent(bob)

    message = format_message(
        A2AMessage(
            type=MessageType.RESPONSE,
            sender=Participant(id="alice", name="Alice"),
            recipient=Participant(id="bob", name="Bob"),
        )
    )
    response = await components.message_router.route_message(message)

    assert response.type == MessageType.ERROR
    assert response.sender.id == "bob"
    assert response.error.code == "unsupported_message_type"
    assert response.error.message == "Unsupported message type: response"


@pytest.mark.anyio
async def test_inbound_capability_discovery_honours_filter() -> None:
    components = _components()
    bob = _agent("bob", "search", "write")
    await components.agent_connector.register_agent(bob)

    message = format_message(
        A2AMessage(
            type=MessageType.CAPABILITY_DISCOVERY,
            sender=Participant(id="alice", name="Alice"),
            recipient=Participant(id="bob", name="Bob"),
            content=json.dumps(["write"]),
            metadata=MessageMetadata(correlation_id="disc-1"),
        )
    )
    response = await components.message_router.route_message(message)

    assert response.type == MessageType.CAPABILITY_RESPONSE
    assert [cap["id"] for cap in json.loads(response.content)] == ["write"]
    assert response.metadata.correlation_id == "disc-1"


@pytest.mark.anyio
async def test_discover_capabilities_answers_from_registry() -> None:
    components = _components()
    connector = components.agent_connector
    alice = _agent("alice")
    await connector.register_agent(alice)
    await connector.register_agent(_agent("bob", "x"))
    await connector.register_agent(_agent("carol", "y"))
    broadcasts: List[A2AMessage] = []
    components.message_router.subscribe_to_messages(
        MessageFilter(type=MessageType.CAPABILITY_DISCOVERY), broadcasts.append
    )

    filtered = await connector.discover_capabilities(alice, ["x"])
    everything = await connector.discover_capabilities(alice)

    assert [cap.id for cap in filtered] == ["x"]
    assert sorted(cap.id for cap in everything) == ["x", "y"]
    assert sorted(message.recipient.id for message in broadcasts) == ["bob", "bob", "carol", "carol"]


@pytest.mark.anyio
async def test_delegation_round_trip_completes() -> None:
    components = _components()
    connector = components.agent_connector
    alice = _agent("alice")
    bob = _agent("bob", cls=RecordingAgent)
    await connector.register_agent(alice)
    await connector.register_agent(bob)
    updates: List[A2ATaskUpdate] = []
    connector.subscribe_to_task_updates("task-1", updates.append)

    result = await connector.delegate_task(alice, "bob", A2ATask(id="task-1", description="find x"))

    assert result.task_id == "task-1"
    assert result.status == TaskStatus.COMPLETED
    assert result.result == {"done": "find x"}
    assert result.completed_by == Participant(id="bob", name="Bob")
    assert bob.tasks[0].delegated_by.id == "alice"
    assert bob.tasks[0].status == TaskStatus.IN_PROGRESS
    assert [update.status for update in updates] == [
        TaskStatus.PENDING,
        TaskStatus.IN_PROGRESS,
        TaskStatus.COMPLETED,
    ]


@pytest.mark.anyio
async def test_delegation_does_not_mutate_callers_task() -> None:
    components = _components()
    connector = components.agent_connector
    alice = _agent("alice")
    await connector.register_agent(_agent("bob"))
    task = A2ATask(description="find x")
    payload = {"description": "find y"}

    first = await connector.delegate_task(alice, "bob", task)
    second = await connector.delegate_task(alice, "bob", payload)

    assert task.id == "" and task.delegated_by is None
    assert payload == {"description": "find y"}
    assert first.task_id and second.task_id and first.task_id != second.task_id
    assert second.status == TaskStatus.COMPLETED


@pytest.mark.anyio
async def test_delegation_to_unknown_agent_fails_as_result() -> None:
    components = _components()
    connector = components.agent_connector
    alice = _agent("alice")
    updates: List[A2ATaskUpdate] = []
    connector.subscribe_to_task_updates("task-9", updates.append)

    result = await connector.delegate_task(
        alice, "nonexistent", {"id": "task-9", "description": "lost"}
    )

    assert result.status == TaskStatus.FAILED
    assert result.task_id == "task-9"
    assert result.error.message
    assert result.completed_by.id == "a2a_system"
    assert [update.status for update in updates] == [TaskStatus.PENDING, TaskStatus.FAILED]


@pytest.mark.anyio
async def test_failing_task_reports_exception_text() -> None:
    components = _components()
    connector = components.agent_connector
    alice = _agent("alice")
    await connector.register_agent(_agent("bob", cls=FailingAgent))

    result = await connector.delegate_task(alice, "bob", {"description": "find x"})

    assert result.status == TaskStatus.FAILED
    assert result.error.message == "boom"
    assert result.completed_by.id == "bob"


@pytest.mark.anyio
async def test_delegation_timeout_fails_as_result() -> None:
    components = _components()
    connector = components.agent_connector
    alice = _agent("alice")
    await connector.register_agent(_agent("bob", cls=SlowAgent))

    result = await connector.delegate_task(alice, "bob", {"description": "slow"}, timeout=0.05)

    assert result.status == TaskStatus.FAILED
    assert result.error.code == "timeout"


@pytest.mark.anyio
async def test_finished_task_cannot_be_delegated_again() -> None:
    components = _components()
    await components.agent_connector.register_agent(_agent("bob"))
    task = A2ATask(id="done-1", description="old", status=TaskStatus.COMPLETED)

    message = format_message(
        A2AMessage(
            type=MessageType.TASK_DELEGATION,
            sender=Participant(id="alice", name="Alice"),
            recipient=Participant(id="bob", name="Bob"),
            content=json.dumps(task.to_dict()),
        )
    )
    response = await components.message_router.route_message(message)

    assert response.type == MessageType.ERROR
    assert response.error.code == "invalid_task_transition"


@pytest.mark.anyio
async def test_malformed_delegation_content_yields_error() -> None:
    components = _components()
    await components.agent_connector.register_agent(_agent("bob"))

    message = format_message(
        A2AMessage(
            type=MessageType.TASK_DELEGATION,
            sender=Participant(id="alice", name="Alice"),
            recipient=Participant(id="bob", name="Bob"),
            content="not json",
        )
    )
    response = await components.message_router.route_message(message)

    assert response.type == MessageType.ERROR
    assert response.error.code == "message_handling_error"


@pytest.mark.anyio
async def test_task_update_subscription_filters_and_unsubscribes() -> None:
    components = _components()
    connector = components.agent_connector
    alice = _agent("alice")
    await connector.register_agent(_agent("bob"))
    mine: List[A2ATaskUpdate] = []
    subscription = connector.subscribe_to_task_updates("mine", mine.append)

    await connector.delegate_task(alice, "bob", {"id": "other", "description": "x"})
    await connector.delegate_task(alice, "bob", {"id": "mine", "description": "y"})
    subscription.unsubscribe()
    await connector.delegate_task(alice, "bob", {"id": "mine", "description": "z"})

    assert len(mine) == 3
    assert all(update.task_id == "mine" for update in mine)


@pytest.mark.anyio
async def test_reregistering_agent_refreshes_capabilities() -> None:
    components = _components()
    connector = components.agent_connector
    alice = _agent("alice")
    await connector.register_agent(_agent("bob", "old"))
    await connector.register_agent(_agent("bob", "new"))

    capabilities = await connector.discover_capabilities(alice)

    assert [cap.id for cap in capabilities] == ["new"]


@pytest.mark.anyio
async def test_delegation_to_broadcast_address_is_refused() -> None:
    components = _components()
    connector = components.agent_connector
    alice = _agent("alice")
    bob = _agent("bob", cls=RecordingAgent)
    carol = _agent("carol", cls=RecordingAgent)
    await connector.register_agent(bob)
    await connector.register_agent(carol)
    updates: List[A2ATaskUpdate] = []
    connector.subscribe_to_task_updates("t-1", updates.append)

    result = await connector.delegate_task(alice, "*", A2ATask(id="t-1", description="fan out"))

    assert result.status == TaskStatus.FAILED
    assert result.error.code == "invalid_recipient"
    assert bob.tasks == [] and carol.tasks == []
    assert [update.status for update in updates] == [TaskStatus.FAILED]


@pytest.mark.anyio
async def test_completion_for_another_task_is_rejected() -> None:
    components = _components()
    connector = components.agent_connector
    alice = _agent("alice")
    bob = Participant(id="bob", name="Bob")

    async def wrong_task(message: A2AMessage) -> A2AMessage:
        result = A2ATaskResult(task_id="someone-else", status=TaskStatus.COMPLETED, completed_by=bob)
        return format_message(
            A2AMessage(
                type=MessageType.TASK_COMPLETION,
                sender=bob,
                recipient=message.sender,
                content=json.dumps(result.to_dict()),
            )
        )

    components.message_router.register_handler("bob", wrong_task)

    result = await connector.delegate_task(alice, "bob", {"id": "t-2", "description": "x"})

    assert result.task_id == "t-2"
    assert result.status == TaskStatus.FAILED
    assert result.error.code == "task_id_mismatch"
