"""Wire the A2A components into a host application's agents."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, List, Mapping, Optional, Union

from agentlink.agents.base import Agent
from agentlink.core.event_bus import AGENTS_CREATED, SYSTEM_INITIALIZED, EventBus, Subscription
from agentlink.core.models import (
    A2AMessage,
    A2ATask,
    A2ATaskResult,
    Capability,
    MessageMetadata,
    MessageType,
    Participant,
)

if TYPE_CHECKING:
    from agentlink.config import Config
    from agentlink.orchestration.connector import TaskUpdateCallback
    from agentlink.runtime import A2AComponents

logger = logging.getLogger(__name__)


class AgentA2A:
    """Protocol operations bound to one agent's identity."""

    enabled = True

    def __init__(self, agent: Agent, components: A2AComponents) -> None:
        self._agent = agent
        self._components = components

    async def send_message(self, to_agent_id: str, content: str) -> A2AMessage:
        entry = self._components.registry.get_agent(to_agent_id)
        message = A2AMessage(
            type=MessageType.REQUEST,
            sender=self._agent.participant,
            recipient=Participant(id=to_agent_id, name=entry.name if entry else to_agent_id),
            content=content,
            metadata=MessageMetadata(),
        )
        return await self._components.agent_connector.send_message(self._agent, message)

    async def discover_capabilities(self, filter: Optional[Iterable[str]] = None) -> List[Capability]:
        return await self._components.agent_connector.discover_capabilities(self._agent, filter)

    async def delegate_task(
        self, to_agent_id: str, task: Union[A2ATask, Mapping[str, Any]]
    ) -> A2ATaskResult:
        return await self._components.agent_connector.delegate_task(self._agent, to_agent_id, task)

    def subscribe_to_task_updates(self, task_id: str, callback: TaskUpdateCallback) -> Subscription:
        return self._components.agent_connector.subscribe_to_task_updates(task_id, callback)


class A2AIntegration:
    """Host-side hook that enables A2A for every agent the host knows about."""

    def __init__(
        self,
        event_bus: EventBus,
        components: Optional[A2AComponents] = None,
        config: Optional[Config] = None,
    ) -> None:
        from agentlink.runtime import create_a2a_components

        self._event_bus = event_bus
        self.components = components or create_a2a_components(event_bus, config)
        self._created_subscription = event_bus.subscribe(AGENTS_CREATED, self._on_agent_created)

    async def enable_a2a_for_agent(self, agent: Agent) -> AgentA2A:
        """Register ``agent`` and attach its bound protocol operations."""
        await self.components.agent_connector.register_agent(agent)
        agent.a2a = AgentA2A(agent, self.components)
        logger.info("A2A enabled for agent %s", agent.agent_id)
        return agent.a2a

    async def initialize(self, agents: Iterable[Agent]) -> None:
        """Enable A2A for all known agents and announce the system is ready."""
        enabled = []
        for agent in agents:
            await self.enable_a2a_for_agent(agent)
            enabled.append(agent.agent_id)
        self._event_bus.emit(SYSTEM_INITIALIZED, {"agentIds": enabled})
        logger.info("A2A initialized for %d agents", len(enabled))

    def close(self) -> None:
        self._created_subscription.unsubscribe()

    async def _on_agent_created(self, data: Mapping[str, Any]) -> None:
        agent = data.get("agent") if data else None
        if agent is None:
            logger.warning("agents:created event carried no agent")
            return
        try:
            await self.enable_a2a_for_agent(agent)
        except Exception:  # noqa: BLE001
            logger.exception("Error registering agent %s with A2A", getattr(agent, "agent_id", agent))
