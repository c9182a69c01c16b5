"""Application runtime composition helpers."""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

from agentlink.agents.base import Agent, AgentDefinition
from agentlink.agents.echo import EchoAgent
from agentlink.config import Config, config
from agentlink.core.event_bus import EventBus
from agentlink.core.models import Participant
from agentlink.core.protocol import ProtocolHandler
from agentlink.core.registry import AgentRegistry
from agentlink.core.router import MessageRouter
from agentlink.orchestration.connector import AgentConnector
from agentlink.orchestration.integration import A2AIntegration

_DEFAULT_AGENTS = [
    AgentDefinition(id="echo-agent", name="Echo", tools=["echo"]),
]


@dataclass(frozen=True)
class A2AComponents:
    registry: AgentRegistry
    protocol_handler: ProtocolHandler
    message_router: MessageRouter
    agent_connector: AgentConnector


def create_a2a_components(event_bus: EventBus, settings: Optional[Config] = None) -> A2AComponents:
    """Build a fresh, independent set of wired A2A components."""
    settings = settings or config
    registry = AgentRegistry(event_bus)
    protocol_handler = ProtocolHandler(event_bus)
    message_router = MessageRouter(
        event_bus,
        registry,
        system=Participant(id=settings.system_id, name=settings.system_name),
        broadcast_timeout=settings.broadcast_timeout,
    )
    agent_connector = AgentConnector(
        event_bus=event_bus,
        registry=registry,
        router=message_router,
        protocol_handler=protocol_handler,
        delegation_timeout=settings.delegation_timeout,
    )
    return A2AComponents(
        registry=registry,
        protocol_handler=protocol_handler,
        message_router=message_router,
        agent_connector=agent_connector,
    )


@lru_cache
def get_event_bus() -> EventBus:
    return EventBus()


@lru_cache
def get_integration() -> A2AIntegration:
    return A2AIntegration(get_event_bus(), config=config)


def get_components() -> A2AComponents:
    return get_integration().components


def default_agents() -> List[Agent]:
    return [EchoAgent(definition) for definition in _DEFAULT_AGENTS]


async def initialize_default_agents() -> None:
    """Register the host's built-in agents on application startup."""
    await get_integration().initialize(default_agents())
