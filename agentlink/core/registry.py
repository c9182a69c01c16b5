"""In-memory directory of agents and the capabilities they advertise."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from .errors import AgentNotFoundError
from .event_bus import (
    REGISTRY_AGENT_CAPABILITIES_UPDATED,
    REGISTRY_AGENT_ENDPOINTS_UPDATED,
    REGISTRY_AGENT_IMPORTED,
    REGISTRY_AGENT_REGISTERED,
    REGISTRY_AGENT_UPDATED,
    REGISTRY_CLEARED,
    EventBus,
)
from .models import AgentCard, AgentEndpoints, AgentEntry, Capability

logger = logging.getLogger(__name__)


class AgentRegistry:
    """Directory mapping agent identifiers to their declared capabilities.

    Owned by the composition root and handed to the router and connector;
    separate instances never share state.
    """

    def __init__(self, event_bus: EventBus) -> None:
        self._event_bus = event_bus
        self._agents: Dict[str, AgentEntry] = {}

    def register_agent(
        self,
        agent_id: str,
        capabilities: Iterable[Capability],
        name: Optional[str] = None,
    ) -> AgentEntry:
        """Insert or replace the entry for ``agent_id``."""
        if not agent_id:
            raise ValueError("agent_id must be a non-empty string")
        replaced = agent_id in self._agents
        entry = AgentEntry(id=agent_id, name=name or agent_id, capabilities=list(capabilities))
        self._agents[agent_id] = entry

        event = REGISTRY_AGENT_UPDATED if replaced else REGISTRY_AGENT_REGISTERED
        self._event_bus.emit(event, {"agentId": agent_id, "agent": entry})
        logger.info(
            "Agent %s %s with %d capabilities",
            agent_id,
            "re-registered" if replaced else "registered",
            len(entry.capabilities),
        )
        return entry

    def get_agent(self, agent_id: str) -> Optional[AgentEntry]:
        return self._agents.get(agent_id)

    def get_all_agents(self) -> List[AgentEntry]:
        return list(self._agents.values())

    def find_agents_by_capability(self, capability_id: str) -> List[AgentEntry]:
        return [entry for entry in self._agents.values() if entry.has_capability(capability_id)]

    def update_agent_capabilities(
        self, agent_id: str, capabilities: Iterable[Capability]
    ) -> AgentEntry:
        entry = self._require(agent_id)
        entry.capabilities = list(capabilities)
        self._event_bus.emit(
            REGISTRY_AGENT_CAPABILITIES_UPDATED,
            {"agentId": agent_id, "capabilities": list(entry.capabilities)},
        )
        logger.info("Agent %s capabilities updated", agent_id)
        return entry

    def update_agent_endpoints(
        self,
        agent_id: str,
        *,
        messaging: Optional[str] = None,
        task_delegation: Optional[str] = None,
        capability_discovery: Optional[str] = None,
    ) -> AgentEntry:
        """Replace only the endpoints that are given; empty values are ignored."""
        entry = self._require(agent_id)
        current = entry.endpoints
        entry.endpoints = replace(
            current,
            messaging=messaging or current.messaging,
            task_delegation=task_delegation or current.task_delegation,
            capability_discovery=capability_discovery or current.capability_discovery,
        )
        self._event_bus.emit(
            REGISTRY_AGENT_ENDPOINTS_UPDATED, {"agentId": agent_id, "endpoints": entry.endpoints}
        )
        logger.info("Agent %s endpoints updated", agent_id)
        return entry

    def clear(self) -> None:
        self._agents.clear()
        self._event_bus.emit(REGISTRY_CLEARED, {})
        logger.info("Agent registry cleared")

    def export_agent_card(self, agent_id: str) -> AgentCard:
        entry = self._require(agent_id)
        return AgentCard(
            id=entry.id,
            name=entry.name,
            capabilities=list(entry.capabilities),
            endpoints=entry.endpoints,
        )

    def import_agent_card(self, card: AgentCard) -> AgentEntry:
        """Register an agent described by a card, filling missing endpoints."""
        defaults = AgentEndpoints.for_agent(card.id)
        endpoints = card.endpoints
        entry = AgentEntry(
            id=card.id,
            name=card.name,
            capabilities=list(card.capabilities),
            endpoints=AgentEndpoints(
                messaging=(endpoints and endpoints.messaging) or defaults.messaging,
                task_delegation=(endpoints and endpoints.task_delegation) or defaults.task_delegation,
                capability_discovery=(endpoints and endpoints.capability_discovery)
                or defaults.capability_discovery,
            ),
        )
        self._agents[card.id] = entry
        self._event_bus.emit(REGISTRY_AGENT_IMPORTED, {"agentId": card.id, "agent": entry})
        logger.info("Agent %s imported from card", card.id)
        return entry

    def _require(self, agent_id: str) -> AgentEntry:
        entry = self._agents.get(agent_id)
        if entry is None:
            raise AgentNotFoundError(agent_id)
        return entry

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents
