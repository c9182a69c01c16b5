"""Read-only HTTP API exposing the A2A agent directory."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from agentlink.core.errors import AgentNotFoundError
from agentlink.core.models import AgentCard, AgentEntry, Capability
from agentlink.runtime import A2AComponents, get_components

router = APIRouter(prefix="/a2a", tags=["a2a"])


class CapabilityResponse(BaseModel):
    id: str
    name: str
    version: str
    description: str

    @classmethod
    def from_capability(cls, capability: Capability) -> "CapabilityResponse":
        return cls(**capability.to_dict())


class EndpointsResponse(BaseModel):
    messaging: str
    task_delegation: str
    capability_discovery: str


class AgentResponse(BaseModel):
    id: str
    name: str
    capabilities: List[CapabilityResponse]
    endpoints: EndpointsResponse

    @classmethod
    def from_entry(cls, entry: AgentEntry) -> "AgentResponse":
        return cls(
            id=entry.id,
            name=entry.name,
            capabilities=[CapabilityResponse.from_capability(cap) for cap in entry.capabilities],
            endpoints=EndpointsResponse(
                messaging=entry.endpoints.messaging,
                task_delegation=entry.endpoints.task_delegation,
                capability_discovery=entry.endpoints.capability_discovery,
            ),
        )


class AgentCardResponse(AgentResponse):
    version: str = Field(..., description="Card format version")

    @classmethod
    def from_card(cls, card: AgentCard) -> "AgentCardResponse":
        base = AgentResponse.from_entry(
            AgentEntry(id=card.id, name=card.name, capabilities=card.capabilities, endpoints=card.endpoints)
        )
        return cls(**base.model_dump(), version=card.version)


@router.get("/agents", response_model=List[AgentResponse])
async def list_agents(components: A2AComponents = Depends(get_components)) -> List[AgentResponse]:
    return [AgentResponse.from_entry(entry) for entry in components.registry.get_all_agents()]


@router.get("/agents/{agent_id}", response_model=AgentCardResponse)
async def get_agent_card(
    agent_id: str,
    components: A2AComponents = Depends(get_components),
) -> AgentCardResponse:
    try:
        card = components.registry.export_agent_card(agent_id)
    except AgentNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return AgentCardResponse.from_card(card)


@router.get("/capabilities", response_model=List[CapabilityResponse])
async def list_capabilities(
    capability: Optional[List[str]] = Query(default=None, description="Capability ids to match"),
    components: A2AComponents = Depends(get_components),
) -> List[CapabilityResponse]:
    registry = components.registry
    if capability:
        entries = [entry for cap_id in capability for entry in registry.find_agents_by_capability(cap_id)]
        found = [cap for entry in entries for cap in entry.capabilities if cap.id in capability]
    else:
        found = [cap for entry in registry.get_all_agents() for cap in entry.capabilities]
    return [CapabilityResponse.from_capability(cap) for cap in dict.fromkeys(found)]
