"""Agent catalog endpoint for Web API v1."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..deps import get_service
from .....service import OrchestratorService

router = APIRouter(prefix="/agents", tags=["agents"])


class AgentSummary(BaseModel):
    name: str
    description: str
    model: Optional[str] = None
    source: Optional[str] = None


class ListAgentsResponse(BaseModel):
    agents: List[AgentSummary]


@router.get("", response_model=ListAgentsResponse)
async def list_agents(service: OrchestratorService = Depends(get_service)) -> ListAgentsResponse:
    service.refresh_agents()
    return ListAgentsResponse(
        agents=[
            AgentSummary(name=a.name, description=a.description, model=a.model, source=a.source)
            for a in service.catalog.list()
        ]
    )
