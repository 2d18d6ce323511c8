"""Session endpoints for Web API v1."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..deps import get_service
from .....service import OrchestratorService

router = APIRouter(prefix="/sessions", tags=["sessions"])
logger = logging.getLogger("agent_orchestrator.web.api")


class CancelSessionResponse(BaseModel):
    success: bool
    session_id: str
    message: str


@router.get("")
async def list_sessions(
    agent: Optional[str] = None,
    active_only: bool = False,
    service: OrchestratorService = Depends(get_service),
) -> dict:
    return service.list_sessions(agent=agent, active_only=active_only)


@router.get("/{session_id}")
async def get_session(
    session_id: str,
    service: OrchestratorService = Depends(get_service),
) -> dict:
    return service.get_session(session_id).to_dict()


@router.post("/{session_id}/cancel", response_model=CancelSessionResponse)
async def cancel_session(
    session_id: str,
    service: OrchestratorService = Depends(get_service),
) -> CancelSessionResponse:
    outcome = await service.cancel(session_id)
    logger.info("session_cancel session_id=%s cancelled=%s", session_id, outcome["success"])
    return CancelSessionResponse(**outcome)
