"""Single-run endpoint for Web API v1."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from ..deps import get_service
from .....service import OrchestratorService
from .....tools.orchestration import RunAgentParams

router = APIRouter(tags=["runs"])
logger = logging.getLogger("agent_orchestrator.web.api")


@router.post("/runs")
async def create_run(
    request: RunAgentParams,
    service: OrchestratorService = Depends(get_service),
) -> dict:
    result = await service.run(request.agent, request.task, resume=request.resume, fork=request.fork)
    logger.info(
        "run_finished agent=%s session_id=%s success=%s resumed=%s",
        request.agent,
        result.session_id,
        result.success,
        bool(request.resume),
    )
    return result.to_dict()
