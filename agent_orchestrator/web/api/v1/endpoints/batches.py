"""Parallel batch endpoint for Web API v1."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from ..deps import get_service
from .....agents.protocol import BatchTask
from .....service import OrchestratorService
from .....tools.orchestration import RunAgentsBatchParams

router = APIRouter(tags=["batches"])
logger = logging.getLogger("agent_orchestrator.web.api")


@router.post("/batches")
async def create_batch(
    request: RunAgentsBatchParams,
    service: OrchestratorService = Depends(get_service),
) -> dict:
    tasks = [BatchTask(agent=t.agent, task=t.task, id=t.id) for t in request.tasks]
    result = await service.run_batch(tasks)
    logger.info(
        "batch_finished tasks=%d succeeded=%d failed=%d duration_ms=%.2f",
        len(tasks),
        result.succeeded,
        result.failed,
        result.total_duration_ms,
    )
    return result.to_dict()
