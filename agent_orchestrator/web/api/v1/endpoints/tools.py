"""Tool listing and dispatch endpoints for Web API v1."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel

from ..deps import get_service
from .....service import OrchestratorService

router = APIRouter(prefix="/tools", tags=["tools"])
logger = logging.getLogger("agent_orchestrator.web.api")


class ListToolsResponse(BaseModel):
    tools: List[Dict[str, Any]]


class CallToolResponse(BaseModel):
    is_error: bool
    content: Dict[str, Any]


@router.get("", response_model=ListToolsResponse)
async def list_tools(service: OrchestratorService = Depends(get_service)) -> ListToolsResponse:
    return ListToolsResponse(tools=service.list_tools())


@router.post("/{name}", response_model=CallToolResponse)
async def call_tool(
    name: str,
    arguments: Optional[Dict[str, Any]] = Body(default=None),
    service: OrchestratorService = Depends(get_service),
) -> CallToolResponse:
    result = await service.call_tool(name, arguments or {})
    logger.info("tool_call name=%s is_error=%s", name, result.is_error)
    return CallToolResponse(is_error=result.is_error, content=result.data)
