"""Top-level v1 API router."""

from __future__ import annotations

from fastapi import APIRouter

from .endpoints.agents import router as agents_router
from .endpoints.batches import router as batches_router
from .endpoints.runs import router as runs_router
from .endpoints.sessions import router as sessions_router
from .endpoints.tools import router as tools_router

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(runs_router)
api_v1_router.include_router(batches_router)
api_v1_router.include_router(sessions_router)
api_v1_router.include_router(agents_router)
api_v1_router.include_router(tools_router)
