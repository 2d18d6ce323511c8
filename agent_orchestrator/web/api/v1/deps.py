"""Dependency providers for v1 API."""

from __future__ import annotations

from fastapi import Request

from ....service import OrchestratorService


def get_service(request: Request) -> OrchestratorService:
    """Access the shared orchestrator service from app state."""
    return request.app.state.orchestrator
