"""FastAPI app entrypoint for the orchestrator web API."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from time import perf_counter
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from ..agents.catalog import AgentCatalog
from ..config import OrchestratorConfig, load_config
from ..engine.base import ExecutionEngine
from ..errors import AgentError
from ..service import OrchestratorService
from .api.v1.router import api_v1_router
from .errors import APIError, agent_error_handler, api_error_handler, validation_error_handler

logger = logging.getLogger("agent_orchestrator.web.api")


def create_app(
    config: Optional[OrchestratorConfig] = None,
    engine: Optional[ExecutionEngine] = None,
    catalog: Optional[AgentCatalog] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or load_config()
    service = OrchestratorService(config=config, engine=engine, catalog=catalog)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        logger.info(
            "Orchestrator starting engine=%s agents=%s",
            config.engine,
            ", ".join(service.catalog.names()) or "none",
        )
        try:
            yield
        finally:
            await service.shutdown()

    app = FastAPI(title="Agent Orchestrator API", version="0.1.0", lifespan=lifespan)
    app.state.orchestrator = service
    app.include_router(api_v1_router)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        start = perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (perf_counter() - start) * 1000
            path_params = request.scope.get("path_params", {})
            logger.info(
                "api_request method=%s path=%s status=%s duration_ms=%.2f session_id=%s",
                request.method,
                request.url.path,
                500,
                duration_ms,
                path_params.get("session_id", "-"),
            )
            raise

        duration_ms = (perf_counter() - start) * 1000
        path_params = request.scope.get("path_params", {})
        logger.info(
            "api_request method=%s path=%s status=%s duration_ms=%.2f session_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            path_params.get("session_id", "-"),
        )
        return response

    @app.get("/healthz", tags=["system"])
    async def healthz() -> dict:
        return {
            "status": "ok",
            "engine": config.engine,
            "agents": len(service.catalog),
            "active_sessions": service.ledger.active_count,
        }

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(AgentError, agent_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    return app


def main() -> None:
    """Run development API server."""
    import uvicorn

    uvicorn.run(
        "agent_orchestrator.web.app:create_app",
        factory=True,
        host=os.getenv("AGENT_ORCHESTRATOR_HOST", "127.0.0.1"),
        port=int(os.getenv("AGENT_ORCHESTRATOR_PORT", "8000")),
    )
