"""API error helpers and exception handlers."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..errors import AgentError, AgentErrorCode

STATUS_BY_CODE: Dict[AgentErrorCode, int] = {
    AgentErrorCode.AGENT_NOT_FOUND: 404,
    AgentErrorCode.SESSION_NOT_FOUND: 404,
    AgentErrorCode.SESSION_ALREADY_ACTIVE: 409,
    AgentErrorCode.INVALID_BATCH: 400,
    AgentErrorCode.INVALID_CONFIG: 400,
}


class APIError(Exception):
    """Application-level API error with status/code mapping."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details or {}

    @classmethod
    def from_agent_error(cls, exc: AgentError) -> APIError:
        return cls(
            status_code=STATUS_BY_CODE.get(exc.code, 500),
            code=exc.code.value,
            message=exc.message,
            details=exc.details,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


async def api_error_handler(_: Request, exc: APIError) -> JSONResponse:
    """Render contract-compliant error response."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def agent_error_handler(request: Request, exc: AgentError) -> JSONResponse:
    """Map orchestrator errors onto HTTP status codes."""
    return await api_error_handler(request, APIError.from_agent_error(exc))


async def validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    """Normalize FastAPI validation errors to API contract shape."""
    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "code": "BAD_REQUEST",
                "message": "Invalid request payload",
                "details": {"errors": exc.errors()},
            }
        },
    )
