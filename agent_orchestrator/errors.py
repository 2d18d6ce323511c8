"""Error taxonomy for the orchestrator core."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Sequence


class AgentErrorCode(str, Enum):
    """Stable error codes surfaced to callers."""

    AGENT_NOT_FOUND = "AGENT_NOT_FOUND"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_ALREADY_ACTIVE = "SESSION_ALREADY_ACTIVE"
    EXECUTION_FAILED = "EXECUTION_FAILED"
    CANCELLED = "CANCELLED"
    INVALID_CONFIG = "INVALID_CONFIG"
    DELEGATION_DEPTH_EXCEEDED = "DELEGATION_DEPTH_EXCEEDED"
    DELEGATION_CYCLE_DETECTED = "DELEGATION_CYCLE_DETECTED"
    DELEGATION_FAILED = "DELEGATION_FAILED"
    INVALID_BATCH = "INVALID_BATCH"


class AgentError(Exception):
    """Base error carrying a stable code plus structured details."""

    code: AgentErrorCode = AgentErrorCode.EXECUTION_FAILED

    def __init__(
        self,
        message: str,
        code: Optional[AgentErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code.value,
            "details": self.details,
        }


class AgentNotFoundError(AgentError):
    code = AgentErrorCode.AGENT_NOT_FOUND

    def __init__(self, agent: str, available: Sequence[str] = ()) -> None:
        names = ", ".join(available) or "none"
        super().__init__(
            f'Agent not found: "{agent}". Available: {names}',
            details={"agent": agent, "available": list(available)},
        )
        self.agent = agent


class SessionNotFoundError(AgentError):
    code = AgentErrorCode.SESSION_NOT_FOUND

    def __init__(self, session_id: str) -> None:
        super().__init__(
            f"Session not found: {session_id}",
            details={"session_id": session_id},
        )
        self.session_id = session_id


class SessionAlreadyActiveError(AgentError):
    code = AgentErrorCode.SESSION_ALREADY_ACTIVE

    def __init__(self, session_id: str) -> None:
        super().__init__(
            f"Session {session_id} is already active. Cancel it first.",
            details={"session_id": session_id},
        )
        self.session_id = session_id


class ExecutionFailedError(AgentError):
    code = AgentErrorCode.EXECUTION_FAILED


class SessionCancelledError(AgentError):
    code = AgentErrorCode.CANCELLED


class InvalidConfigError(AgentError):
    code = AgentErrorCode.INVALID_CONFIG


class DelegationDepthExceededError(AgentError):
    """Raised when a delegation would descend past the configured bound."""

    code = AgentErrorCode.DELEGATION_DEPTH_EXCEEDED

    def __init__(self, depth: int, max_depth: int, chain: Sequence[str]) -> None:
        super().__init__(
            f"Delegation depth limit exceeded (max: {max_depth}). "
            f"Chain: {' → '.join(chain)}",
            details={"depth": depth, "max_depth": max_depth, "chain": list(chain)},
        )
        self.depth = depth
        self.max_depth = max_depth
        self.chain = list(chain)


class DelegationCycleDetectedError(AgentError):
    """Raised when the target agent is already part of the call chain."""

    code = AgentErrorCode.DELEGATION_CYCLE_DETECTED

    def __init__(self, agent: str, chain: Sequence[str]) -> None:
        super().__init__(
            f"Delegation cycle detected: {agent} is already in the call chain. "
            f"Chain: {' → '.join(chain)}",
            details={"cycle_agent": agent, "chain": list(chain)},
        )
        self.agent = agent
        self.chain = list(chain)


class DelegationFailedError(AgentError):
    code = AgentErrorCode.DELEGATION_FAILED


class InvalidBatchError(AgentError):
    code = AgentErrorCode.INVALID_BATCH
