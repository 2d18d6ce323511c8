"""Result and record types shared by the orchestrator components."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple


def generate_execution_id() -> str:
    """Short opaque id used to correlate log lines of one invocation."""
    return uuid.uuid4().hex[:7]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Render a timestamp as ISO-8601 UTC with a ``Z`` suffix."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class SessionInfo:
    """Information about an active or resumable session.

    Attributes:
        session_id: Session id assigned by the execution engine
        agent: Name of the agent that owns the session
        initial_task: Prompt that started the session (never rewritten)
        created_at: When the session was first established
        last_active: When the session was last started, resumed or finished
        is_active: Whether an execution is currently running
    """

    session_id: str
    agent: str
    initial_task: str
    created_at: datetime
    last_active: datetime
    is_active: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "agent": self.agent,
            "initial_task": self.initial_task,
            "created_at": to_iso(self.created_at),
            "last_active": to_iso(self.last_active),
            "is_active": self.is_active,
        }


@dataclass
class AgentResult:
    """Outcome of a single agent invocation."""

    success: bool
    session_id: str
    summary: str
    artifacts: Optional[List[str]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "session_id": self.session_id,
            "summary": self.summary,
        }
        if self.artifacts:
            data["artifacts"] = list(self.artifacts)
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class BatchTask:
    """One entry of a batch request."""

    agent: str
    task: str
    id: Optional[str] = None


@dataclass(frozen=True)
class BatchTaskResult:
    """Result for a single task in a batch.

    Attributes:
        id: Task identifier (from input or positional default)
        success: Whether this task completed successfully
        session_id: Session id for resuming this task later
        summary: Agent's response or failure summary
        artifacts: Files created or modified
        error: Error message if failed
        duration_ms: Time from this task's own start until it settled
    """

    id: str
    success: bool
    session_id: str
    summary: str
    duration_ms: float
    artifacts: Optional[Tuple[str, ...]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "success": self.success,
            "session_id": self.session_id,
            "summary": self.summary,
            "duration_ms": round(self.duration_ms, 2),
        }
        if self.artifacts:
            data["artifacts"] = list(self.artifacts)
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class BatchResult:
    """Aggregate of a batch; only built once every task has settled."""

    results: Tuple[BatchTaskResult, ...]
    total_duration_ms: float

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def all_success(self) -> bool:
        return self.failed == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "all_success": self.all_success,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "total_duration_ms": round(self.total_duration_ms, 2),
            "results": [r.to_dict() for r in self.results],
        }


@dataclass
class DelegationResult:
    """Result handed back to an agent that delegated a subtask."""

    success: bool
    agent: str
    session_id: str
    result: str
    depth: int
    chain: List[str] = field(default_factory=list)
    artifacts: Optional[List[str]] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "agent": self.agent,
            "session_id": self.session_id,
            "result": self.result,
            "context": {"depth": self.depth, "chain": list(self.chain)},
        }
        if self.artifacts:
            data["artifacts"] = list(self.artifacts)
        if self.error is not None:
            data["error"] = self.error
        if self.error_code is not None:
            data["code"] = self.error_code
        return data
