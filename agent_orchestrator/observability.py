"""Observability for orchestrator operations - logging setup and run metrics."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

LOGGER_NAME = "agent_orchestrator"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_MAX_EVENTS = 1000


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Attach a single stream handler to the package logger.

    Calling this more than once only adjusts the level.
    """
    root = logging.getLogger(LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
    root.setLevel(logging.INFO if verbose else logging.WARNING)
    return root


@dataclass
class AgentEvent:
    """A single recorded orchestrator event."""

    timestamp: datetime
    event_type: str  # "run_start", "run_end", "delegation", "batch", "error"
    data: Dict[str, Any]
    duration_ms: Optional[float] = None


class AgentObserver:
    """
    Collects orchestrator events for debugging and monitoring.

    The observer never raises; it only records and logs. Only the most
    recent ``max_events`` events are kept, older ones are dropped.
    """

    def __init__(self, verbose: bool = False, max_events: int = DEFAULT_MAX_EVENTS):
        self.events: Deque[AgentEvent] = deque(maxlen=max_events)
        self.verbose = verbose
        self.logger = logging.getLogger(f"{LOGGER_NAME}.observer")

    def _record(self, event_type: str, data: Dict[str, Any], duration_ms: Optional[float] = None) -> AgentEvent:
        event = AgentEvent(
            timestamp=datetime.now(),
            event_type=event_type,
            data=data,
            duration_ms=duration_ms,
        )
        self.events.append(event)
        return event

    def log_run_start(self, execution_id: str, agent: str, task: str, resume: Optional[str] = None):
        self._record(
            "run_start",
            {"execution_id": execution_id, "agent": agent, "task": task[:100], "resume": resume},
        )
        self.logger.info("[%s] ▶ %s started", execution_id, agent)

    def log_run_end(
        self,
        execution_id: str,
        agent: str,
        session_id: str,
        success: bool,
        duration_ms: float,
        artifacts: int = 0,
    ):
        """
        Log the end of an agent run.

        Args:
            execution_id: Correlation id of the invocation
            agent: Name of the agent that ran
            session_id: Engine session id ("unknown" if never established)
            success: Whether the run succeeded
            duration_ms: Wall-clock duration of the run
            artifacts: Number of files reported as written
        """
        self._record(
            "run_end",
            {
                "execution_id": execution_id,
                "agent": agent,
                "session_id": session_id,
                "success": success,
                "artifacts": artifacts,
            },
            duration_ms=duration_ms,
        )
        status = "✓" if success else "✗"
        self.logger.info("[%s] %s %s finished (%.2fms)", execution_id, status, agent, duration_ms)

    def log_delegation(self, chain: List[str], success: bool, duration_ms: float):
        self._record("delegation", {"chain": list(chain), "success": success}, duration_ms=duration_ms)
        self.logger.info("Delegation %s (%s)", " → ".join(chain), "ok" if success else "failed")

    def log_batch(self, batch_id: str, total: int, failed: int, duration_ms: float):
        self._record("batch", {"batch_id": batch_id, "total": total, "failed": failed}, duration_ms=duration_ms)
        self.logger.info("[batch:%s] %d tasks, %d failed (%.2fms)", batch_id, total, failed, duration_ms)

    def log_error(self, error_type: str, message: str, context: Optional[Dict[str, Any]] = None):
        """
        Log an error event.

        Args:
            error_type: Type of error (e.g., "execution", "delegation")
            message: Error message
            context: Additional context about the error
        """
        self._record("error", {"error_type": error_type, "message": message, "context": context or {}})
        self.logger.error("❌ Error (%s): %s", error_type, message)

    def get_session_stats(self) -> Dict[str, Any]:
        """
        Get aggregated statistics over the retained events.

        Returns:
            Dictionary with run, delegation, batch and error counts
        """
        runs = [e for e in self.events if e.event_type == "run_end"]
        delegations = [e for e in self.events if e.event_type == "delegation"]
        batches = [e for e in self.events if e.event_type == "batch"]
        errors = [e for e in self.events if e.event_type == "error"]

        failed_runs = sum(1 for e in runs if not e.data.get("success"))

        return {
            "event_count": len(self.events),
            "runs": len(runs),
            "failed_runs": failed_runs,
            "delegations": len(delegations),
            "batches": len(batches),
            "errors": len(errors),
            "total_run_duration_ms": sum(e.duration_ms or 0 for e in runs),
        }

    def clear(self):
        """Clear all recorded events."""
        self.events.clear()
        self.logger.info("Observer events cleared")
