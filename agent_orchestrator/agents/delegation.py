"""Delegation manager - resolves agent-to-agent delegation requests."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional

from ..errors import AgentError, AgentErrorCode, DelegationFailedError
from .context import DEFAULT_MAX_DEPTH, ContextTable, DelegationContext, descend
from .invoker import AgentInvoker
from .ledger import SessionLedger
from .protocol import DelegationResult

if TYPE_CHECKING:
    from ..observability import AgentObserver

logger = logging.getLogger(__name__)

UNKNOWN_AGENT = "unknown"


@dataclass
class DelegationConfig:
    """Configuration for delegation behavior."""

    max_depth: int = DEFAULT_MAX_DEPTH
    strict_parent_lookup: bool = False


@dataclass
class DelegationRequest:
    """Arguments of a ``delegate_to_agent`` call."""

    agent: str
    task: str
    context_data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_arguments(cls, arguments: Dict[str, Any]) -> DelegationRequest:
        context_data = arguments.get("context_data")
        return cls(
            agent=str(arguments.get("agent", "")),
            task=str(arguments.get("task", "")),
            context_data=context_data if isinstance(context_data, dict) else {},
        )

    def enhanced_task(self) -> str:
        if not self.context_data:
            return self.task
        payload = json.dumps(self.context_data, indent=2, default=str)
        return f"{self.task}\n\n---\n**Context Data:**\n```json\n{payload}\n```"


class DelegationManager:
    """Runs delegated subtasks with depth and cycle protection.

    ``delegate`` never raises: every failure, including validation, comes
    back as a failed ``DelegationResult`` the calling agent can reason about.

    Example:
        manager = DelegationManager(invoker, contexts, ledger)
        invoker.delegate_tool = DelegationTool(manager, catalog)

        result = await manager.delegate(
            DelegationRequest(agent="reviewer", task="Review src/app.py"),
            parent_session_id=session_id,
        )
    """

    def __init__(
        self,
        invoker: AgentInvoker,
        contexts: ContextTable,
        ledger: SessionLedger,
        config: Optional[DelegationConfig] = None,
        observer: Optional[AgentObserver] = None,
    ):
        self.invoker = invoker
        self.contexts = contexts
        self.ledger = ledger
        self.config = config or DelegationConfig()
        self.observer = observer

    def resolve_parent(self, parent_session_id: str) -> Optional[DelegationContext]:
        """Find the context of the calling session.

        Falls back to a fresh root at ``parent_session_id`` unless strict
        lookup is configured, in which case ``None`` is returned.
        """
        context = self.contexts.get(parent_session_id)
        if context is not None:
            return context

        if self.config.strict_parent_lookup:
            logger.warning("No context found for session %s, rejecting delegation", parent_session_id)
            return None

        record = self.ledger.get(parent_session_id) if parent_session_id else None
        agent_name = record.agent if record is not None else UNKNOWN_AGENT
        logger.warning(
            "No context found for session %s, treating %s as a root call",
            parent_session_id or "<none>",
            agent_name,
        )
        return DelegationContext.root(agent_name, parent_session_id)

    async def delegate(self, request: DelegationRequest, parent_session_id: str) -> DelegationResult:
        """Run ``request.agent`` as a child of the calling session.

        Args:
            request: Target agent, task and optional structured context data
            parent_session_id: Session id of the agent asking for help

        Returns:
            DelegationResult with the delegated agent's response or the error
        """
        parent = self.resolve_parent(parent_session_id)
        if parent is None:
            error = DelegationFailedError(
                f"No delegation context for session {parent_session_id}",
                details={"session_id": parent_session_id},
            )
            return self._failed(request.agent, error.message, 1, [UNKNOWN_AGENT, request.agent], error.code)

        logger.info(
            "%s → %s (depth %d/%d)",
            parent.current_agent,
            request.agent,
            parent.depth + 1,
            self.config.max_depth,
        )
        started = time.perf_counter()
        attempted = list(parent.chain) + [request.agent]

        try:
            child = descend(parent, request.agent, self.config.max_depth)
            result = await self.invoker.invoke(request.agent, request.enhanced_task(), context=child)
        except AgentError as e:
            logger.error("Failed to delegate to %s: %s", request.agent, e.message)
            self._record(attempted, False, started)
            return self._failed(request.agent, e.message, parent.depth + 1, attempted, e.code)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error("Failed to delegate to %s: %s", request.agent, message)
            self._record(attempted, False, started)
            return self._failed(
                request.agent,
                message,
                parent.depth + 1,
                attempted,
                AgentErrorCode.DELEGATION_FAILED,
            )

        logger.info("%s completed: %s", request.agent, "success" if result.success else "failed")
        self._record(list(child.chain), result.success, started)

        return DelegationResult(
            success=result.success,
            agent=request.agent,
            session_id=result.session_id,
            result=result.summary,
            depth=child.depth,
            chain=list(child.chain),
            artifacts=result.artifacts,
            error=result.error,
        )

    def _failed(
        self,
        agent: str,
        message: str,
        depth: int,
        chain: list,
        code: AgentErrorCode,
    ) -> DelegationResult:
        return DelegationResult(
            success=False,
            agent=agent,
            session_id="",
            result="",
            depth=depth,
            chain=chain,
            error=message,
            error_code=code.value,
        )

    def _record(self, chain: list, success: bool, started: float) -> None:
        if self.observer:
            self.observer.log_delegation(chain, success, (time.perf_counter() - started) * 1000)
