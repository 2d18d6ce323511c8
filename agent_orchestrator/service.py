"""Orchestrator service - the operations offered to callers."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from .agents.agent_tool import DelegationTool
from .agents.batch import BatchCoordinator
from .agents.catalog import AgentCatalog
from .agents.context import ContextTable
from .agents.delegation import DelegationManager, DelegationRequest
from .agents.invoker import AgentInvoker
from .agents.ledger import SessionLedger
from .agents.protocol import AgentResult, BatchResult, BatchTask, DelegationResult, SessionInfo
from .config import OrchestratorConfig
from .engine import create_engine
from .engine.base import ExecutionEngine
from .errors import AgentError
from .observability import AgentObserver
from .tools.base import BaseTool, ToolResult
from .tools.orchestration import BatchTaskParams, DelegateToAgentParams, build_orchestration_tools

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "UNKNOWN_ERROR"


class OrchestratorService:
    """Wires catalog, ledger, invoker, delegation and batch together.

    Example:
        service = OrchestratorService(load_config())
        result = await service.run("coder", "Add a health check endpoint")
        await service.run("coder", "Add a test for it", resume=result.session_id)
    """

    def __init__(
        self,
        config: Optional[OrchestratorConfig] = None,
        engine: Optional[ExecutionEngine] = None,
        catalog: Optional[AgentCatalog] = None,
        observer: Optional[AgentObserver] = None,
    ):
        self.config = config or OrchestratorConfig()
        self.observer = observer or AgentObserver(
            verbose=self.config.logging.verbose,
            max_events=self.config.logging.max_events,
        )

        if catalog is None:
            catalog = AgentCatalog()
            catalog.load(self.config.resolved_agents_dirs())
        self.catalog = catalog

        self.engine = engine or create_engine(self.config.engine)
        self.ledger = SessionLedger()
        self.contexts = ContextTable()

        self.invoker = AgentInvoker(
            catalog=self.catalog,
            ledger=self.ledger,
            contexts=self.contexts,
            engine=self.engine,
            max_depth=self.config.delegation.max_depth,
            permission_mode=self.config.claude.permission_mode,
            model=self.config.claude.model,
            cwd=self.config.claude.cwd,
            observer=self.observer,
        )
        self.delegation = DelegationManager(
            invoker=self.invoker,
            contexts=self.contexts,
            ledger=self.ledger,
            config=self.config.delegation,
            observer=self.observer,
        )
        self.invoker.delegate_tool = DelegationTool(self.delegation, self.catalog)
        self.batch = BatchCoordinator(
            self.invoker,
            max_tasks=self.config.batch.max_tasks,
            observer=self.observer,
        )
        self.tools: Dict[str, BaseTool] = {t.name: t for t in build_orchestration_tools(self)}

    async def run(
        self,
        agent: str,
        task: str,
        resume: Optional[str] = None,
        fork: bool = False,
    ) -> AgentResult:
        return await self.invoker.invoke(agent, task, resume=resume, fork=fork)

    async def run_batch(self, tasks: Sequence[Union[BatchTask, Mapping[str, Any]]]) -> BatchResult:
        """Run up to ``batch.max_tasks`` tasks in parallel.

        Raises:
            InvalidBatchError: If the batch is empty or too large
        """
        return await self.batch.run_batch([_to_batch_task(t) for t in tasks])

    def list_sessions(self, agent: Optional[str] = None, active_only: bool = False) -> Dict[str, Any]:
        return {"sessions": self.ledger.list_json(agent=agent, active_only=active_only)}

    def get_session(self, session_id: str) -> SessionInfo:
        return self.ledger.require(session_id)

    async def cancel(self, session_id: str) -> Dict[str, Any]:
        cancelled = await self.ledger.cancel(session_id)
        return {
            "success": cancelled,
            "session_id": session_id,
            "message": "Cancelled" if cancelled else "Not found or already completed",
        }

    async def delegate(
        self,
        params: Union[DelegationRequest, Mapping[str, Any]],
        caller_session_id: str,
    ) -> DelegationResult:
        """Delegation surface for running agents; never raises."""
        if not isinstance(params, DelegationRequest):
            validated = DelegateToAgentParams.model_validate(dict(params))
            params = DelegationRequest(
                agent=validated.agent,
                task=validated.task,
                context_data=validated.context_data or {},
            )
        return await self.delegation.delegate(params, caller_session_id)

    def refresh_agents(self) -> None:
        """Re-read agent definitions from disk, if they came from disk."""
        if self.catalog.dirs:
            self.catalog.reload()

    def list_tools(self) -> List[Dict[str, Any]]:
        self.refresh_agents()
        return [tool.to_schema() for tool in self.tools.values()]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResult:
        """Dispatch a tool call.

        Errors are returned, never raised: the payload is ``{"error", "code"}``
        and ``is_error`` is set.
        """
        tool = self.tools.get(name)
        try:
            if tool is None:
                raise KeyError(f"Unknown tool: {name}")
            return await tool.execute(**(arguments or {}))
        except AgentError as e:
            logger.error("Error (%s): %s", name, e.message)
            return ToolResult.from_payload({"error": e.message, "code": e.code.value}, success=False)
        except ValidationError as e:
            message = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
            logger.error("Error (%s): %s", name, message)
            return ToolResult.from_payload({"error": message, "code": UNKNOWN_ERROR}, success=False)
        except Exception as e:
            message = e.args[0] if isinstance(e, KeyError) and e.args else str(e)
            logger.error("Error (%s): %s", name, message)
            return ToolResult.from_payload({"error": message, "code": UNKNOWN_ERROR}, success=False)

    async def shutdown(self) -> None:
        """Interrupt running sessions and drop all state."""
        await self.ledger.clear()
        self.contexts.clear()

    def __repr__(self) -> str:
        return (
            f"OrchestratorService(engine={self.config.engine!r}, "
            f"agents={len(self.catalog)}, sessions={len(self.ledger)})"
        )


def _to_batch_task(task: Union[BatchTask, Mapping[str, Any]]) -> BatchTask:
    if isinstance(task, BatchTask):
        return task
    params = BatchTaskParams.model_validate(dict(task))
    return BatchTask(agent=params.agent, task=params.task, id=params.id)
