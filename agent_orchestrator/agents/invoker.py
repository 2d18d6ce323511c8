"""Agent invoker - runs one agent through the execution engine."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Optional, Sequence, Set, Tuple

from ..engine.events import (
    ContentStep,
    EngineEvent,
    EngineOptions,
    Instructions,
    SessionEstablished,
    TerminalFailure,
    TerminalSuccess,
)
from ..errors import SessionAlreadyActiveError, SessionNotFoundError
from .catalog import AgentCatalog, AgentDefinition
from .context import DEFAULT_MAX_DEPTH, ContextTable, DelegationContext
from .ledger import SessionLedger
from .protocol import AgentResult, generate_execution_id

if TYPE_CHECKING:
    from ..engine.base import ExecutionEngine, ExecutionHandle
    from ..observability import AgentObserver
    from ..tools.base import BaseTool

logger = logging.getLogger(__name__)

DELEGATE_TOOL_NAME = "delegate_to_agent"

OUTPUT_REQUIREMENTS = (
    "---\n"
    "**Output Requirements**: When you complete this task, your final response MUST include:\n"
    "1. A clear summary of what was accomplished\n"
    "2. List of any files created or modified (with full paths)"
)


@dataclass(frozen=True)
class InvocationState:
    """Accumulated view of one execution's event stream."""

    session_id: str = ""
    result: str = ""
    artifacts: Tuple[str, ...] = ()
    error: Optional[str] = None


def fold_event(state: InvocationState, event: EngineEvent) -> InvocationState:
    """Apply one engine event to the invocation state."""
    if isinstance(event, SessionEstablished):
        return replace(state, session_id=event.session_id)
    if isinstance(event, ContentStep):
        if not event.file_writes:
            return state
        return replace(state, artifacts=state.artifacts + tuple(w.path for w in event.file_writes))
    if isinstance(event, TerminalSuccess):
        return replace(state, result=event.result)
    if isinstance(event, TerminalFailure):
        return replace(state, error=event.error)
    return state


def build_task_prompt(task: str) -> str:
    return f"{task}\n\n{OUTPUT_REQUIREMENTS}"


def build_delegation_section(
    agents: Sequence[AgentDefinition],
    current_agent: str,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> str:
    """Describe the delegation tool and the agents it can reach.

    Returns an empty string when there is nobody to delegate to.
    """
    others = [a for a in agents if a.name != current_agent]
    if not others:
        return ""

    agent_list = "\n".join(f"- **{a.name}**: {a.description}" for a in others)
    return (
        "---\n"
        "## Inter-Agent Delegation\n\n"
        f"You have access to a tool called `{DELEGATE_TOOL_NAME}` that allows you to "
        "delegate subtasks to other specialized agents.\n\n"
        "### Available Agents\n"
        f"{agent_list}\n\n"
        "### How to Delegate\n"
        "Call the tool with `agent` (the agent name), `task` (a clear description of "
        "the subtask) and optionally `context_data` (structured data for the agent).\n\n"
        "### Delegation Rules\n"
        f"- Maximum depth: {max_depth} levels of delegation\n"
        "- No cycles: You cannot delegate to an agent that's already in the call chain\n"
        "- Errors are returned gracefully - handle them in your response\n"
    )


class AgentInvoker:
    """Runs agents and keeps the session ledger and context table in step.

    Example:
        invoker = AgentInvoker(catalog, ledger, contexts, engine)
        result = await invoker.invoke("coder", "Add a --verbose flag")

        # Continue the same session later
        await invoker.invoke("coder", "Now document it", resume=result.session_id)
    """

    def __init__(
        self,
        catalog: AgentCatalog,
        ledger: SessionLedger,
        contexts: ContextTable,
        engine: ExecutionEngine,
        max_depth: int = DEFAULT_MAX_DEPTH,
        permission_mode: str = "acceptEdits",
        model: Optional[str] = None,
        cwd: Optional[str] = None,
        observer: Optional[AgentObserver] = None,
    ):
        self.catalog = catalog
        self.ledger = ledger
        self.contexts = contexts
        self.engine = engine
        self.max_depth = max_depth
        self.permission_mode = permission_mode
        self.model = model
        self.cwd = cwd
        self.observer = observer
        # Wired once the delegation manager exists.
        self.delegate_tool: Optional[BaseTool] = None
        self._pending_resumes: Set[str] = set()

    def build_instructions(self, definition: AgentDefinition, task: str) -> Instructions:
        system_prompt = definition.system_prompt
        section = build_delegation_section(self.catalog.list(), definition.name, self.max_depth)
        if section:
            system_prompt = f"{system_prompt}\n\n{section}"
        return Instructions(system_prompt=system_prompt, prompt=build_task_prompt(task))

    async def invoke(
        self,
        agent_name: str,
        task: str,
        resume: Optional[str] = None,
        fork: bool = False,
        context: Optional[DelegationContext] = None,
    ) -> AgentResult:
        """Run an agent to completion.

        Args:
            agent_name: Catalog name of the agent
            task: Prompt for the agent
            resume: Session id to continue
            fork: Fork the resumed session instead of continuing it
            context: Delegation context for nested calls, ``None`` for root calls

        Returns:
            AgentResult; engine failures are reported, not raised

        Raises:
            AgentNotFoundError: If the agent is not in the catalog
            SessionNotFoundError: If ``resume`` is unknown
            SessionAlreadyActiveError: If ``resume`` is still running or another
                call is already resuming it
        """
        definition = self.catalog.require(agent_name)
        if resume:
            if not self.ledger.has(resume):
                raise SessionNotFoundError(resume)
            if self.ledger.is_active(resume) or resume in self._pending_resumes:
                raise SessionAlreadyActiveError(resume)

        execution_id = generate_execution_id()
        instructions = self.build_instructions(definition, task)
        options = EngineOptions(
            agent=agent_name,
            resume=resume,
            fork=fork,
            delegate_tool=self.delegate_tool,
            permission_mode=self.permission_mode,
            model=definition.model or self.model,
            cwd=self.cwd,
        )

        logger.info("[%s] Agent: %s | Task: %s", execution_id, agent_name, task[:100])
        if resume:
            logger.info("[%s] Resuming session: %s", execution_id, resume)
        if context is not None:
            logger.info(
                "[%s] Context: depth=%d, chain=%s",
                execution_id,
                context.depth,
                "→".join(context.chain),
            )
        if self.observer:
            self.observer.log_run_start(execution_id, agent_name, task, resume)

        state = InvocationState()
        failure: Optional[str] = None
        handle: Optional[ExecutionHandle] = None
        registered: Optional[DelegationContext] = None
        started = time.perf_counter()

        # Held until the engine reports the session, so a second resume of
        # the same id cannot start while this one is still connecting.
        reserved = bool(resume) and not fork
        if reserved:
            self._pending_resumes.add(resume)

        try:
            handle = self.engine.start(instructions, options)
            async for event in handle:
                previous = state.session_id
                state = fold_event(state, event)
                if isinstance(event, SessionEstablished):
                    if previous and previous != state.session_id:
                        self._release(previous, handle, registered)
                    registered = self._establish(execution_id, agent_name, task, state.session_id, handle, context)
                    if reserved:
                        self._pending_resumes.discard(resume)
                        reserved = False
        except Exception as e:
            failure = str(e) or type(e).__name__
            logger.error("[%s] Failed: %s", execution_id, failure)
        finally:
            if reserved:
                self._pending_resumes.discard(resume)
            if state.session_id:
                self._release(state.session_id, handle, registered)

        duration_ms = (time.perf_counter() - started) * 1000

        if failure is not None:
            result = AgentResult(
                success=False,
                session_id=state.session_id or "unknown",
                summary=f"Agent execution failed: {failure}",
                artifacts=list(state.artifacts) or None,
                error=failure,
            )
            if self.observer:
                self.observer.log_error("execution", failure, {"agent": agent_name, "execution_id": execution_id})
        else:
            if state.result:
                summary = state.result
            elif state.error:
                summary = f"Error: {state.error}"
            else:
                summary = "No result"
            result = AgentResult(
                success=state.error is None,
                session_id=state.session_id,
                summary=summary,
                artifacts=list(state.artifacts) or None,
                error=state.error,
            )
            logger.info("[%s] Completed", execution_id)

        if self.observer:
            self.observer.log_run_end(
                execution_id,
                agent_name,
                result.session_id,
                result.success,
                duration_ms,
                artifacts=len(state.artifacts),
            )
        return result

    def _establish(
        self,
        execution_id: str,
        agent_name: str,
        task: str,
        session_id: str,
        handle: ExecutionHandle,
        context: Optional[DelegationContext],
    ) -> DelegationContext:
        self.ledger.upsert(session_id, agent_name, task, handle)
        if context is None:
            context = DelegationContext.root(agent_name, session_id)
        else:
            context = context.with_root_session(session_id)
        self.contexts.register(session_id, context)
        logger.info("[%s] Session: %s", execution_id, session_id)
        return context

    def _release(
        self,
        session_id: str,
        handle: Optional[ExecutionHandle],
        context: Optional[DelegationContext],
    ) -> None:
        # A newer run may own the session by now (cancel, then resume).
        if context is not None:
            self.contexts.release(session_id, context)
        if handle is not None and not self.ledger.release(session_id, handle):
            logger.debug("Session %s is owned by a newer run, leaving it active", session_id)
