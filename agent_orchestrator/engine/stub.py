"""Deterministic engine for local development and tests.

Mirrors the shape of a real engine run without calling any model: every
execution establishes a session, optionally writes files and delegates,
then finishes with a scripted result.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, List, Optional, Sequence, Tuple

from .events import (
    ContentStep,
    EngineEvent,
    EngineOptions,
    FileWrite,
    Instructions,
    SessionEstablished,
    TerminalFailure,
    TerminalSuccess,
)

logger = logging.getLogger(__name__)


@dataclass
class StubScript:
    """What a stub execution does for one agent.

    Attributes:
        result: Final result text; ``{task}`` is replaced by the first prompt line
        file_writes: Paths reported as written, in order
        delegations: ``(agent, task)`` pairs sent through the delegation tool
        error: If set, the run ends with ``TerminalFailure(error)``
        delay: Seconds to wait before finishing (interruptible)
    """

    result: str = "Completed: {task}"
    file_writes: Sequence[str] = ()
    delegations: Sequence[Tuple[str, str]] = ()
    error: Optional[str] = None
    delay: float = 0.0


@dataclass
class StubCall:
    """A recorded ``start`` call."""

    instructions: Instructions
    options: EngineOptions
    session_id: str = ""
    delegation_outputs: List[str] = field(default_factory=list)


class StubExecution:
    def __init__(self, session_id: str, script: StubScript, call: StubCall):
        self.session_id = session_id
        self.script = script
        self.call = call
        self.interrupted = False
        self._interrupt_event = asyncio.Event()
        self._started = False

    def __aiter__(self) -> AsyncIterator[EngineEvent]:
        if self._started:
            raise RuntimeError("StubExecution can only be iterated once")
        self._started = True
        return self._stream()

    async def interrupt(self) -> None:
        self.interrupted = True
        self._interrupt_event.set()

    async def _stream(self) -> AsyncIterator[EngineEvent]:
        options = self.call.options
        yield SessionEstablished(session_id=self.session_id)

        task = self.call.instructions.prompt.splitlines()[0] if self.call.instructions.prompt else ""
        yield ContentStep(text=f"Working on: {task}")

        if self.script.file_writes:
            yield ContentStep(file_writes=tuple(FileWrite(tool="Write", path=p) for p in self.script.file_writes))

        for agent, subtask in self.script.delegations:
            if options.delegate_tool is None:
                logger.warning("Stub %s has no delegation tool, skipping %s", self.session_id, agent)
                continue
            outcome = await options.delegate_tool.execute(
                caller_session_id=self.session_id,
                agent=agent,
                task=subtask,
            )
            self.call.delegation_outputs.append(outcome.output)
            yield ContentStep(text=outcome.output)

        if self.script.delay > 0:
            try:
                await asyncio.wait_for(self._interrupt_event.wait(), timeout=self.script.delay)
            except asyncio.TimeoutError:
                pass

        if self.interrupted:
            yield TerminalFailure(error="Interrupted")
            return

        if self.script.error is not None:
            yield TerminalFailure(error=self.script.error)
        else:
            yield TerminalSuccess(result=self.script.result.replace("{task}", task))


class StubEngine:
    """Scripted engine keyed by agent name.

    Example:
        engine = StubEngine({"coder": StubScript(file_writes=["src/app.py"])})
        handle = engine.start(instructions, EngineOptions(agent="coder"))
    """

    def __init__(
        self,
        scripts: Optional[Dict[str, StubScript]] = None,
        default: Optional[StubScript] = None,
    ):
        self.scripts = dict(scripts or {})
        self.default = default or StubScript()
        self.calls: List[StubCall] = []
        self.executions: Dict[str, StubExecution] = {}
        self._counter = itertools.count(1)

    def script_for(self, agent: str) -> StubScript:
        return self.scripts.get(agent, self.default)

    def start(self, instructions: Instructions, options: EngineOptions) -> StubExecution:
        if options.resume and not options.fork:
            session_id = options.resume
        else:
            session_id = f"stub-{next(self._counter):04d}"

        call = StubCall(instructions=instructions, options=options, session_id=session_id)
        self.calls.append(call)
        execution = StubExecution(session_id, self.script_for(options.agent), call)
        self.executions[session_id] = execution
        logger.debug("Stub execution %s for %s", session_id, options.agent)
        return execution

    def __repr__(self) -> str:
        return f"StubEngine(scripts={sorted(self.scripts)})"
