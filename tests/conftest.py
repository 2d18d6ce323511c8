"""Global pytest fixtures for deterministic test environment."""

from __future__ import annotations

import asyncio
import os
from typing import AsyncIterator, Callable, List, Optional, Sequence

import pytest

from agent_orchestrator.agents.catalog import AgentCatalog, AgentDefinition
from agent_orchestrator.config import OrchestratorConfig
from agent_orchestrator.engine.events import (
    EngineEvent,
    EngineOptions,
    Instructions,
    SessionEstablished,
    TerminalSuccess,
)
from agent_orchestrator.engine.stub import StubEngine, StubScript
from agent_orchestrator.service import OrchestratorService


@pytest.fixture(autouse=True)
def _isolate_runtime_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear local runtime env that can leak into tests on developer machines."""
    for key in list(os.environ):
        if key.startswith("AGENT_ORCHESTRATOR_"):
            monkeypatch.delenv(key, raising=False)


class FakeHandle:
    """Scripted execution handle.

    ``events`` are yielded in order; an Exception instance in the list is
    raised at that point instead. If ``gate`` is set, the stream waits on it
    before the remaining events. ``connecting`` yields to the loop once
    before the first event. With ``ignore_interrupt`` an interrupt is only
    counted and the stream keeps waiting on its gate.
    """

    def __init__(
        self,
        events: Sequence[object],
        gate: Optional[asyncio.Event] = None,
        fail_interrupt: bool = False,
        connecting: bool = False,
        ignore_interrupt: bool = False,
    ):
        self.events = list(events)
        self.gate = gate
        self.fail_interrupt = fail_interrupt
        self.connecting = connecting
        self.ignore_interrupt = ignore_interrupt
        self.interrupt_calls = 0

    def __aiter__(self) -> AsyncIterator[EngineEvent]:
        return self._stream()

    async def _stream(self) -> AsyncIterator[EngineEvent]:
        if self.connecting:
            await asyncio.sleep(0)
        for index, event in enumerate(self.events):
            if isinstance(event, Exception):
                raise event
            yield event
            if index == 0 and self.gate is not None:
                await self.gate.wait()

    async def interrupt(self) -> None:
        self.interrupt_calls += 1
        if self.gate is not None and not self.ignore_interrupt:
            self.gate.set()
        if self.fail_interrupt:
            raise RuntimeError("interrupt failed")


class FakeEngine:
    """Engine returning handles from a factory, recording every start."""

    def __init__(self, factory: Callable[[Instructions, EngineOptions], FakeHandle]):
        self.factory = factory
        self.started: List[EngineOptions] = []
        self.instructions: List[Instructions] = []
        self.handles: List[FakeHandle] = []

    def start(self, instructions: Instructions, options: EngineOptions) -> FakeHandle:
        self.started.append(options)
        self.instructions.append(instructions)
        handle = self.factory(instructions, options)
        self.handles.append(handle)
        return handle


def simple_handle(session_id: str, result: str = "done") -> FakeHandle:
    return FakeHandle([SessionEstablished(session_id), TerminalSuccess(result)])


@pytest.fixture
def definitions() -> List[AgentDefinition]:
    return [
        AgentDefinition(name="planner", description="Plans work", system_prompt="You plan."),
        AgentDefinition(name="coder", description="Writes code", system_prompt="You code."),
        AgentDefinition(name="reviewer", description="Reviews code", system_prompt="You review."),
    ]


@pytest.fixture
def catalog(definitions) -> AgentCatalog:
    return AgentCatalog(definitions)


@pytest.fixture
def stub_engine() -> StubEngine:
    return StubEngine()


@pytest.fixture
def make_service(catalog):
    def _make(engine=None, config: Optional[OrchestratorConfig] = None, **scripts: StubScript) -> OrchestratorService:
        if engine is None:
            engine = StubEngine(scripts)
        return OrchestratorService(config=config or OrchestratorConfig(), engine=engine, catalog=catalog)

    return _make
