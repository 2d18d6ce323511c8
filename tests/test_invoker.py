"""Tests for the agent invoker."""

from __future__ import annotations

import asyncio

import pytest

from agent_orchestrator.agents.context import ContextTable, DelegationContext
from agent_orchestrator.agents.invoker import AgentInvoker, InvocationState, fold_event
from agent_orchestrator.agents.ledger import SessionLedger
from agent_orchestrator.engine.events import (
    ContentStep,
    FileWrite,
    SessionEstablished,
    TerminalFailure,
    TerminalSuccess,
)
from agent_orchestrator.errors import (
    AgentNotFoundError,
    SessionAlreadyActiveError,
    SessionNotFoundError,
)
from conftest import FakeEngine, FakeHandle, simple_handle


async def wait_until(predicate, attempts: int = 100) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def make_invoker(catalog, engine):
    return AgentInvoker(catalog, SessionLedger(), ContextTable(), engine)


class TestFoldEvent:
    """Tests for the pure event fold."""

    def test_full_stream(self):
        events = [
            SessionEstablished("s1"),
            ContentStep(text="thinking"),
            ContentStep(file_writes=(FileWrite("Write", "/a.py"), FileWrite("Edit", "/b.py"))),
            ContentStep(file_writes=(FileWrite("Edit", "/a.py"),)),
            TerminalSuccess("All done"),
        ]
        state = InvocationState()
        for event in events:
            state = fold_event(state, event)

        assert state.session_id == "s1"
        assert state.artifacts == ("/a.py", "/b.py", "/a.py")
        assert state.result == "All done"
        assert state.error is None

    def test_failure_sets_error(self):
        state = fold_event(InvocationState(), TerminalFailure("max turns"))
        assert state.error == "max turns"

    def test_does_not_mutate_input(self):
        state = InvocationState()
        fold_event(state, SessionEstablished("s1"))
        assert state.session_id == ""


class TestInvoke:
    """Tests for AgentInvoker.invoke."""

    @pytest.mark.asyncio
    async def test_success_records_session_and_artifacts(self, catalog):
        engine = FakeEngine(lambda i, o: FakeHandle([
            SessionEstablished("s1"),
            ContentStep(file_writes=(FileWrite("Write", "/tmp/out.md"),)),
            TerminalSuccess("Wrote the report"),
        ]))
        invoker = make_invoker(catalog, engine)

        result = await invoker.invoke("coder", "Write a report")

        assert result.success is True
        assert result.session_id == "s1"
        assert result.summary == "Wrote the report"
        assert result.artifacts == ["/tmp/out.md"]
        info = invoker.ledger.get("s1")
        assert info.initial_task == "Write a report"
        assert info.is_active is False
        assert len(invoker.contexts) == 0

    @pytest.mark.asyncio
    async def test_unknown_agent_raises_before_engine(self, catalog):
        engine = FakeEngine(lambda i, o: simple_handle("s1"))
        invoker = make_invoker(catalog, engine)

        with pytest.raises(AgentNotFoundError) as exc_info:
            await invoker.invoke("ghost", "boo")

        assert "planner" in str(exc_info.value)
        assert engine.started == []

    @pytest.mark.asyncio
    async def test_resume_unknown_session_raises(self, catalog):
        engine = FakeEngine(lambda i, o: simple_handle("s1"))
        invoker = make_invoker(catalog, engine)

        with pytest.raises(SessionNotFoundError):
            await invoker.invoke("coder", "again", resume="nope")
        assert engine.started == []

    @pytest.mark.asyncio
    async def test_resume_active_session_raises(self, catalog):
        engine = FakeEngine(lambda i, o: simple_handle("s1"))
        invoker = make_invoker(catalog, engine)
        invoker.ledger.upsert("s1", "coder", "first", FakeHandle([]))

        with pytest.raises(SessionAlreadyActiveError):
            await invoker.invoke("coder", "again", resume="s1")
        assert engine.started == []

    @pytest.mark.asyncio
    async def test_resume_keeps_initial_task(self, catalog):
        engine = FakeEngine(lambda i, o: simple_handle(o.resume or "s1", "ok"))
        invoker = make_invoker(catalog, engine)

        first = await invoker.invoke("coder", "Original task")
        second = await invoker.invoke("coder", "Follow-up", resume=first.session_id)

        assert second.session_id == "s1"
        assert engine.started[1].resume == "s1"
        info = invoker.ledger.get("s1")
        assert info.initial_task == "Original task"
        assert info.is_active is False
        assert len(invoker.ledger) == 1

    @pytest.mark.asyncio
    async def test_session_active_and_context_registered_while_running(self, catalog):
        gate = asyncio.Event()
        engine = FakeEngine(lambda i, o: FakeHandle([SessionEstablished("s1"), TerminalSuccess("ok")], gate=gate))
        invoker = make_invoker(catalog, engine)

        task = asyncio.create_task(invoker.invoke("planner", "Plan it"))
        await wait_until(lambda: invoker.ledger.is_active("s1"))

        ctx = invoker.contexts.get("s1")
        assert ctx == DelegationContext(depth=0, chain=("planner",), root_session_id="s1")

        gate.set()
        result = await task

        assert result.success is True
        assert invoker.ledger.is_active("s1") is False
        assert invoker.contexts.get("s1") is None

    @pytest.mark.asyncio
    async def test_supplied_context_gets_root_session_backfilled(self, catalog):
        gate = asyncio.Event()
        engine = FakeEngine(lambda i, o: FakeHandle([SessionEstablished("child"), TerminalSuccess("ok")], gate=gate))
        invoker = make_invoker(catalog, engine)
        supplied = DelegationContext(depth=1, chain=("planner", "coder"))

        task = asyncio.create_task(invoker.invoke("coder", "sub", context=supplied))
        await wait_until(lambda: "child" in invoker.contexts)

        assert invoker.contexts.get("child").root_session_id == "child"
        assert invoker.contexts.get("child").chain == ("planner", "coder")

        gate.set()
        await task

    @pytest.mark.asyncio
    async def test_stream_exception_after_session(self, catalog):
        engine = FakeEngine(lambda i, o: FakeHandle([SessionEstablished("s1"), RuntimeError("boom")]))
        invoker = make_invoker(catalog, engine)

        result = await invoker.invoke("coder", "explode")

        assert result.success is False
        assert result.session_id == "s1"
        assert result.summary == "Agent execution failed: boom"
        assert result.error == "boom"
        assert invoker.ledger.is_active("s1") is False
        assert invoker.ledger.has("s1")
        assert len(invoker.contexts) == 0

    @pytest.mark.asyncio
    async def test_stream_exception_before_session(self, catalog):
        engine = FakeEngine(lambda i, o: FakeHandle([RuntimeError("no connection")]))
        invoker = make_invoker(catalog, engine)

        result = await invoker.invoke("coder", "explode")

        assert result.success is False
        assert result.session_id == "unknown"
        assert len(invoker.ledger) == 0

    @pytest.mark.asyncio
    async def test_terminal_failure(self, catalog):
        engine = FakeEngine(lambda i, o: FakeHandle([SessionEstablished("s1"), TerminalFailure("max turns")]))
        invoker = make_invoker(catalog, engine)

        result = await invoker.invoke("coder", "long task")

        assert result.success is False
        assert result.summary == "Error: max turns"
        assert result.error == "max turns"

    @pytest.mark.asyncio
    async def test_no_result(self, catalog):
        engine = FakeEngine(lambda i, o: FakeHandle([SessionEstablished("s1")]))
        invoker = make_invoker(catalog, engine)

        result = await invoker.invoke("coder", "quiet")

        assert result.success is True
        assert result.summary == "No result"
        assert result.artifacts is None

    @pytest.mark.asyncio
    async def test_stream_exception_keeps_artifacts(self, catalog):
        engine = FakeEngine(lambda i, o: FakeHandle([
            SessionEstablished("s1"),
            ContentStep(file_writes=(FileWrite("Write", "/a.py"),)),
            RuntimeError("boom"),
        ]))
        invoker = make_invoker(catalog, engine)

        result = await invoker.invoke("coder", "explode")

        assert result.success is False
        assert result.error == "boom"
        assert result.artifacts == ["/a.py"]


class TestSessionOwnership:
    """Cancel, resume and concurrent resume of a single session."""

    @pytest.mark.asyncio
    async def test_cancelled_run_draining_late_leaves_resumed_run_active(self, catalog):
        old_gate = asyncio.Event()
        new_gate = asyncio.Event()
        gates = [old_gate, new_gate]

        def factory(instructions, options):
            gate = gates.pop(0)
            return FakeHandle(
                [SessionEstablished("s1"), TerminalSuccess("ok")],
                gate=gate,
                ignore_interrupt=gate is old_gate,
            )

        engine = FakeEngine(factory)
        invoker = make_invoker(catalog, engine)

        first = asyncio.create_task(invoker.invoke("coder", "first"))
        await wait_until(lambda: invoker.ledger.is_active("s1"))
        assert await invoker.ledger.cancel("s1") is True

        second = asyncio.create_task(invoker.invoke("coder", "again", resume="s1"))
        await wait_until(lambda: invoker.ledger.get_handle("s1") is engine.handles[1])
        resumed_context = invoker.contexts.get("s1")

        # The cancelled stream only ends now, after the resume took over.
        old_gate.set()
        await first

        assert invoker.ledger.is_active("s1") is True
        assert invoker.ledger.get_handle("s1") is engine.handles[1]
        assert invoker.contexts.get("s1") is resumed_context

        new_gate.set()
        result = await second

        assert result.success is True
        assert invoker.ledger.is_active("s1") is False
        assert len(invoker.contexts) == 0

    @pytest.mark.asyncio
    async def test_concurrent_resumes_start_one_run(self, catalog):
        engine = FakeEngine(lambda i, o: FakeHandle(
            [SessionEstablished("s1"), TerminalSuccess("ok")],
            connecting=True,
        ))
        invoker = make_invoker(catalog, engine)
        invoker.ledger.upsert("s1", "coder", "first")

        results = await asyncio.gather(
            invoker.invoke("coder", "again", resume="s1"),
            invoker.invoke("coder", "again", resume="s1"),
            return_exceptions=True,
        )

        rejected = [r for r in results if isinstance(r, SessionAlreadyActiveError)]
        finished = [r for r in results if not isinstance(r, BaseException)]
        assert len(rejected) == 1
        assert len(finished) == 1
        assert finished[0].success is True
        assert len(engine.started) == 1
        assert invoker.ledger.is_active("s1") is False

    @pytest.mark.asyncio
    async def test_resume_allowed_again_after_run_finishes(self, catalog):
        engine = FakeEngine(lambda i, o: FakeHandle(
            [SessionEstablished("s1"), TerminalSuccess("ok")],
            connecting=True,
        ))
        invoker = make_invoker(catalog, engine)
        invoker.ledger.upsert("s1", "coder", "first")

        await invoker.invoke("coder", "again", resume="s1")
        result = await invoker.invoke("coder", "once more", resume="s1")

        assert result.success is True
        assert len(engine.started) == 2

    @pytest.mark.asyncio
    async def test_resume_allowed_again_after_connect_failure(self, catalog):
        handles = [
            FakeHandle([RuntimeError("no connection")], connecting=True),
            simple_handle("s1"),
        ]
        engine = FakeEngine(lambda i, o: handles.pop(0))
        invoker = make_invoker(catalog, engine)
        invoker.ledger.upsert("s1", "coder", "first")

        failed = await invoker.invoke("coder", "again", resume="s1")
        result = await invoker.invoke("coder", "again", resume="s1")

        assert failed.success is False
        assert result.success is True

    @pytest.mark.asyncio
    async def test_forks_of_one_session_may_run_together(self, catalog):
        forks = iter(["f1", "f2"])
        engine = FakeEngine(lambda i, o: FakeHandle(
            [SessionEstablished(next(forks)), TerminalSuccess("ok")],
            connecting=True,
        ))
        invoker = make_invoker(catalog, engine)
        invoker.ledger.upsert("s1", "coder", "first")

        results = await asyncio.gather(
            invoker.invoke("coder", "a", resume="s1", fork=True),
            invoker.invoke("coder", "b", resume="s1", fork=True),
        )

        assert sorted(r.session_id for r in results) == ["f1", "f2"]


class TestInstructions:
    @pytest.mark.asyncio
    async def test_prompt_and_system_prompt(self, catalog):
        engine = FakeEngine(lambda i, o: simple_handle("s1"))
        invoker = make_invoker(catalog, engine)

        await invoker.invoke("coder", "Add a flag")

        instructions = engine.instructions[0]
        assert instructions.prompt.startswith("Add a flag\n\n---\n**Output Requirements**")
        assert "List of any files created or modified" in instructions.prompt
        assert instructions.system_prompt.startswith("You code.")
        assert "- **planner**: Plans work" in instructions.system_prompt
        assert "- **coder**" not in instructions.system_prompt
        assert "Maximum depth: 5" in instructions.system_prompt

    @pytest.mark.asyncio
    async def test_model_override_from_definition(self, catalog):
        catalog.get("reviewer").model = "opus"
        engine = FakeEngine(lambda i, o: simple_handle("s1"))
        invoker = make_invoker(catalog, engine)

        await invoker.invoke("reviewer", "Review")

        assert engine.started[0].model == "opus"
