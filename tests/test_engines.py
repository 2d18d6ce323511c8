"""Tests for the stub engine, the engine factory and SDK message translation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pytest

from agent_orchestrator.config import OrchestratorConfig
from agent_orchestrator.engine import ClaudeEngine, StubEngine, create_engine
from agent_orchestrator.engine.claude import translate_message
from agent_orchestrator.engine.events import (
    ContentStep,
    EngineOptions,
    FileWrite,
    Instructions,
    SessionEstablished,
    TerminalFailure,
    TerminalSuccess,
)
from agent_orchestrator.engine.stub import StubScript
from agent_orchestrator.service import OrchestratorService


# Stand-ins shaped like the SDK message classes; translation matches on class name.
@dataclass
class SystemMessage:
    subtype: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TextBlock:
    text: str


@dataclass
class ToolUseBlock:
    id: str
    name: str
    input: Dict[str, Any]


@dataclass
class AssistantMessage:
    content: List[Any]
    model: str = "test-model"


@dataclass
class ResultMessage:
    subtype: str
    is_error: bool = False
    result: Optional[str] = None


class TestTranslateMessage:
    def test_init_message(self):
        events = translate_message(SystemMessage("init", {"session_id": "abc"}))
        assert events == [SessionEstablished("abc")]

    def test_other_system_messages_ignored(self):
        assert translate_message(SystemMessage("compact", {"session_id": "abc"})) == []

    def test_assistant_text_and_writes(self):
        message = AssistantMessage([
            TextBlock("Writing files"),
            ToolUseBlock("1", "Write", {"file_path": "/a.py", "content": "x"}),
            ToolUseBlock("2", "Read", {"file_path": "/b.py"}),
            ToolUseBlock("3", "NotebookEdit", {"notebook_path": "/n.ipynb"}),
        ])

        [event] = translate_message(message)

        assert event == ContentStep(
            text="Writing files",
            file_writes=(FileWrite("Write", "/a.py"), FileWrite("NotebookEdit", "/n.ipynb")),
        )

    def test_assistant_without_content(self):
        assert translate_message(AssistantMessage([ToolUseBlock("1", "Bash", {"command": "ls"})])) == []

    def test_result_success(self):
        assert translate_message(ResultMessage("success", result="Done")) == [TerminalSuccess("Done")]

    def test_result_error_subtype(self):
        assert translate_message(ResultMessage("error_max_turns")) == [TerminalFailure("error_max_turns")]

    def test_result_flagged_as_error(self):
        events = translate_message(ResultMessage("success", is_error=True, result="API error"))
        assert events == [TerminalFailure("API error")]

    def test_unknown_message(self):
        assert translate_message(object()) == []


class TestStubEngine:
    """Tests for the deterministic engine."""

    @pytest.mark.asyncio
    async def test_event_sequence(self):
        engine = StubEngine({"coder": StubScript(file_writes=["src/a.py"], result="Wrote {task}")})
        handle = engine.start(Instructions(system_prompt="s", prompt="Add a\nmore"), EngineOptions(agent="coder"))

        events = [event async for event in handle]

        assert events == [
            SessionEstablished("stub-0001"),
            ContentStep(text="Working on: Add a"),
            ContentStep(file_writes=(FileWrite("Write", "src/a.py"),)),
            TerminalSuccess("Wrote Add a"),
        ]

    @pytest.mark.asyncio
    async def test_resume_reuses_session_and_fork_does_not(self):
        engine = StubEngine()
        instructions = Instructions(system_prompt="s", prompt="p")

        resumed = engine.start(instructions, EngineOptions(agent="coder", resume="old"))
        forked = engine.start(instructions, EngineOptions(agent="coder", resume="old", fork=True))

        assert resumed.session_id == "old"
        assert forked.session_id == "stub-0001"

    @pytest.mark.asyncio
    async def test_scripted_error(self):
        engine = StubEngine(default=StubScript(error="boom"))
        handle = engine.start(Instructions(system_prompt="s", prompt="p"), EngineOptions(agent="x"))

        events = [event async for event in handle]

        assert events[-1] == TerminalFailure("boom")

    @pytest.mark.asyncio
    async def test_iterated_once(self):
        engine = StubEngine()
        handle = engine.start(Instructions(system_prompt="s", prompt="p"), EngineOptions(agent="x"))
        [event async for event in handle]

        with pytest.raises(RuntimeError):
            handle.__aiter__()


class TestCreateEngine:
    def test_known_engines(self):
        assert isinstance(create_engine("stub"), StubEngine)
        assert isinstance(create_engine("Claude"), ClaudeEngine)

    def test_unknown_engine(self):
        with pytest.raises(ValueError):
            create_engine("gemini")

    def test_service_builds_engine_from_config(self, catalog):
        service = OrchestratorService(config=OrchestratorConfig(engine="stub"), catalog=catalog)

        assert isinstance(service.engine, StubEngine)
