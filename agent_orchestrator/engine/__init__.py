"""Execution engine factory."""

from __future__ import annotations

from .base import ExecutionEngine, ExecutionHandle
from .claude import ClaudeEngine
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
from .stub import StubEngine, StubScript


def create_engine(name: str) -> ExecutionEngine:
    engine_name = (name or "stub").lower()

    if engine_name == "claude":
        return ClaudeEngine()
    if engine_name == "stub":
        return StubEngine()

    raise ValueError(f"Unknown engine: {name}. Expected 'stub' or 'claude'")


__all__ = [
    "ClaudeEngine",
    "ContentStep",
    "EngineEvent",
    "EngineOptions",
    "ExecutionEngine",
    "ExecutionHandle",
    "FileWrite",
    "Instructions",
    "SessionEstablished",
    "StubEngine",
    "StubScript",
    "TerminalFailure",
    "TerminalSuccess",
    "create_engine",
]
