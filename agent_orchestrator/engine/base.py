"""Execution engine protocol definitions."""

from __future__ import annotations

from typing import AsyncIterator, Protocol

from .events import EngineEvent, EngineOptions, Instructions


class ExecutionHandle(Protocol):
    """An in-flight execution: an ordered event stream plus interrupt."""

    def __aiter__(self) -> AsyncIterator[EngineEvent]: ...

    async def interrupt(self) -> None: ...


class ExecutionEngine(Protocol):
    """Protocol for engine implementations."""

    def start(self, instructions: Instructions, options: EngineOptions) -> ExecutionHandle: ...
