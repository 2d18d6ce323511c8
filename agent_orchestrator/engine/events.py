"""Engine-agnostic lifecycle events and execution options."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Tuple, Union

if TYPE_CHECKING:
    from ..tools.base import BaseTool

# Tool names whose ``file_path`` argument marks a created or modified file.
FILE_WRITE_TOOLS = ("Write", "Edit", "MultiEdit", "NotebookEdit")


@dataclass(frozen=True)
class FileWrite:
    """A write/edit action reported by the engine."""

    tool: str
    path: str


@dataclass(frozen=True)
class SessionEstablished:
    """The engine assigned a durable session id."""

    session_id: str


@dataclass(frozen=True)
class ContentStep:
    """Intermediate assistant output, possibly including file writes."""

    text: Optional[str] = None
    file_writes: Tuple[FileWrite, ...] = ()


@dataclass(frozen=True)
class TerminalSuccess:
    result: str


@dataclass(frozen=True)
class TerminalFailure:
    error: str


EngineEvent = Union[SessionEstablished, ContentStep, TerminalSuccess, TerminalFailure]


@dataclass
class EngineOptions:
    """Options passed to ``ExecutionEngine.start``.

    Attributes:
        agent: Name of the agent being run
        resume: Session id to continue, if any
        fork: Fork the resumed session instead of continuing it
        delegate_tool: Tool an agent uses to delegate a subtask; called with
            ``caller_session_id`` plus the raw tool arguments
        permission_mode: Engine permission mode for file edits
        model: Model override, ``None`` inherits the engine default
        cwd: Working directory for the run
    """

    agent: str
    resume: Optional[str] = None
    fork: bool = False
    delegate_tool: Optional[BaseTool] = None
    permission_mode: str = "acceptEdits"
    model: Optional[str] = None
    cwd: Optional[str] = None


@dataclass(frozen=True)
class Instructions:
    """Instruction payload for one execution."""

    system_prompt: str
    prompt: str
