"""Session ledger - tracks active and resumable agent sessions.

Sessions live in memory for the lifetime of the process. Every mutating
method is synchronous so that, on a single event loop, no other task can
observe a half-applied update. Only ``cancel`` and ``clear`` suspend, and
they do so before touching the tables.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..engine.base import ExecutionHandle
from ..errors import SessionNotFoundError
from .protocol import SessionInfo, utc_now

logger = logging.getLogger(__name__)


class SessionLedger:
    """Owns session records and the cancel handles of running sessions.

    Example:
        ledger = SessionLedger()
        ledger.upsert(session_id, "coder", "Fix the build", handle)
        ledger.complete(session_id)

        # Most recently touched first
        for info in ledger.list(agent="coder"):
            ...
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._sessions: Dict[str, SessionInfo] = {}
        self._handles: Dict[str, ExecutionHandle] = {}
        self._clock = clock

    def upsert(
        self,
        session_id: str,
        agent: str,
        task: str,
        handle: Optional[ExecutionHandle] = None,
    ) -> SessionInfo:
        """Create a session entry or refresh an existing one.

        ``initial_task`` and ``created_at`` are captured only on creation.
        The session is active exactly when a handle is supplied.
        """
        now = self._clock()
        existing = self._sessions.get(session_id)

        if existing is None:
            info = SessionInfo(
                session_id=session_id,
                agent=agent,
                initial_task=task,
                created_at=now,
                last_active=now,
                is_active=handle is not None,
            )
            self._sessions[session_id] = info
        else:
            info = existing
            info.agent = agent
            info.last_active = now
            info.is_active = handle is not None

        if handle is not None:
            self._handles[session_id] = handle
        else:
            self._handles.pop(session_id, None)

        return info

    def complete(self, session_id: str) -> None:
        """Mark a session as no longer running and release its handle."""
        info = self._sessions.get(session_id)
        if info is not None:
            info.is_active = False
            info.last_active = self._clock()
        self._handles.pop(session_id, None)

    def release(self, session_id: str, handle: ExecutionHandle) -> bool:
        """Complete a session only if ``handle`` is still the one it holds.

        A cancelled run whose stream drains after the session was resumed
        must not deactivate the newer run.

        Returns:
            True if the session was completed
        """
        if self._handles.get(session_id) is not handle:
            return False
        self.complete(session_id)
        return True

    def get(self, session_id: str) -> Optional[SessionInfo]:
        return self._sessions.get(session_id)

    def require(self, session_id: str) -> SessionInfo:
        """Get a session, raising ``SessionNotFoundError`` if absent."""
        info = self._sessions.get(session_id)
        if info is None:
            raise SessionNotFoundError(session_id)
        return info

    def get_handle(self, session_id: str) -> Optional[ExecutionHandle]:
        return self._handles.get(session_id)

    def has(self, session_id: str) -> bool:
        return session_id in self._sessions

    def is_active(self, session_id: str) -> bool:
        info = self._sessions.get(session_id)
        return info.is_active if info is not None else False

    def list(
        self,
        agent: Optional[str] = None,
        active_only: bool = False,
    ) -> List[SessionInfo]:
        """List sessions, most recently active first.

        Sessions with identical ``last_active`` keep their insertion order.
        """
        sessions = list(self._sessions.values())
        if agent:
            sessions = [s for s in sessions if s.agent == agent]
        if active_only:
            sessions = [s for s in sessions if s.is_active]
        return sorted(sessions, key=lambda s: s.last_active, reverse=True)

    def list_json(
        self,
        agent: Optional[str] = None,
        active_only: bool = False,
    ) -> List[Dict[str, Any]]:
        return [s.to_dict() for s in self.list(agent=agent, active_only=active_only)]

    async def cancel(self, session_id: str) -> bool:
        """Interrupt a running session.

        Work already completed by the engine (files written, etc.) is kept.
        The session is marked complete even when the interrupt call fails,
        so it always becomes resumable.

        Returns:
            True if an active session was found and cancelled
        """
        handle = self._handles.get(session_id)
        if handle is None:
            return False

        try:
            await handle.interrupt()
        except Exception as e:
            logger.error("Failed to interrupt session %s: %s", session_id, e)
        finally:
            self.complete(session_id)

        logger.info("Cancelled session %s", session_id)
        return True

    def remove(self, session_id: str) -> bool:
        self._handles.pop(session_id, None)
        return self._sessions.pop(session_id, None) is not None

    async def clear(self) -> None:
        """Interrupt every running session, then drop all records."""
        handles = list(self._handles.items())
        if handles:
            outcomes = await asyncio.gather(
                *(handle.interrupt() for _, handle in handles),
                return_exceptions=True,
            )
            for (session_id, _), outcome in zip(handles, outcomes):
                if isinstance(outcome, BaseException):
                    logger.debug("Ignoring interrupt failure for %s: %s", session_id, outcome)

        self._handles.clear()
        self._sessions.clear()
        logger.info("Cleared all sessions")

    @property
    def size(self) -> int:
        return len(self._sessions)

    @property
    def active_count(self) -> int:
        return len(self._handles)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __repr__(self) -> str:
        return f"SessionLedger(sessions={len(self._sessions)}, active={len(self._handles)})"
