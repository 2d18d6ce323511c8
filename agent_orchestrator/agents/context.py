"""Delegation context threaded through nested agent invocations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterator, Optional, Tuple

from ..errors import DelegationCycleDetectedError, DelegationDepthExceededError

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 5


@dataclass(frozen=True)
class DelegationContext:
    """Position of one invocation inside a delegation tree.

    Attributes:
        depth: Number of delegation hops from the root call
        chain: Agent names from the root to the current call
        root_session_id: Session id of the root call ("" until known)
    """

    depth: int
    chain: Tuple[str, ...]
    root_session_id: str = ""

    @classmethod
    def root(cls, agent_name: str, session_id: str = "") -> DelegationContext:
        return cls(depth=0, chain=(agent_name,), root_session_id=session_id)

    @property
    def current_agent(self) -> str:
        return self.chain[-1]

    def with_root_session(self, session_id: str) -> DelegationContext:
        """Backfill the root session id if it is still unknown."""
        if self.root_session_id:
            return self
        return replace(self, root_session_id=session_id)

    def snapshot(self) -> Dict[str, object]:
        return {"depth": self.depth, "chain": list(self.chain)}


def descend(
    parent: DelegationContext,
    child_agent: str,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> DelegationContext:
    """Derive the context for a delegated call.

    The depth bound is checked before the chain.

    Raises:
        DelegationDepthExceededError: If ``parent.depth + 1`` exceeds ``max_depth``
        DelegationCycleDetectedError: If ``child_agent`` is already in the chain
    """
    new_depth = parent.depth + 1
    attempted = parent.chain + (child_agent,)

    if new_depth > max_depth:
        raise DelegationDepthExceededError(new_depth, max_depth, attempted)

    if child_agent in parent.chain:
        raise DelegationCycleDetectedError(child_agent, attempted)

    return DelegationContext(
        depth=new_depth,
        chain=attempted,
        root_session_id=parent.root_session_id,
    )


class ContextTable:
    """Contexts of in-flight sessions, keyed by the running session id.

    Entries exist only while the owning session runs, so the table size is
    bounded by the number of in-flight invocations.
    """

    def __init__(self) -> None:
        self._contexts: Dict[str, DelegationContext] = {}

    def register(self, session_id: str, context: DelegationContext) -> None:
        self._contexts[session_id] = context
        logger.debug(
            "Registered context for %s: depth=%d chain=%s",
            session_id,
            context.depth,
            "→".join(context.chain),
        )

    def get(self, session_id: str) -> Optional[DelegationContext]:
        return self._contexts.get(session_id)

    def discard(self, session_id: str) -> None:
        self._contexts.pop(session_id, None)

    def release(self, session_id: str, context: DelegationContext) -> bool:
        """Discard the entry only if it is the ``context`` object registered by the caller."""
        if self._contexts.get(session_id) is not context:
            return False
        del self._contexts[session_id]
        return True

    def clear(self) -> None:
        self._contexts.clear()

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._contexts

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._contexts))

    def __repr__(self) -> str:
        return f"ContextTable(in_flight={len(self._contexts)})"
