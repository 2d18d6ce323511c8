"""DelegationTool - exposes the delegation manager to running agents."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Dict

from ..tools.base import BaseTool, ToolResult
from .delegation import DelegationRequest
from .invoker import DELEGATE_TOOL_NAME

if TYPE_CHECKING:
    from .catalog import AgentCatalog
    from .delegation import DelegationManager


class DelegationTool(BaseTool):
    """The ``delegate_to_agent`` tool handed to every running agent.

    Engines call ``execute`` with the calling session id plus the raw tool
    arguments; the outcome is always a ``ToolResult`` carrying the
    serialized ``DelegationResult``.

    Example:
        tool = DelegationTool(delegation_manager, catalog)
        result = await tool.execute(
            caller_session_id=session_id,
            agent="reviewer",
            task="Review the diff",
        )
    """

    def __init__(self, delegation_manager: DelegationManager, catalog: AgentCatalog):
        self.delegation_manager = delegation_manager
        self.catalog = catalog
        self.name = DELEGATE_TOOL_NAME
        self.parameters = {
            "agent": {
                "type": "string",
                "description": "Name of the agent to delegate to",
                "required": True,
            },
            "task": {
                "type": "string",
                "description": "Task prompt for the delegated agent. Include all necessary context.",
                "required": True,
            },
            "context_data": {
                "type": "object",
                "description": "Optional structured data to include in the task context",
                "required": False,
            },
        }

    @property
    def description(self) -> str:
        # Built on access so catalog reloads show up in new sessions.
        names = self.catalog.names()
        agents = f"Available agents: {', '.join(names)}" if names else "No agents available"
        max_depth = self.delegation_manager.config.max_depth
        return (
            "Delegate a task to another specialized agent and receive their result.\n\n"
            "Use this when the current task would benefit from another agent's expertise. "
            "The delegated agent runs with its own system prompt and capabilities.\n\n"
            f"{agents}\n\n"
            "## Loop Protection\n"
            f"- Maximum delegation depth: {max_depth} levels\n"
            "- Cycles are prevented (A→B→A is not allowed)\n"
            "- Exceeding limits returns an error instead of crashing"
        )

    async def execute(self, caller_session_id: str = "", **kwargs) -> ToolResult:
        """Delegate on behalf of ``caller_session_id``.

        Args:
            caller_session_id: Session id of the agent making the call
            **kwargs: Tool arguments (``agent``, ``task``, ``context_data``)

        Returns:
            ToolResult; ``success`` mirrors the delegated run
        """
        arguments: Dict[str, Any] = dict(kwargs)
        raw_context = arguments.get("context_data")
        if isinstance(raw_context, str):
            # Some models send the object as a JSON string.
            try:
                parsed = json.loads(raw_context)
            except json.JSONDecodeError:
                parsed = {"value": raw_context}
            arguments["context_data"] = parsed if isinstance(parsed, dict) else {"value": parsed}

        request = DelegationRequest.from_arguments(arguments)
        result = await self.delegation_manager.delegate(request, caller_session_id)
        return ToolResult.from_payload(result.to_dict(), success=result.success)

    def __repr__(self) -> str:
        return f"DelegationTool(name={self.name!r}, agents={self.catalog.names()!r})"
