"""Caller-facing orchestration tools: run, batch, list sessions, cancel."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .base import BaseTool, ToolResult

if TYPE_CHECKING:
    from ..service import OrchestratorService


class RunAgentParams(BaseModel):
    agent: str = Field(min_length=1)
    task: str = Field(min_length=1)
    resume: Optional[str] = None
    fork: bool = False


class BatchTaskParams(BaseModel):
    agent: str = Field(min_length=1)
    task: str = Field(min_length=1)
    id: Optional[str] = None


class RunAgentsBatchParams(BaseModel):
    # Length bounds are enforced by the batch coordinator so the error
    # carries INVALID_BATCH.
    tasks: List[BatchTaskParams]


class GetAgentSessionsParams(BaseModel):
    agent: Optional[str] = None
    active_only: bool = False


class CancelAgentParams(BaseModel):
    session_id: str = Field(min_length=1)


class DelegateToAgentParams(BaseModel):
    agent: str = Field(min_length=1)
    task: str = Field(min_length=1)
    context_data: Optional[Dict[str, Any]] = None


class OrchestrationTool(BaseTool):
    """Tool bound to an ``OrchestratorService``."""

    params_model: type = BaseModel

    def __init__(self, service: OrchestratorService):
        self.service = service

    def _agent_property(self, description: str) -> Dict[str, Any]:
        prop: Dict[str, Any] = {"type": "string", "description": description, "required": True}
        names = self.service.catalog.names()
        if names:
            prop["enum"] = names
        return prop

    async def execute(self, **kwargs) -> ToolResult:
        params = self.params_model.model_validate(kwargs)
        payload = await self.run(params)
        return ToolResult.from_payload(payload)

    async def run(self, params: Any) -> Dict[str, Any]:
        raise NotImplementedError


class RunAgentTool(OrchestrationTool):
    name = "run_agent"
    params_model = RunAgentParams

    @property
    def description(self) -> str:
        agents = self.service.catalog.list()
        listing = "\n".join(f"- **{a.name}**: {a.description}" for a in agents) or "No agents available."
        return (
            "Run a specialized agent on a task, or continue a previous session.\n\n"
            "## Available Agents\n"
            f"{listing}\n\n"
            "## Sessions\n"
            "Every run returns a `session_id`. Pass it back as `resume` to send a "
            "follow-up prompt to the same conversation; set `fork` to branch instead "
            "of continuing. Active sessions cannot be resumed until they finish or "
            "are cancelled."
        )

    @property
    def parameters(self) -> Dict[str, Any]:
        return {
            "agent": self._agent_property("Name of the agent to run"),
            "task": {
                "type": "string",
                "description": "Task prompt for the agent",
                "required": True,
            },
            "resume": {
                "type": "string",
                "description": "Session id to continue (from a previous run or get_agent_sessions)",
            },
            "fork": {
                "type": "boolean",
                "description": "Fork the resumed session instead of continuing it",
            },
        }

    async def run(self, params: RunAgentParams) -> Dict[str, Any]:
        result = await self.service.run(params.agent, params.task, resume=params.resume, fork=params.fork)
        return result.to_dict()


class RunAgentsBatchTool(OrchestrationTool):
    name = "run_agents_batch"
    params_model = RunAgentsBatchParams

    @property
    def description(self) -> str:
        max_tasks = self.service.config.batch.max_tasks
        return (
            "Run multiple agents in parallel and wait for all of them.\n\n"
            "Total time is the longest single task, not the sum. A failing task "
            "never hides the others: each entry reports its own success, "
            "session_id and summary.\n\n"
            f"Accepts 1 to {max_tasks} tasks. Each task may carry an `id`; "
            "otherwise it is named `task-<index>`."
        )

    @property
    def parameters(self) -> Dict[str, Any]:
        task_props = {
            "id": {"type": "string", "description": "Identifier echoed back in the result"},
            "agent": {k: v for k, v in self._agent_property("Agent to run").items() if k != "required"},
            "task": {"type": "string", "description": "Task prompt for the agent"},
        }
        return {
            "tasks": {
                "type": "array",
                "description": "Tasks to run in parallel",
                "minItems": 1,
                "maxItems": self.service.config.batch.max_tasks,
                "items": {
                    "type": "object",
                    "properties": task_props,
                    "required": ["agent", "task"],
                },
                "required": True,
            },
        }

    async def run(self, params: RunAgentsBatchParams) -> Dict[str, Any]:
        result = await self.service.run_batch([t.model_dump() for t in params.tasks])
        return result.to_dict()


class GetAgentSessionsTool(OrchestrationTool):
    name = "get_agent_sessions"
    params_model = GetAgentSessionsParams
    description = (
        "List resumable agent sessions. Use to find a session_id for follow-up prompts.\n\n"
        "Sessions live in memory and are lost when the server restarts. Each entry has "
        "session_id, agent, initial_task, created_at, last_active (ISO 8601) and "
        "is_active; active sessions cannot be resumed."
    )
    parameters = {
        "agent": {
            "type": "string",
            "description": "Filter by agent name (returns only sessions for this agent)",
        },
        "active_only": {
            "type": "boolean",
            "description": "Only show currently running sessions",
        },
    }

    async def run(self, params: GetAgentSessionsParams) -> Dict[str, Any]:
        return self.service.list_sessions(agent=params.agent, active_only=params.active_only)


class CancelAgentTool(OrchestrationTool):
    name = "cancel_agent"
    params_model = CancelAgentParams
    description = (
        "Cancel a running agent session.\n\n"
        "Work already completed (files written, etc.) is preserved and the session "
        "becomes resumable with run_agent."
    )
    parameters = {
        "session_id": {
            "type": "string",
            "description": "Session ID to cancel (get from get_agent_sessions)",
            "required": True,
        },
    }

    async def run(self, params: CancelAgentParams) -> Dict[str, Any]:
        return await self.service.cancel(params.session_id)


def build_orchestration_tools(service: OrchestratorService) -> List[OrchestrationTool]:
    return [
        RunAgentTool(service),
        GetAgentSessionsTool(service),
        CancelAgentTool(service),
        RunAgentsBatchTool(service),
    ]
