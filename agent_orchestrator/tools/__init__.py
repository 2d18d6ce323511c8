"""Tools exposed to callers and to running agents."""

from .base import BaseTool, ToolResult
from .orchestration import (
    CancelAgentTool,
    GetAgentSessionsTool,
    RunAgentsBatchTool,
    RunAgentTool,
    build_orchestration_tools,
)

__all__ = [
    "BaseTool",
    "ToolResult",
    "CancelAgentTool",
    "GetAgentSessionsTool",
    "RunAgentsBatchTool",
    "RunAgentTool",
    "build_orchestration_tools",
]
