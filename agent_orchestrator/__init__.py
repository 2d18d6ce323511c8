"""Agent Orchestrator - run, resume, cancel and delegate between named agents."""

from .errors import AgentError, AgentErrorCode
from .service import OrchestratorService

__version__ = "0.1.0"

__all__ = ["AgentError", "AgentErrorCode", "OrchestratorService", "__version__"]
