"""Session and delegation control core.

Agents are named markdown definitions run through an execution engine. The
ledger tracks which sessions are running or resumable, delegation contexts
bound nested calls by depth and cycles, and the batch coordinator fans
independent tasks out in parallel.
"""

from .protocol import AgentResult, BatchResult, BatchTask, BatchTaskResult, DelegationResult, SessionInfo
from .catalog import AgentCatalog, AgentDefinition, parse_agent_file
from .ledger import SessionLedger
from .context import ContextTable, DelegationContext, descend
from .invoker import AgentInvoker, InvocationState, fold_event
from .batch import BatchCoordinator
from .delegation import DelegationConfig, DelegationManager, DelegationRequest
from .agent_tool import DelegationTool

__all__ = [
    "AgentResult",
    "BatchResult",
    "BatchTask",
    "BatchTaskResult",
    "DelegationResult",
    "SessionInfo",
    "AgentCatalog",
    "AgentDefinition",
    "parse_agent_file",
    "SessionLedger",
    "ContextTable",
    "DelegationContext",
    "descend",
    "AgentInvoker",
    "InvocationState",
    "fold_event",
    "BatchCoordinator",
    "DelegationConfig",
    "DelegationManager",
    "DelegationRequest",
    "DelegationTool",
]
