"""Team Workflow Orchestrator.

Routes heterogeneous inputs (transcripts, emails, calendar events) to team
handlers and chains multi-phase workflows:
- a directed-graph execution engine
- a capability-based team handler registry
- a single-shot supervisor router
- a multi-phase master orchestrator with transition rules
- a monotonic progress publisher
"""

__version__ = "0.1.0"

from team_workflow_orchestrator.bootstrap import OrchestrationRuntime, build_runtime
from team_workflow_orchestrator.core.config import OrchestratorConfig

__all__ = ["__version__", "OrchestrationRuntime", "OrchestratorConfig", "build_runtime"]
