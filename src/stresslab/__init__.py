"""
stresslab - staged workflow engine for the recovery stress lab.

- stresslab.core: errors, Result, logging, settings, identifiers
- stresslab.workspace: seed document validation and workspace model
- stresslab.orchestration: plugin pipeline and workflow engine
"""

__version__ = "0.1.0"

from stresslab.orchestration.engine import WorkflowEngine, run_workflow
from stresslab.workspace.normalize import normalize_workspace, parse_workspace

__all__ = [
    "__version__",
    "WorkflowEngine",
    "normalize_workspace",
    "parse_workspace",
    "run_workflow",
]
