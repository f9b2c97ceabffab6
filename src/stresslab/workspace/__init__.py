"""
stresslab.workspace - the validated, immutable input of a workflow run.

- models: frozen workspace records and plan artifacts
- schema: pydantic models for the camelCase seed document
- normalize: ``normalize_workspace`` / ``parse_workspace``
"""

from stresslab.workspace.models import (
    BANDS_ORDER,
    CommandRunbook,
    OrchestrationPlan,
    RecoverySignal,
    RecoverySimulationResult,
    RecoveryStep,
    RunbookSeed,
    SeverityBand,
    SignalClass,
    WorkflowMode,
    WorkflowRecommendation,
    WorkflowWorkspaceSeed,
    WorkloadTarget,
    collect_workspace_paths,
    merge_workspace,
    resolve_workspace_path,
    summarize_target_path,
    workspace_meta,
)
from stresslab.workspace.normalize import normalize_workspace, parse_workspace

__all__ = [
    "BANDS_ORDER",
    "CommandRunbook",
    "OrchestrationPlan",
    "RecoverySignal",
    "RecoverySimulationResult",
    "RecoveryStep",
    "RunbookSeed",
    "SeverityBand",
    "SignalClass",
    "WorkflowMode",
    "WorkflowRecommendation",
    "WorkflowWorkspaceSeed",
    "WorkloadTarget",
    "collect_workspace_paths",
    "merge_workspace",
    "normalize_workspace",
    "parse_workspace",
    "resolve_workspace_path",
    "summarize_target_path",
    "workspace_meta",
]
