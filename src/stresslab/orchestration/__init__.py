"""
Stress-lab Orchestration — the staged plugin pipeline.

ARCHITECTURE
────────────
::

    WorkflowEngine                 ─ façade: run id, registry, audit, result
      ├── PluginRegistry           ─ per-run, dependency-checked plugins
      ├── execute_chain()          ─ sequential await, stop on first failure
      └── AuditScope               ─ disposable event timeline

    catalog                        ─ the six stage plugins
    stages                         ─ WorkflowStage, StageEnvelope, payloads
    topology / ranking             ─ pure helpers used inside the stages

MODULE MAP (recommended reading order)
──────────────────────────────────────
1. topology.py         ─ dependency graph over workload targets
2. ranking.py          ─ severity ranking and runbook scoring
3. stages.py           ─ stage enum, envelopes, execution records
4. plugins.py          ─ plugin contract and ``stage_plugin`` decorator
5. plugin_registry.py  ─ dependency-checked registration
6. audit.py            ─ audit scope
7. chain_executor.py   ─ chain execution state machine
8. catalog.py          ─ stage plugin implementations
9. engine.py           ─ workflow engine façade

Example:
    from stresslab.orchestration import WorkflowEngine

    result = await WorkflowEngine().run_document(seed)
"""

from stresslab.orchestration.audit import AuditEvent, AuditKind, AuditScope
from stresslab.orchestration.catalog import (
    WORKFLOW_CHAIN,
    WORKFLOW_PLUGIN_KINDS,
    build_workflow_chain,
    collect_plugin_kinds,
)
from stresslab.orchestration.chain_executor import ChainExecution, ChainStatus, execute_chain
from stresslab.orchestration.engine import (
    STAGE_WEIGHTS,
    WorkflowEngine,
    build_input_envelope,
    compute_stage_digest,
    create_workflow_run_id,
    run_workflow,
    summarize_execution_result,
)
from stresslab.orchestration.plugin_registry import PluginRegistry
from stresslab.orchestration.plugins import PluginContext, StagePlugin, stage_plugin
from stresslab.orchestration.ranking import (
    RankingEntry,
    SignalBucket,
    bucket_signal_classes,
    infer_ranking,
    rank_signals,
)
from stresslab.orchestration.stages import (
    WORKFLOW_STAGES,
    ExecutionResult,
    ExecutionStage,
    ExecutionTrace,
    StageEnvelope,
    WorkflowStage,
    expect_stage,
)
from stresslab.orchestration.topology import (
    TopologyEdge,
    WorkflowTopology,
    build_topology,
    derive_topology_budget,
    topology_cycles,
)

__all__ = [
    # audit
    "AuditEvent",
    "AuditKind",
    "AuditScope",
    # catalog
    "WORKFLOW_CHAIN",
    "WORKFLOW_PLUGIN_KINDS",
    "build_workflow_chain",
    "collect_plugin_kinds",
    # chain executor
    "ChainExecution",
    "ChainStatus",
    "execute_chain",
    # engine
    "STAGE_WEIGHTS",
    "WorkflowEngine",
    "build_input_envelope",
    "compute_stage_digest",
    "create_workflow_run_id",
    "run_workflow",
    "summarize_execution_result",
    # plugins
    "PluginContext",
    "PluginRegistry",
    "StagePlugin",
    "stage_plugin",
    # ranking
    "RankingEntry",
    "SignalBucket",
    "bucket_signal_classes",
    "infer_ranking",
    "rank_signals",
    # stages
    "WORKFLOW_STAGES",
    "ExecutionResult",
    "ExecutionStage",
    "ExecutionTrace",
    "StageEnvelope",
    "WorkflowStage",
    "expect_stage",
    # topology
    "TopologyEdge",
    "WorkflowTopology",
    "build_topology",
    "derive_topology_budget",
    "topology_cycles",
]
