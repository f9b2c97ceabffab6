"""
Stages, envelopes, and execution records.

A run moves through seven fixed stages. The unit of flow is a
``StageEnvelope``: run identity plus a ``stage`` discriminant and the typed
payload of that stage. Plugins check the incoming envelope with
:func:`expect_stage` before touching its payload.

ARCHITECTURE
────────────
::

    input ─► shape ─► plan ─► simulate ─► recommend ─► report ─► finalize

    InputPayload          workspace
    ShapePayload          + selected_signals, topology, signal_buckets
    PlanPayload           + plan, ranking, topology
    SimulationPayload     + simulation, risk_envelope, plan, ranking
    RecommendationPayload + recommendations, summary, simulation, plan
    ReportPayload         + stages, traces, top_signals, selected_bands, ...
    FinalizePayload       ReportPayload + finalized_at, diagnostics

Every payload carries the same ``workspace`` object by reference.

Tags:
    stresslab, orchestration, envelope, stages, tagged-union
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from stresslab.core.errors import StageExecutionError
from stresslab.core.identifiers import RunId, SignalId, TenantId
from stresslab.core.result import Err, Ok, Result
from stresslab.core.timestamps import to_iso8601, utc_now
from stresslab.orchestration.ranking import RankingEntry, SignalBucket
from stresslab.orchestration.topology import WorkflowTopology
from stresslab.workspace.models import (
    OrchestrationPlan,
    RecoverySignal,
    RecoverySimulationResult,
    SeverityBand,
    WorkflowRecommendation,
    WorkflowWorkspaceSeed,
)

P = TypeVar("P")


class WorkflowStage(str, Enum):
    INPUT = "input"
    SHAPE = "shape"
    PLAN = "plan"
    SIMULATE = "simulate"
    RECOMMEND = "recommend"
    REPORT = "report"
    FINALIZE = "finalize"

    @property
    def route(self) -> str:
        return f"{self.value}:phase"

    @property
    def tag(self) -> str:
        return f"advanced-workflow#{self.value}#event"


WORKFLOW_STAGES: tuple[WorkflowStage, ...] = tuple(WorkflowStage)


# =============================================================================
# Execution records
# =============================================================================


@dataclass(frozen=True)
class ExecutionStage:
    """Timing of one successful stage transition."""

    stage: WorkflowStage
    route: str
    started_at: datetime
    finished_at: datetime
    elapsed_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "route": self.route,
            "startedAt": to_iso8601(self.started_at),
            "finishedAt": to_iso8601(self.finished_at),
            "elapsedMs": self.elapsed_ms,
        }


@dataclass(frozen=True)
class ExecutionTrace:
    sequence: int
    stage: WorkflowStage
    plugin_id: str
    ok: bool
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "stage": self.stage.value,
            "pluginId": self.plugin_id,
            "ok": self.ok,
            "message": self.message,
        }


# =============================================================================
# Payloads
# =============================================================================


@dataclass(frozen=True)
class RiskEnvelope:
    risk_score: int
    sla: int


@dataclass(frozen=True)
class SelectedBands:
    baseline: SeverityBand
    final: SeverityBand
    drift: int


@dataclass(frozen=True)
class InputPayload:
    workspace: WorkflowWorkspaceSeed


@dataclass(frozen=True)
class ShapePayload:
    workspace: WorkflowWorkspaceSeed
    selected_signals: tuple[RecoverySignal, ...]
    topology: WorkflowTopology
    signal_buckets: tuple[SignalBucket, ...]


@dataclass(frozen=True)
class PlanPayload:
    workspace: WorkflowWorkspaceSeed
    plan: OrchestrationPlan
    ranking: tuple[RankingEntry, ...]
    topology: WorkflowTopology


@dataclass(frozen=True)
class SimulationPayload:
    workspace: WorkflowWorkspaceSeed
    simulation: RecoverySimulationResult
    risk_envelope: RiskEnvelope
    plan: OrchestrationPlan
    ranking: tuple[RankingEntry, ...]


@dataclass(frozen=True)
class RecommendationPayload:
    workspace: WorkflowWorkspaceSeed
    recommendations: tuple[WorkflowRecommendation, ...]
    summary: str
    simulation: RecoverySimulationResult
    plan: OrchestrationPlan


@dataclass(frozen=True)
class ReportPayload:
    workspace: WorkflowWorkspaceSeed
    stages: tuple[ExecutionStage, ...]
    traces: tuple[ExecutionTrace, ...]
    simulation: RecoverySimulationResult | None
    plan: OrchestrationPlan | None
    top_signals: tuple[SignalId, ...]
    selected_bands: SelectedBands
    recommendations: tuple[WorkflowRecommendation, ...]


@dataclass(frozen=True)
class FinalizePayload(ReportPayload):
    finalized_at: datetime = field(default_factory=utc_now)
    diagnostics: tuple[str, ...] = ()


PAYLOAD_TYPES: dict[WorkflowStage, type] = {
    WorkflowStage.INPUT: InputPayload,
    WorkflowStage.SHAPE: ShapePayload,
    WorkflowStage.PLAN: PlanPayload,
    WorkflowStage.SIMULATE: SimulationPayload,
    WorkflowStage.RECOMMEND: RecommendationPayload,
    WorkflowStage.REPORT: ReportPayload,
    WorkflowStage.FINALIZE: FinalizePayload,
}


# =============================================================================
# Envelope
# =============================================================================


@dataclass(frozen=True)
class StageEnvelope(Generic[P]):
    """One stage's output, tagged with run identity and stage."""

    run_id: RunId
    workspace_tenant_id: TenantId
    stage: WorkflowStage
    payload: P
    started_at: datetime = field(default_factory=utc_now)

    @property
    def route(self) -> str:
        return self.stage.route

    @property
    def tag(self) -> str:
        return self.stage.tag

    def advance(self, stage: WorkflowStage, payload: Any) -> StageEnvelope[Any]:
        """Build the next stage's envelope for the same run."""
        return StageEnvelope(
            run_id=self.run_id,
            workspace_tenant_id=self.workspace_tenant_id,
            stage=stage,
            payload=payload,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "runId": str(self.run_id),
            "workspaceTenantId": str(self.workspace_tenant_id),
            "startedAt": to_iso8601(self.started_at),
            "stage": self.stage.value,
            "route": self.route,
            "tag": self.tag,
        }


def expect_stage(envelope: StageEnvelope[Any], stage: WorkflowStage) -> Result[Any]:
    """Return the payload if ``envelope`` is a well-formed ``stage`` envelope."""
    if not isinstance(envelope, StageEnvelope):
        return Err(StageExecutionError([f"expected a stage envelope, got {type(envelope).__name__}"]))
    if envelope.stage != stage:
        return Err(
            StageExecutionError(
                [f"expected {stage.value} envelope, got {envelope.stage.value}"],
                stage=stage.value,
            )
        )
    expected = PAYLOAD_TYPES[stage]
    if not isinstance(envelope.payload, expected):
        return Err(
            StageExecutionError(
                [f"{stage.value} envelope carries {type(envelope.payload).__name__}, "
                 f"expected {expected.__name__}"],
                stage=stage.value,
            )
        )
    return Ok(envelope.payload)


# =============================================================================
# Execution result
# =============================================================================


def build_stage_summary(traces: tuple[ExecutionTrace, ...] | list[ExecutionTrace]) -> dict[str, dict[str, Any]]:
    """Group trace messages per stage: ``{"stage:<name>": {index, stage, events}}``."""
    summary: dict[str, dict[str, Any]] = {}
    for index, trace in enumerate(traces):
        key = f"stage:{trace.stage.value}"
        entry = summary.setdefault(key, {"index": index, "stage": trace.stage.value, "events": []})
        entry["events"].append(trace.message)
    return summary


@dataclass(frozen=True)
class ExecutionResult:
    """Terminal artifact of a successful run."""

    run_id: RunId
    tenant_id: TenantId
    stages: tuple[ExecutionStage, ...]
    traces: tuple[ExecutionTrace, ...]
    workspace: WorkflowWorkspaceSeed
    simulation: RecoverySimulationResult | None
    plan: OrchestrationPlan | None
    recommendations: tuple[str, ...]
    stage_summary: dict[str, dict[str, Any]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "runId": str(self.run_id),
            "tenantId": str(self.tenant_id),
            "stages": [s.to_dict() for s in self.stages],
            "traces": [t.to_dict() for t in self.traces],
            "stageSummary": self.stage_summary,
            "workspace": self.workspace.to_dict(),
            "simulation": self.simulation.to_dict() if self.simulation else None,
            "plan": self.plan.to_dict() if self.plan else None,
            "recommendations": list(self.recommendations),
        }
