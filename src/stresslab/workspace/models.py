"""
Workspace Model — the immutable per-run input of the workflow engine.

A ``WorkflowWorkspaceSeed`` is built once per run by
:func:`stresslab.workspace.normalize.normalize_workspace` and is passed by
reference through every stage. Nothing in this module has behavior beyond
construction invariants and serialization; the engine never mutates a
workspace, it builds new payloads that *include* it.

Also holds the plan artifacts the stages synthesize from a workspace
(``CommandRunbook``, ``OrchestrationPlan``, ``RecoverySimulationResult``,
``WorkflowRecommendation``).

Tags:
    stresslab, workspace, domain-model, immutable
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any

from stresslab.core.identifiers import RunbookId, SignalId, TenantId, WorkloadId
from stresslab.core.timestamps import to_iso8601

DEFAULT_REGION = "us-east-1"
DEFAULT_RTO_MINUTES = 30
MAX_RTO_MINUTES = 600
MIN_CRITICALITY = 1
MAX_CRITICALITY = 5


class SeverityBand(str, Enum):
    """Severity of a signal or runbook, ordered low → critical."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """1 for low up to 4 for critical."""
        return BANDS_ORDER.index(self) + 1


BANDS_ORDER: tuple[SeverityBand, ...] = (
    SeverityBand.LOW,
    SeverityBand.MEDIUM,
    SeverityBand.HIGH,
    SeverityBand.CRITICAL,
)


class SignalClass(str, Enum):
    AVAILABILITY = "availability"
    INTEGRITY = "integrity"
    PERFORMANCE = "performance"
    COMPLIANCE = "compliance"


class WorkflowMode(str, Enum):
    CONSERVATIVE = "conservative"
    ADAPTIVE = "adaptive"
    AGILE = "agile"


# =============================================================================
# Workspace records
# =============================================================================


@dataclass(frozen=True)
class WorkloadTarget:
    """A workload node in the dependency topology."""

    tenant_id: TenantId
    workload_id: WorkloadId
    runbook_id: RunbookId
    name: str
    criticality: int
    region: str = DEFAULT_REGION
    az_affinity: tuple[str, ...] = ()
    baseline_rto_minutes: int = DEFAULT_RTO_MINUTES
    dependencies: tuple[WorkloadId, ...] = ()

    def __post_init__(self) -> None:
        if not MIN_CRITICALITY <= self.criticality <= MAX_CRITICALITY:
            raise ValueError(f"criticality must be within 1..5, got {self.criticality}")
        if self.workload_id in self.dependencies:
            raise ValueError(f"target {self.workload_id} cannot depend on itself")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tenantId": str(self.tenant_id),
            "workloadId": str(self.workload_id),
            "runbookId": str(self.runbook_id),
            "name": self.name,
            "criticality": self.criticality,
            "region": self.region,
            "azAffinity": list(self.az_affinity),
            "baselineRtoMinutes": self.baseline_rto_minutes,
            "dependencies": [str(d) for d in self.dependencies],
        }


@dataclass(frozen=True)
class RecoverySignal:
    """An observed recovery-relevant event. Immutable once ingested."""

    id: SignalId
    signal_class: SignalClass
    severity: SeverityBand
    title: str
    created_at: datetime
    metadata: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        if not isinstance(self.metadata, MappingProxyType):
            object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def severity_rank(self) -> int:
        return self.severity.rank

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "class": self.signal_class.value,
            "severity": self.severity.value,
            "title": self.title,
            "createdAt": to_iso8601(self.created_at),
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class RunbookSeed:
    """Pre-execution seed of a command runbook."""

    id: RunbookId
    severity_band: SeverityBand
    runbook_title: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "severityBand": self.severity_band.value,
            "runbookTitle": self.runbook_title,
        }


@dataclass(frozen=True)
class WorkflowWorkspaceSeed:
    """
    Aggregate root of one workflow run.

    Attributes:
        tenant_id: Owning tenant
        runbooks: Runbook seeds in document order
        signals: Signals in document order, each carrying ``inferredIndex``
            and ``severityRank`` metadata
        targets: Workload targets in document order
        requested_band: Severity band the caller asked to plan for
        mode: Planning mode
    """

    tenant_id: TenantId
    runbooks: tuple[RunbookSeed, ...]
    signals: tuple[RecoverySignal, ...]
    targets: tuple[WorkloadTarget, ...]
    requested_band: SeverityBand
    mode: WorkflowMode

    def target(self, workload_id: str) -> WorkloadTarget | None:
        """Look up a target by workload id."""
        for entry in self.targets:
            if entry.workload_id == workload_id:
                return entry
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "tenantId": str(self.tenant_id),
            "runbooks": [r.to_dict() for r in self.runbooks],
            "signals": [s.to_dict() for s in self.signals],
            "targets": [t.to_dict() for t in self.targets],
            "requestedBand": self.requested_band.value,
            "mode": self.mode.value,
        }


# =============================================================================
# Plan artifacts
# =============================================================================


@dataclass(frozen=True)
class RecoveryStep:
    """One ordered step of a command runbook: recover a single target."""

    order: int
    workload_id: WorkloadId
    title: str
    estimated_minutes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "order": self.order,
            "workloadId": str(self.workload_id),
            "title": self.title,
            "estimatedMinutes": self.estimated_minutes,
        }


@dataclass(frozen=True)
class RunbookCadence:
    weekday: int
    window_start_minute: int
    window_end_minute: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "weekday": self.weekday,
            "windowStartMinute": self.window_start_minute,
            "windowEndMinute": self.window_end_minute,
        }


@dataclass(frozen=True)
class CommandRunbook:
    """A named, ordered sequence of recovery steps synthesized from a seed."""

    id: RunbookId
    tenant_id: TenantId
    name: str
    description: str
    steps: tuple[RecoveryStep, ...]
    owner_team: str
    cadence: RunbookCadence

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "tenantId": str(self.tenant_id),
            "name": self.name,
            "description": self.description,
            "steps": [s.to_dict() for s in self.steps],
            "ownerTeam": self.owner_team,
            "cadence": self.cadence.to_dict(),
        }


@dataclass(frozen=True)
class PlanEdge:
    from_id: WorkloadId
    to_id: WorkloadId
    weight: int
    from_criticality: int
    to_criticality: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": str(self.from_id),
            "to": str(self.to_id),
            "weight": self.weight,
            "payload": {
                "fromCriticality": self.from_criticality,
                "toCriticality": self.to_criticality,
            },
        }


@dataclass(frozen=True)
class PlanDependencies:
    nodes: tuple[WorkloadId, ...]
    edges: tuple[PlanEdge, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [str(n) for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


@dataclass(frozen=True)
class OrchestrationPlan:
    tenant_id: TenantId
    scenario_name: str
    runbooks: tuple[CommandRunbook, ...]
    dependencies: PlanDependencies
    estimated_completion_minutes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "tenantId": str(self.tenant_id),
            "scenarioName": self.scenario_name,
            "runbooks": [r.to_dict() for r in self.runbooks],
            "dependencies": self.dependencies.to_dict(),
            "estimatedCompletionMinutes": self.estimated_completion_minutes,
        }


@dataclass(frozen=True)
class RecoverySimulationResult:
    tenant_id: TenantId
    started_at: datetime
    ended_at: datetime
    selected_runbooks: tuple[RunbookId, ...]
    risk_score: int
    sla_compliance: float
    notes: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "tenantId": str(self.tenant_id),
            "startedAt": to_iso8601(self.started_at),
            "endedAt": to_iso8601(self.ended_at),
            "selectedRunbooks": [str(r) for r in self.selected_runbooks],
            "riskScore": self.risk_score,
            "slaCompliance": self.sla_compliance,
            "notes": list(self.notes),
        }


@dataclass(frozen=True)
class WorkflowRecommendation:
    runbook_id: RunbookId
    reason: str

    def render(self) -> str:
        """``<runbookId>:<reason>`` as exposed in the execution result."""
        return f"{self.runbook_id}:{self.reason}"


# =============================================================================
# Workspace inspection helpers
# =============================================================================


def workspace_meta(workspace: WorkflowWorkspaceSeed) -> dict[str, Any]:
    """Tenant plus runbook/target counts."""
    return {
        "tenant": workspace.tenant_id,
        "runbook_count": len(workspace.runbooks),
        "target_count": len(workspace.targets),
    }


def summarize_target_path(workspace: WorkflowWorkspaceSeed) -> str:
    """``tenant:<t>::targets:<n>::runbooks:<m>``."""
    return (
        f"tenant:{workspace.tenant_id}"
        f"::targets:{len(workspace.targets)}"
        f"::runbooks:{len(workspace.runbooks)}"
    )


def merge_workspace(root: WorkflowWorkspaceSeed, **patch: Any) -> WorkflowWorkspaceSeed:
    """Return a new workspace with ``patch`` fields replacing those of ``root``.

    Collections supplied as lists are frozen to tuples; fields left out keep
    the root's values.
    """
    frozen = {
        key: tuple(value) if isinstance(value, list) else value
        for key, value in patch.items()
        if value is not None
    }
    return replace(root, **frozen)


def collect_workspace_paths(workspace: WorkflowWorkspaceSeed) -> list[str]:
    """Every addressable path of a workspace, for diagnostics."""
    return [
        "tenantId",
        "requestedBand",
        "mode",
        *(f"signals.{signal.signal_class.value}" for signal in workspace.signals),
        *(f"targets.{target.name}" for target in workspace.targets),
        *(f"runbooks.{runbook.id}" for runbook in workspace.runbooks),
    ]


def resolve_workspace_path(workspace: WorkflowWorkspaceSeed, path: str) -> Any:
    """
    Resolve a path produced by :func:`collect_workspace_paths`.

    ``signals.<class>`` returns the signals of that class, ``targets.<name>``
    the target with that name, ``runbooks.<id>`` the runbook seed.
    Unknown paths resolve to None.
    """
    scalars = {
        "tenantId": workspace.tenant_id,
        "requestedBand": workspace.requested_band,
        "mode": workspace.mode,
    }
    if "." not in path:
        return scalars.get(path)

    root, key = path.split(".", 1)
    if root == "signals":
        matches = [s for s in workspace.signals if s.signal_class.value == key]
        return matches or None
    if root == "targets":
        return next((t for t in workspace.targets if t.name == key), None)
    if root == "runbooks":
        return next((r for r in workspace.runbooks if r.id == key), None)
    return None
