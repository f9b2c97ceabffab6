"""Pydantic models for the workspace seed document.

The seed document is the camelCase JSON a caller hands to the engine.
These models validate its shape only; defaults that depend on the tenant
or on list position (``workloadId``, ``commandRunbookId``) and the
criticality/RTO clamps are applied by
:mod:`stresslab.workspace.normalize`.

Usage::

    from stresslab.workspace.schema import WorkspaceSeedDocument

    document = WorkspaceSeedDocument.model_validate(data)
    document = WorkspaceSeedDocument.model_validate_json(raw)

Example document::

    {
      "tenantId": "acme",
      "runbooks": [{"id": "rb-1", "runbookTitle": "Fail over primary"}],
      "signals": [
        {"id": "s-1", "class": "availability", "severity": "high",
         "title": "db latency", "createdAt": "2026-01-01T00:00:00Z"}
      ],
      "targets": [{"workloadId": "db", "name": "db", "criticality": 4}],
      "requestedBand": "high",
      "mode": "adaptive"
    }

Unknown keys are ignored.

Tags:
    stresslab, workspace, schema, pydantic, validation
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from stresslab.workspace.models import (
    DEFAULT_REGION,
    DEFAULT_RTO_MINUTES,
    SeverityBand,
    SignalClass,
    WorkflowMode,
)


class _SeedModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class RunbookSeedSpec(_SeedModel):
    """A runbook seed entry."""

    id: str = Field(..., min_length=1)
    severity_band: SeverityBand = Field(default=SeverityBand.MEDIUM, alias="severityBand")
    runbook_title: str = Field(..., alias="runbookTitle")

    @field_validator("severity_band", mode="before")
    @classmethod
    def default_missing_band(cls, v: Any) -> Any:
        return SeverityBand.MEDIUM if v is None else v


class SignalSpec(_SeedModel):
    """A recovery signal entry."""

    id: str = Field(..., min_length=1)
    signal_class: SignalClass = Field(..., alias="class")
    severity: SeverityBand
    title: str
    created_at: datetime = Field(..., alias="createdAt")
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("metadata", mode="before")
    @classmethod
    def default_missing_metadata(cls, v: Any) -> Any:
        return {} if v is None else v


class TargetSpec(_SeedModel):
    """A workload target entry. Identity fields default during normalization."""

    tenant_id: str | None = Field(default=None, alias="tenantId")
    workload_id: str | None = Field(default=None, alias="workloadId")
    command_runbook_id: str | None = Field(
        default=None,
        alias="commandRunbookId",
        validation_alias=AliasChoices("commandRunbookId", "runbookId"),
    )
    name: str = Field(..., min_length=1)
    criticality: float = Field(..., allow_inf_nan=False)
    region: str | None = None
    az_affinity: list[str] = Field(default_factory=list, alias="azAffinity")
    baseline_rto_minutes: float = Field(
        default=DEFAULT_RTO_MINUTES, alias="baselineRtoMinutes", allow_inf_nan=False
    )
    dependencies: list[str] = Field(default_factory=list)

    @field_validator("az_affinity", "dependencies", mode="before")
    @classmethod
    def default_missing_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("baseline_rto_minutes", mode="before")
    @classmethod
    def default_missing_rto(cls, v: Any) -> Any:
        return DEFAULT_RTO_MINUTES if v is None else v

    @property
    def resolved_region(self) -> str:
        return self.region or DEFAULT_REGION


class WorkspaceSeedDocument(_SeedModel):
    """Top-level seed document."""

    tenant_id: str = Field(..., min_length=1, alias="tenantId")
    runbooks: list[RunbookSeedSpec] = Field(default_factory=list)
    signals: list[SignalSpec] = Field(default_factory=list)
    targets: list[TargetSpec] = Field(default_factory=list)
    requested_band: SeverityBand = Field(..., alias="requestedBand")
    mode: WorkflowMode
