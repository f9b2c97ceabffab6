"""
Workspace normalization — seed document → ``WorkflowWorkspaceSeed``.

Validation is delegated to :mod:`stresslab.workspace.schema`; every pydantic
error is turned into a ``(path, message)`` issue so a caller sees all the
offending fields at once. Normalization then applies the tenant-dependent
defaults and numeric clamps and stamps each signal with ``inferredIndex``
and ``severityRank`` metadata.

Examples:
    >>> result = normalize_workspace({"tenantId": "acme", "requestedBand": "low",
    ...                               "mode": "agile"})
    >>> result.unwrap().tenant_id
    TenantId('acme')
    >>> normalize_workspace({"tenantId": "acme"}).is_err()
    True
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import UTC
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from stresslab.core.errors import ValidationIssue, WorkspaceValidationError
from stresslab.core.identifiers import RunbookId, SignalId, TenantId, WorkloadId
from stresslab.core.logging import get_logger
from stresslab.core.result import Err, Ok, Result
from stresslab.workspace.models import (
    MAX_CRITICALITY,
    MAX_RTO_MINUTES,
    MIN_CRITICALITY,
    RecoverySignal,
    RunbookSeed,
    WorkflowWorkspaceSeed,
    WorkloadTarget,
)
from stresslab.workspace.schema import SignalSpec, TargetSpec, WorkspaceSeedDocument

logger = get_logger(__name__)


def _format_loc(loc: tuple[int | str, ...]) -> str:
    """``("signals", 0, "class")`` → ``signals[0].class``; empty → ``$``."""
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path or "$"


def _issues_from(exc: PydanticValidationError) -> list[ValidationIssue]:
    return [ValidationIssue(_format_loc(err["loc"]), err["msg"]) for err in exc.errors()]


def _clamp(value: float, low: int, high: int) -> int:
    return int(min(max(math.floor(value), low), high))


def _normalize_target(tenant: TenantId, index: int, spec: TargetSpec) -> WorkloadTarget:
    workload_id = WorkloadId(spec.workload_id or f"target-{tenant}-{index}")
    return WorkloadTarget(
        tenant_id=TenantId(spec.tenant_id or tenant),
        workload_id=workload_id,
        runbook_id=RunbookId(spec.command_runbook_id or f"runbook-{tenant}-{index}"),
        name=spec.name,
        criticality=_clamp(spec.criticality, MIN_CRITICALITY, MAX_CRITICALITY),
        region=spec.resolved_region,
        az_affinity=tuple(spec.az_affinity),
        baseline_rto_minutes=_clamp(spec.baseline_rto_minutes, 0, MAX_RTO_MINUTES),
        # A target listing itself is dropped; the topology adds the self-edge.
        dependencies=tuple(WorkloadId(d) for d in spec.dependencies if d != workload_id),
    )


def _normalize_signal(index: int, spec: SignalSpec) -> RecoverySignal:
    created_at = spec.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    metadata = {
        **spec.metadata,
        "inferredIndex": index,
        "severityRank": spec.severity.rank,
    }
    return RecoverySignal(
        id=SignalId(spec.id),
        signal_class=spec.signal_class,
        severity=spec.severity,
        title=spec.title,
        created_at=created_at,
        metadata=metadata,
    )


def _build_workspace(document: WorkspaceSeedDocument) -> WorkflowWorkspaceSeed:
    tenant = TenantId(document.tenant_id)
    return WorkflowWorkspaceSeed(
        tenant_id=tenant,
        runbooks=tuple(
            RunbookSeed(
                id=RunbookId(r.id),
                severity_band=r.severity_band,
                runbook_title=r.runbook_title,
            )
            for r in document.runbooks
        ),
        signals=tuple(_normalize_signal(i, s) for i, s in enumerate(document.signals)),
        targets=tuple(_normalize_target(tenant, i, t) for i, t in enumerate(document.targets)),
        requested_band=document.requested_band,
        mode=document.mode,
    )


def normalize_workspace(
    seed_input: Mapping[str, Any] | str | bytes | WorkflowWorkspaceSeed,
) -> Result[WorkflowWorkspaceSeed]:
    """
    Validate and normalize a seed document.

    Args:
        seed_input: A mapping, a JSON string/bytes, or an already-normalized
            workspace (returned unchanged). A mapping wrapping the document
            under a ``workspace`` key is unwrapped.

    Returns:
        ``Ok(workspace)`` or ``Err(WorkspaceValidationError)`` listing every
        offending field path.
    """
    if isinstance(seed_input, WorkflowWorkspaceSeed):
        return Ok(seed_input)

    try:
        if isinstance(seed_input, (str, bytes)):
            document = WorkspaceSeedDocument.model_validate_json(seed_input)
        elif isinstance(seed_input, Mapping):
            data = seed_input
            if "tenantId" not in data and isinstance(data.get("workspace"), Mapping):
                data = data["workspace"]
            document = WorkspaceSeedDocument.model_validate(dict(data))
        else:
            return Err(
                WorkspaceValidationError(
                    [("$", f"expected a mapping or JSON document, got {type(seed_input).__name__}")]
                )
            )
    except PydanticValidationError as e:
        error = WorkspaceValidationError(_issues_from(e), cause=e)
        logger.warning("workspace.invalid", issues=len(error.issues), paths=error.paths)
        return Err(error)

    workspace = _build_workspace(document)
    logger.debug(
        "workspace.normalized",
        tenant_id=workspace.tenant_id,
        signals=len(workspace.signals),
        targets=len(workspace.targets),
        runbooks=len(workspace.runbooks),
    )
    return Ok(workspace)


def parse_workspace(
    seed_input: Mapping[str, Any] | str | bytes | WorkflowWorkspaceSeed,
) -> WorkflowWorkspaceSeed:
    """Like :func:`normalize_workspace` but raises ``WorkspaceValidationError``."""
    return normalize_workspace(seed_input).unwrap()
