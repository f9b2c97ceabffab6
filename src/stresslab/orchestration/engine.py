"""Workflow Engine — façade running the stage chain for one workspace.

The engine wires the pieces together for each run:

1. Assign a run id (``<channel>:<sanitized-tenant>:<epoch-ms>``) if the
   input envelope has none.
2. Build a fresh ``PluginRegistry`` from the plugin chain.
3. Execute the chain inside an ``AuditScope`` bound to ``(tenant, run_id)``;
   ``scope-open`` and ``scope-close`` are recorded on every path, including
   an envelope rejected before the chain starts.
4. On success, assemble an ``ExecutionResult`` from the finalize payload
   (or the report payload when the chain ends at report).
5. On failure, return ``Err(WorkflowError)`` with the joined errors. No
   partial result is ever returned.

The engine keeps no per-run state, so one instance can serve concurrent
runs. There is no internal timeout; wrap calls in ``asyncio.wait_for``.

Example::

    engine = WorkflowEngine()
    result = await engine.run_document(seed_document)
    if result.is_ok():
        print(result.unwrap().recommendations)
    else:
        print(result.error)

Tags:
    stresslab, orchestration, facade, workflow, audit
"""

from __future__ import annotations

import inspect
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import replace
from typing import Any

from stresslab.core.errors import StageExecutionError, WorkflowError
from stresslab.core.identifiers import RunId, TenantId
from stresslab.core.logging import LogContext, get_logger
from stresslab.core.result import Err, Ok, Result
from stresslab.core.settings import StressLabSettings, get_settings
from stresslab.core.timestamps import epoch_millis
from stresslab.orchestration.audit import AuditEvent, AuditKind, AuditScope
from stresslab.orchestration.catalog import build_workflow_chain
from stresslab.orchestration.chain_executor import ChainExecution, execute_chain
from stresslab.orchestration.plugin_registry import PluginRegistry
from stresslab.orchestration.plugins import PluginContext, StagePlugin
from stresslab.orchestration.stages import (
    WORKFLOW_STAGES,
    ExecutionResult,
    ExecutionStage,
    FinalizePayload,
    InputPayload,
    ReportPayload,
    StageEnvelope,
    WorkflowStage,
    build_stage_summary,
    expect_stage,
)
from stresslab.workspace.models import WorkflowWorkspaceSeed
from stresslab.workspace.normalize import normalize_workspace

logger = get_logger(__name__)

ENGINE_SOURCE = "workflow-engine"
UNKNOWN_TENANT = "unknown"

STAGE_WEIGHTS: dict[WorkflowStage, int] = {
    WorkflowStage.INPUT: 5,
    WorkflowStage.SHAPE: 10,
    WorkflowStage.PLAN: 20,
    WorkflowStage.SIMULATE: 25,
    WorkflowStage.RECOMMEND: 18,
    WorkflowStage.REPORT: 9,
    WorkflowStage.FINALIZE: 4,
}

AuditListener = Callable[[str, list[AuditEvent]], Any]

_UNSAFE_TENANT_CHARS = re.compile(r"[^a-z0-9-]+", re.IGNORECASE)


# =============================================================================
# Run identity and input
# =============================================================================


def create_workflow_run_id(tenant_id: str, channel: str = "run", now_ms: int | None = None) -> RunId:
    """
    ``<channel>:<sanitized-tenant>:<epoch-ms>``.

    Examples:
        >>> create_workflow_run_id("Acme Corp", now_ms=1700000000000)
        RunId('run:acme-corp:1700000000000')
    """
    sanitized = _UNSAFE_TENANT_CHARS.sub("-", tenant_id).lower()
    stamp = epoch_millis() if now_ms is None else now_ms
    return RunId(f"{channel}:{sanitized}:{stamp}")


def build_input_envelope(
    workspace: WorkflowWorkspaceSeed,
    run_id: str | None = None,
    channel: str = "run",
) -> StageEnvelope[InputPayload]:
    """Wrap a normalized workspace as the ``input`` stage envelope."""
    return StageEnvelope(
        run_id=RunId(run_id) if run_id else create_workflow_run_id(workspace.tenant_id, channel),
        workspace_tenant_id=workspace.tenant_id,
        stage=WorkflowStage.INPUT,
        payload=InputPayload(workspace=workspace),
    )


# =============================================================================
# Result helpers
# =============================================================================


def summarize_execution_result(result: ExecutionResult) -> dict[str, Any]:
    """Route through the stages plus signal/runbook/trace counts."""
    return {
        "route": ">".join(stage.stage.value for stage in result.stages),
        "signal_count": len(result.workspace.signals) + len(result.workspace.runbooks) + len(result.traces),
        "severity": result.workspace.requested_band,
        "runbooks": len(result.workspace.runbooks),
    }


def compute_stage_digest(stage: ExecutionStage, prior: int = 0) -> int:
    """``STAGE_WEIGHTS[stage] + elapsed_ms % 100 + prior``."""
    return STAGE_WEIGHTS[stage.stage] + stage.elapsed_ms % 100 + prior


# =============================================================================
# Engine
# =============================================================================


class WorkflowEngine:
    """Runs the stage chain and assembles the execution result.

    Args:
        plugins: Custom chain; defaults to the six catalog plugins. The
            chain is registered once up front, so a bad chain raises
            ``RegistrationError`` here rather than at run time.
        settings: Engine settings; defaults to :func:`get_settings`.
        audit_listener: Called with ``(summary, timeline)`` before the
            audit scope of each run is disposed. May be async; it is awaited.
    """

    def __init__(
        self,
        plugins: Iterable[StagePlugin] | None = None,
        settings: StressLabSettings | None = None,
        audit_listener: AuditListener | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        if plugins is None:
            self._plugins = build_workflow_chain(self._settings.namespace)
        else:
            self._plugins = list(plugins)
        self._audit_listener = audit_listener

        with PluginRegistry.from_plugins(self._plugins, self._settings.namespace):
            pass

    @property
    def settings(self) -> StressLabSettings:
        return self._settings

    @property
    def plugins(self) -> list[StagePlugin]:
        return list(self._plugins)

    async def run_document(
        self, document: Mapping[str, Any] | str | bytes | WorkflowWorkspaceSeed
    ) -> Result[ExecutionResult]:
        """Normalize a seed document, then run it.

        An invalid document returns its ``WorkspaceValidationError`` unchanged.
        """
        normalized = normalize_workspace(document)
        if normalized.is_err():
            return normalized
        return await self.run(normalized.unwrap())

    async def run(
        self, input_envelope: StageEnvelope[InputPayload] | WorkflowWorkspaceSeed
    ) -> Result[ExecutionResult]:
        """
        Execute the chain for one input envelope.

        Every call opens an ``AuditScope`` and records ``scope-open`` and
        ``scope-close``, including when the envelope is rejected before any
        plugin runs.

        Returns:
            ``Ok(ExecutionResult)`` or ``Err(WorkflowError)`` whose message
            is ``"workflow execution failed: "`` plus the joined errors
        """
        if isinstance(input_envelope, WorkflowWorkspaceSeed):
            input_envelope = build_input_envelope(input_envelope, channel=self._settings.run_channel)

        checked = expect_stage(input_envelope, WorkflowStage.INPUT)
        if checked.is_err():
            return await self._reject(input_envelope, checked.error)
        workspace: WorkflowWorkspaceSeed = checked.unwrap().workspace

        tenant = TenantId(input_envelope.workspace_tenant_id or workspace.tenant_id)
        run_id = input_envelope.run_id or create_workflow_run_id(tenant, self._settings.run_channel)
        if run_id != input_envelope.run_id:
            input_envelope = replace(input_envelope, run_id=RunId(run_id))

        context = PluginContext(
            tenant_id=tenant,
            request_id=run_id,
            namespace=self._settings.namespace,
            config={
                "mode": workspace.mode.value,
                "stage_order": [stage.value for stage in WORKFLOW_STAGES],
            },
        )

        async with LogContext(run_id=run_id, tenant_id=tenant):
            logger.info(
                "workflow.start",
                plugin_count=len(self._plugins),
                signals=len(workspace.signals),
                targets=len(workspace.targets),
            )
            with PluginRegistry.from_plugins(self._plugins, self._settings.namespace) as registry:
                async with AuditScope(tenant, RunId(run_id)) as audit:
                    audit.record(AuditKind.INFO, ENGINE_SOURCE, "scope-open")
                    try:
                        execution = await execute_chain(registry.list(), context, input_envelope, audit)
                        result = self._assemble(execution, workspace, tenant, RunId(run_id))
                        if result.is_ok():
                            for recommendation in result.unwrap().recommendations:
                                audit.record(AuditKind.RECOMMENDATION, ENGINE_SOURCE, recommendation)
                        elif execution.succeeded:
                            audit.record(AuditKind.ERROR, ENGINE_SOURCE, str(result.error))
                    finally:
                        audit.record(AuditKind.INFO, ENGINE_SOURCE, "scope-close")
                        await self._notify(audit)

            if result.is_ok():
                logger.info(
                    "workflow.complete",
                    stages=len(result.unwrap().stages),
                    recommendations=len(result.unwrap().recommendations),
                    duration_seconds=execution.duration_seconds,
                )
            else:
                logger.warning("workflow.failed", error=str(result.error))
        return result

    async def _reject(self, envelope: Any, error: StageExecutionError) -> Result[ExecutionResult]:
        """Audit and return the failure for an envelope that is not a valid input."""
        failure = self._failure(error.errors, cause=error)
        if isinstance(envelope, StageEnvelope):
            tenant = TenantId(envelope.workspace_tenant_id or UNKNOWN_TENANT)
            run_id = RunId(envelope.run_id or create_workflow_run_id(tenant, self._settings.run_channel))
        else:
            tenant = TenantId(UNKNOWN_TENANT)
            run_id = create_workflow_run_id(tenant, self._settings.run_channel)

        async with LogContext(run_id=run_id, tenant_id=tenant):
            async with AuditScope(tenant, run_id) as audit:
                audit.record(AuditKind.INFO, ENGINE_SOURCE, "scope-open")
                audit.record(AuditKind.ERROR, ENGINE_SOURCE, str(failure))
                audit.record(AuditKind.INFO, ENGINE_SOURCE, "scope-close")
                await self._notify(audit)
            logger.warning("workflow.rejected", error=str(failure))
        return Err(failure)

    def _assemble(
        self,
        execution: ChainExecution,
        workspace: WorkflowWorkspaceSeed,
        tenant: TenantId,
        run_id: RunId,
    ) -> Result[ExecutionResult]:
        """Build the result from the finalize payload, or the report payload.

        Traces and stage timings always come from the executor: a chain that
        reaches ``report`` has recorded at least one successful transition.
        """
        if not execution.succeeded or execution.output is None:
            return Err(self._failure(execution.errors, cause=execution.error))

        payload = execution.output.payload
        if not isinstance(payload, (FinalizePayload, ReportPayload)):
            return Err(
                self._failure([f"chain ended at {execution.output.stage.value} without a report"])
            )

        traces = tuple(execution.traces)
        return Ok(
            ExecutionResult(
                run_id=run_id,
                tenant_id=tenant,
                stages=tuple(execution.stages),
                traces=traces,
                stage_summary=build_stage_summary(traces),
                workspace=workspace,
                simulation=payload.simulation,
                plan=payload.plan,
                recommendations=tuple(r.render() for r in payload.recommendations),
            )
        )

    @staticmethod
    def _failure(errors: list[str], cause: Exception | None = None) -> WorkflowError:
        return WorkflowError(
            "workflow execution failed: " + ", ".join(errors),
            errors=errors,
            cause=cause,
        )

    async def _notify(self, audit: AuditScope) -> None:
        if self._audit_listener is None:
            return
        try:
            outcome = self._audit_listener(audit.summarize(), audit.timeline())
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning("workflow.audit_listener_failed", error=str(e))


async def run_workflow(
    input_envelope: StageEnvelope[InputPayload] | WorkflowWorkspaceSeed,
    settings: StressLabSettings | None = None,
) -> Result[ExecutionResult]:
    """Run ``input_envelope`` through a default engine."""
    return await WorkflowEngine(settings=settings).run(input_envelope)
