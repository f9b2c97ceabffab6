"""
Tests for the WorkflowEngine façade.

Covers end-to-end runs over the catalog chain, failure surfacing as a single
WorkflowError, audit timelines, run id assignment, and result helpers.
"""

import asyncio
import re
from datetime import UTC, datetime

import pytest

from stresslab import run_workflow as exported_run_workflow
from stresslab.core.errors import RegistrationError, WorkflowError, WorkspaceValidationError
from stresslab.orchestration.audit import AuditKind
from stresslab.orchestration.catalog import WORKFLOW_CHAIN
from stresslab.orchestration.engine import (
    WorkflowEngine,
    build_input_envelope,
    compute_stage_digest,
    create_workflow_run_id,
    run_workflow,
    summarize_execution_result,
)
from stresslab.orchestration.stages import ExecutionStage, WorkflowStage


@pytest.fixture
def engine(settings):
    return WorkflowEngine(settings=settings)


# ---------------------------------------------------------------------------
# Successful runs
# ---------------------------------------------------------------------------


class TestEngineRun:
    @pytest.mark.asyncio
    async def test_full_run(self, engine, input_envelope, workspace):
        result = await engine.run(input_envelope)

        assert result.is_ok()
        execution = result.unwrap()
        assert execution.run_id == "run:acme:1700000000000"
        assert execution.tenant_id == "acme"
        assert execution.workspace is workspace
        assert [s.stage for s in execution.stages] == [
            WorkflowStage.SHAPE,
            WorkflowStage.PLAN,
            WorkflowStage.SIMULATE,
            WorkflowStage.RECOMMEND,
            WorkflowStage.REPORT,
            WorkflowStage.FINALIZE,
        ]
        assert [t.sequence for t in execution.traces] == [0, 1, 2, 3, 4, 5]
        assert execution.recommendations == (
            "rb-db:confidence:100",
            "rb-edge:confidence:91",
            "rb-db:confidence:82",
        )
        assert execution.simulation.risk_score == 3
        assert execution.plan.estimated_completion_minutes == 18

    @pytest.mark.asyncio
    async def test_stage_summary(self, engine, input_envelope):
        execution = (await engine.run(input_envelope)).unwrap()

        assert list(execution.stage_summary) == [
            "stage:shape",
            "stage:plan",
            "stage:simulate",
            "stage:recommend",
            "stage:report",
            "stage:finalize",
        ]
        assert execution.stage_summary["stage:plan"] == {
            "index": 1,
            "stage": "plan",
            "events": ["stress-lab/shape-builder -> plan:phase"],
        }

    @pytest.mark.asyncio
    async def test_run_document(self, engine, seed_document):
        result = await engine.run_document(seed_document)
        assert result.unwrap().run_id.startswith("run:acme:")

    @pytest.mark.asyncio
    async def test_workspace_input_gets_run_id(self, settings, workspace):
        engine = WorkflowEngine(settings=settings.model_copy(update={"run_channel": "drill"}))
        execution = (await engine.run(workspace)).unwrap()
        assert re.fullmatch(r"drill:acme:\d+", execution.run_id)

    @pytest.mark.asyncio
    async def test_empty_run_id_assigned(self, engine, workspace):
        envelope = build_input_envelope(workspace, run_id="placeholder")
        object.__setattr__(envelope, "run_id", "")

        execution = (await engine.run(envelope)).unwrap()
        assert re.fullmatch(r"run:acme:\d+", execution.run_id)

    @pytest.mark.asyncio
    async def test_chain_ending_at_report(self, settings, input_envelope):
        engine = WorkflowEngine(plugins=WORKFLOW_CHAIN[:5], settings=settings)
        execution = (await engine.run(input_envelope)).unwrap()

        assert execution.stages[-1].stage == WorkflowStage.REPORT
        assert len(execution.recommendations) == 3
        assert [t.sequence for t in execution.traces] == [0, 1, 2, 3, 4]
        assert execution.traces[-1].message == "stress-lab/reporter -> report:phase"
        assert len(execution.stages) == 5

    @pytest.mark.asyncio
    async def test_concurrent_runs_are_isolated(self, engine, seed_factory):
        documents = [seed_factory(tenantId=f"tenant-{i}") for i in range(4)]

        results = await asyncio.gather(*(engine.run_document(doc) for doc in documents))

        assert [r.unwrap().tenant_id for r in results] == [f"tenant-{i}" for i in range(4)]
        assert all(r.unwrap().run_id.startswith(f"run:tenant-{i}:") for i, r in enumerate(results))

    @pytest.mark.asyncio
    async def test_run_workflow_helper(self, input_envelope, settings):
        assert exported_run_workflow is run_workflow
        result = await run_workflow(input_envelope, settings=settings)
        assert result.unwrap().run_id == input_envelope.run_id


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestEngineFailure:
    @pytest.mark.asyncio
    async def test_invalid_document_returns_validation_error(self, engine, seed_factory):
        result = await engine.run_document(seed_factory(mode="reckless"))

        assert result.is_err()
        assert isinstance(result.error, WorkspaceValidationError)
        assert result.error.paths == ["mode"]

    @pytest.mark.asyncio
    async def test_plugin_failure_surfaces_joined_errors(self, settings, stub_chain, input_envelope):
        engine = WorkflowEngine(plugins=stub_chain(fail_at=3), settings=settings)

        result = await engine.run(input_envelope)

        assert result.is_err()
        assert isinstance(result.error, WorkflowError)
        assert str(result.error) == "workflow execution failed: stage exploded"
        assert result.error.errors == ["stage exploded"]

    @pytest.mark.asyncio
    async def test_non_input_envelope_rejected(self, engine, input_envelope):
        shaped = input_envelope.advance(WorkflowStage.SHAPE, input_envelope.payload)

        result = await engine.run(shaped)

        assert isinstance(result.error, WorkflowError)
        assert str(result.error) == "workflow execution failed: expected input envelope, got shape"

    @pytest.mark.asyncio
    async def test_chain_without_report_fails(self, settings, input_envelope):
        engine = WorkflowEngine(plugins=[], settings=settings)
        result = await engine.run(input_envelope)
        assert str(result.error) == "workflow execution failed: chain ended at input without a report"

    def test_unregistrable_chain_rejected_up_front(self, settings):
        with pytest.raises(RegistrationError):
            WorkflowEngine(plugins=list(reversed(WORKFLOW_CHAIN)), settings=settings)


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


class TestEngineAudit:
    @pytest.mark.asyncio
    async def test_listener_receives_timeline(self, settings, input_envelope):
        calls = []
        engine = WorkflowEngine(settings=settings, audit_listener=lambda s, t: calls.append((s, t)))

        await engine.run(input_envelope)

        summary, timeline = calls[0]
        assert summary == (
            "run=run:acme:1700000000000;tenant=acme;"
            "trace=6|info=2|warning=0|error=0|recommendation=3"
        )
        assert timeline[0].message == "scope-open"
        assert timeline[-1].message == "scope-close"
        assert [e.message for e in timeline if e.kind == AuditKind.RECOMMENDATION] == [
            "rb-db:confidence:100",
            "rb-edge:confidence:91",
            "rb-db:confidence:82",
        ]

    @pytest.mark.asyncio
    async def test_listener_sees_failure(self, settings, stub_chain, input_envelope):
        calls = []
        engine = WorkflowEngine(
            plugins=stub_chain(fail_at=2),
            settings=settings,
            audit_listener=lambda s, t: calls.append(t),
        )

        await engine.run(input_envelope)

        kinds = [e.kind for e in calls[0]]
        assert kinds == [AuditKind.INFO, AuditKind.TRACE, AuditKind.ERROR, AuditKind.INFO]

    @pytest.mark.asyncio
    async def test_async_listener_is_awaited(self, settings, input_envelope):
        calls = []

        async def listener(summary, timeline):
            await asyncio.sleep(0)
            calls.append((summary, [e.message for e in timeline]))

        engine = WorkflowEngine(settings=settings, audit_listener=listener)

        assert (await engine.run(input_envelope)).is_ok()
        assert len(calls) == 1
        summary, messages = calls[0]
        assert summary.endswith("trace=6|info=2|warning=0|error=0|recommendation=3")
        assert messages[-1] == "scope-close"

    @pytest.mark.asyncio
    async def test_async_listener_failure_does_not_fail_run(self, settings, input_envelope):
        async def listener(summary, timeline):
            raise RuntimeError("listener down")

        engine = WorkflowEngine(settings=settings, audit_listener=listener)
        assert (await engine.run(input_envelope)).is_ok()

    @pytest.mark.asyncio
    async def test_rejected_envelope_is_audited(self, settings, input_envelope):
        calls = []
        engine = WorkflowEngine(settings=settings, audit_listener=lambda s, t: calls.append((s, t)))
        shaped = input_envelope.advance(WorkflowStage.SHAPE, input_envelope.payload)

        result = await engine.run(shaped)

        assert result.is_err()
        summary, timeline = calls[0]
        assert summary == (
            "run=run:acme:1700000000000;tenant=acme;"
            "trace=0|info=2|warning=0|error=1|recommendation=0"
        )
        assert [(e.kind, e.message) for e in timeline] == [
            (AuditKind.INFO, "scope-open"),
            (AuditKind.ERROR, "workflow execution failed: expected input envelope, got shape"),
            (AuditKind.INFO, "scope-close"),
        ]

    @pytest.mark.asyncio
    async def test_non_envelope_input_is_audited(self, settings):
        calls = []
        engine = WorkflowEngine(settings=settings, audit_listener=lambda s, t: calls.append(s))

        result = await engine.run({"tenantId": "acme"})  # type: ignore[arg-type]

        assert str(result.error) == "workflow execution failed: expected a stage envelope, got dict"
        assert re.match(r"run=run:unknown:\d+;tenant=unknown;trace=0\|info=2\|warning=0\|error=1", calls[0])

    @pytest.mark.asyncio
    async def test_listener_failure_does_not_fail_run(self, settings, input_envelope):
        def listener(summary, timeline):
            raise RuntimeError("listener down")

        engine = WorkflowEngine(settings=settings, audit_listener=listener)
        assert (await engine.run(input_envelope)).is_ok()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    @pytest.mark.parametrize(
        ("tenant", "expected"),
        [
            ("acme", "run:acme:1700000000000"),
            ("Acme Corp", "run:acme-corp:1700000000000"),
            ("a/b::c", "run:a-b-c:1700000000000"),
        ],
    )
    def test_create_run_id(self, tenant, expected):
        assert create_workflow_run_id(tenant, now_ms=1700000000000) == expected

    def test_run_id_channel(self):
        assert create_workflow_run_id("acme", channel="drill", now_ms=1) == "drill:acme:1"

    def test_build_input_envelope(self, workspace):
        envelope = build_input_envelope(workspace)
        assert envelope.stage == WorkflowStage.INPUT
        assert envelope.payload.workspace is workspace
        assert envelope.run_id.startswith("run:acme:")

    @pytest.mark.asyncio
    async def test_summarize_execution_result(self, engine, input_envelope):
        execution = (await engine.run(input_envelope)).unwrap()
        assert summarize_execution_result(execution) == {
            "route": "shape>plan>simulate>recommend>report>finalize",
            "signal_count": 11,
            "severity": "high",
            "runbooks": 2,
        }

    def test_compute_stage_digest(self):
        now = datetime(2026, 3, 1, tzinfo=UTC)
        stage = ExecutionStage(
            stage=WorkflowStage.PLAN, route="plan:phase", started_at=now, finished_at=now, elapsed_ms=250
        )
        assert compute_stage_digest(stage) == 70
        assert compute_stage_digest(stage, prior=5) == 75

    @pytest.mark.asyncio
    async def test_result_to_dict(self, engine, input_envelope):
        data = (await engine.run(input_envelope)).unwrap().to_dict()
        assert data["runId"] == "run:acme:1700000000000"
        assert len(data["traces"]) == 6
        assert data["workspace"]["tenantId"] == "acme"
