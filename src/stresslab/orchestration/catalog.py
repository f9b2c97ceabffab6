"""
Stage catalog — the six plugins of the advanced recovery workflow.

==========================  ===========================  ====================
Kind                        Plugin id                    Transition
==========================  ===========================  ====================
stress-lab/input-collector  advanced-workflow-input      input → shape
stress-lab/shape-builder    advanced-workflow-shape      shape → plan
stress-lab/plan-composer    advanced-workflow-plan       plan → simulate
stress-lab/simulator        advanced-workflow-simulator  simulate → recommend
stress-lab/reporter         advanced-workflow-reporter   recommend → report
stress-lab/finalizer        advanced-workflow-finalizer  report → finalize
==========================  ===========================  ====================

Each plugin declares the previous plugin's kind as its dependency, so the
registry accepts them only in pipeline order.
"""

from __future__ import annotations

from dataclasses import fields, replace
from datetime import timedelta
from typing import Any

from stresslab.core.result import Ok, Result
from stresslab.core.timestamps import utc_now
from stresslab.orchestration.plugins import (
    DEFAULT_NAMESPACE,
    PluginContext,
    StagePlugin,
    stage_plugin,
)
from stresslab.orchestration.ranking import bucket_signal_classes, infer_ranking, rank_signals
from stresslab.orchestration.stages import (
    ExecutionStage,
    ExecutionTrace,
    FinalizePayload,
    PlanPayload,
    RecommendationPayload,
    ReportPayload,
    RiskEnvelope,
    SelectedBands,
    ShapePayload,
    SimulationPayload,
    StageEnvelope,
    WorkflowStage,
    expect_stage,
)
from stresslab.orchestration.topology import WorkflowTopology, build_topology
from stresslab.workspace.models import (
    CommandRunbook,
    OrchestrationPlan,
    PlanDependencies,
    PlanEdge,
    RecoverySimulationResult,
    RecoveryStep,
    RunbookCadence,
    WorkflowRecommendation,
    WorkflowWorkspaceSeed,
    workspace_meta,
)

INPUT_COLLECTOR = "stress-lab/input-collector"
SHAPE_BUILDER = "stress-lab/shape-builder"
PLAN_COMPOSER = "stress-lab/plan-composer"
SIMULATOR = "stress-lab/simulator"
REPORTER = "stress-lab/reporter"
FINALIZER = "stress-lab/finalizer"

WORKFLOW_PLUGIN_KINDS: tuple[str, ...] = (
    INPUT_COLLECTOR,
    SHAPE_BUILDER,
    PLAN_COMPOSER,
    SIMULATOR,
    REPORTER,
    FINALIZER,
)

SIMULATION_WINDOW = timedelta(seconds=120)
MAX_RECOMMENDATIONS = 5
REPORTER_ID = "advanced-workflow-reporter"


# =============================================================================
# Plan synthesis
# =============================================================================


def build_runbooks(workspace: WorkflowWorkspaceSeed) -> tuple[CommandRunbook, ...]:
    """Synthesize command runbooks from the workspace's runbook seeds.

    Steps are the targets bound to the runbook, most critical first.
    """
    runbooks = []
    for index, seed in enumerate(workspace.runbooks):
        bound = [t for t in workspace.targets if t.runbook_id == seed.id]
        bound.sort(key=lambda t: t.criticality, reverse=True)
        steps = tuple(
            RecoveryStep(
                order=order,
                workload_id=target.workload_id,
                title=f"recover {target.name}",
                estimated_minutes=target.baseline_rto_minutes,
            )
            for order, target in enumerate(bound, start=1)
        )
        runbooks.append(
            CommandRunbook(
                id=seed.id,
                tenant_id=workspace.tenant_id,
                name=seed.runbook_title,
                description=f"derived:{seed.runbook_title}",
                steps=steps,
                owner_team=f"advanced-{index % 4}",
                cadence=RunbookCadence(
                    weekday=index % 7,
                    window_start_minute=15 + (index % 4) * 10,
                    window_end_minute=30 + (index % 3) * 15,
                ),
            )
        )
    return tuple(runbooks)


def to_plan_dependencies(topology: WorkflowTopology) -> PlanDependencies:
    return PlanDependencies(
        nodes=topology.nodes,
        edges=tuple(
            PlanEdge(
                from_id=edge.from_id,
                to_id=edge.to_id,
                weight=edge.weight,
                from_criticality=edge.weight,
                to_criticality=edge.weight,
            )
            for edge in topology.edges
        ),
    )


# =============================================================================
# Plugins
# =============================================================================


@stage_plugin(INPUT_COLLECTOR, name="advanced-workflow-input")
async def input_collector(context: PluginContext, envelope: StageEnvelope[Any]) -> Result[StageEnvelope[Any]]:
    """Select the top signals and build the topology."""
    checked = expect_stage(envelope, WorkflowStage.INPUT)
    if checked.is_err():
        return checked
    workspace = checked.unwrap().workspace
    selected = tuple(rank_signals(workspace))
    return Ok(
        envelope.advance(
            WorkflowStage.SHAPE,
            ShapePayload(
                workspace=workspace,
                selected_signals=selected,
                topology=build_topology(workspace),
                signal_buckets=tuple(bucket_signal_classes(list(selected))),
            ),
        )
    )


@stage_plugin(SHAPE_BUILDER, name="advanced-workflow-shape", dependencies=[INPUT_COLLECTOR])
async def shape_builder(context: PluginContext, envelope: StageEnvelope[Any]) -> Result[StageEnvelope[Any]]:
    """Rank runbooks and compose the orchestration plan."""
    checked = expect_stage(envelope, WorkflowStage.SHAPE)
    if checked.is_err():
        return checked
    payload: ShapePayload = checked.unwrap()
    workspace = payload.workspace
    ranking = tuple(infer_ranking(workspace))
    plan = OrchestrationPlan(
        tenant_id=workspace.tenant_id,
        scenario_name=f"plan-{envelope.run_id}",
        runbooks=build_runbooks(workspace),
        dependencies=to_plan_dependencies(payload.topology),
        estimated_completion_minutes=max(1, len(ranking) * 6),
    )
    return Ok(
        envelope.advance(
            WorkflowStage.PLAN,
            PlanPayload(workspace=workspace, plan=plan, ranking=ranking, topology=payload.topology),
        )
    )


@stage_plugin(PLAN_COMPOSER, name="advanced-workflow-plan", dependencies=[SHAPE_BUILDER])
async def plan_composer(context: PluginContext, envelope: StageEnvelope[Any]) -> Result[StageEnvelope[Any]]:
    """Simulate the plan: one risk point per ranked runbook."""
    checked = expect_stage(envelope, WorkflowStage.PLAN)
    if checked.is_err():
        return checked
    payload: PlanPayload = checked.unwrap()
    ranked = len(payload.ranking)
    started_at = utc_now()
    simulation = RecoverySimulationResult(
        tenant_id=payload.workspace.tenant_id,
        started_at=started_at,
        ended_at=started_at + SIMULATION_WINDOW,
        selected_runbooks=tuple(entry.runbook_id for entry in payload.ranking),
        risk_score=max(1, ranked),
        sla_compliance=max(0.0, min(1.0, (100 - ranked) / 100)),
        notes=tuple(f"plan:{entry.runbook_id}" for entry in payload.ranking),
    )
    return Ok(
        envelope.advance(
            WorkflowStage.SIMULATE,
            SimulationPayload(
                workspace=payload.workspace,
                simulation=simulation,
                risk_envelope=RiskEnvelope(risk_score=ranked, sla=100 - ranked),
                plan=payload.plan,
                ranking=payload.ranking,
            ),
        )
    )


@stage_plugin(SIMULATOR, name="advanced-workflow-simulator", dependencies=[PLAN_COMPOSER])
async def simulator(context: PluginContext, envelope: StageEnvelope[Any]) -> Result[StageEnvelope[Any]]:
    checked = expect_stage(envelope, WorkflowStage.SIMULATE)
    if checked.is_err():
        return checked
    payload: SimulationPayload = checked.unwrap()
    workspace = payload.workspace
    recommendations = tuple(
        WorkflowRecommendation(runbook_id=runbook_id, reason=f"confidence:{100 - index * 9}")
        for index, runbook_id in enumerate(payload.simulation.selected_runbooks[:MAX_RECOMMENDATIONS])
    )
    signal_count = len(workspace.signals) + len(workspace.runbooks)
    return Ok(
        envelope.advance(
            WorkflowStage.RECOMMEND,
            RecommendationPayload(
                workspace=workspace,
                recommendations=recommendations,
                summary=f"{WorkflowStage.SIMULATE.value}::{signal_count}",
                simulation=payload.simulation,
                plan=payload.plan,
            ),
        )
    )


@stage_plugin(REPORTER, name=REPORTER_ID, dependencies=[SIMULATOR])
async def reporter(context: PluginContext, envelope: StageEnvelope[Any]) -> Result[StageEnvelope[Any]]:
    checked = expect_stage(envelope, WorkflowStage.RECOMMEND)
    if checked.is_err():
        return checked
    payload: RecommendationPayload = checked.unwrap()
    workspace = payload.workspace
    now = utc_now()
    recommend_ms = max(0, int((now - envelope.started_at).total_seconds() * 1000))
    stages = (
        ExecutionStage(
            stage=WorkflowStage.RECOMMEND,
            route=WorkflowStage.RECOMMEND.route,
            started_at=envelope.started_at,
            finished_at=now,
            elapsed_ms=recommend_ms,
        ),
        ExecutionStage(
            stage=WorkflowStage.REPORT,
            route=WorkflowStage.REPORT.route,
            started_at=now,
            finished_at=now,
            elapsed_ms=0,
        ),
    )
    traces = tuple(
        ExecutionTrace(
            sequence=index,
            stage=WorkflowStage.RECOMMEND,
            plugin_id=REPORTER_ID,
            ok=True,
            message=recommendation.render(),
        )
        for index, recommendation in enumerate(payload.recommendations)
    )
    return Ok(
        envelope.advance(
            WorkflowStage.REPORT,
            ReportPayload(
                workspace=workspace,
                stages=stages,
                traces=traces,
                simulation=payload.simulation,
                plan=payload.plan,
                top_signals=tuple(signal.id for signal in workspace.signals),
                selected_bands=SelectedBands(
                    baseline=workspace.requested_band,
                    final=workspace.requested_band,
                    drift=max(0, len(workspace.signals) - len(payload.recommendations)),
                ),
                recommendations=payload.recommendations,
            ),
        )
    )


@stage_plugin(FINALIZER, name="advanced-workflow-finalizer", dependencies=[REPORTER])
async def finalizer(context: PluginContext, envelope: StageEnvelope[Any]) -> Result[StageEnvelope[Any]]:
    """Stamp the report with finalization time and workspace diagnostics."""
    checked = expect_stage(envelope, WorkflowStage.REPORT)
    if checked.is_err():
        return checked
    payload: ReportPayload = checked.unwrap()
    meta = workspace_meta(payload.workspace)
    report = {f.name: getattr(payload, f.name) for f in fields(ReportPayload)}
    return Ok(
        envelope.advance(
            WorkflowStage.FINALIZE,
            FinalizePayload(
                **report,
                finalized_at=utc_now(),
                diagnostics=(
                    f"tenant={meta['tenant']}",
                    f"runbooks={meta['runbook_count']}",
                    f"targets={meta['target_count']}",
                ),
            ),
        )
    )


WORKFLOW_CHAIN: tuple[StagePlugin, ...] = (
    input_collector,
    shape_builder,
    plan_composer,
    simulator,
    reporter,
    finalizer,
)


def build_workflow_chain(namespace: str = DEFAULT_NAMESPACE) -> list[StagePlugin]:
    """Fresh list of the six stage plugins, stamped with ``namespace``."""
    if namespace == DEFAULT_NAMESPACE:
        return list(WORKFLOW_CHAIN)
    return [
        replace(plugin, namespace=namespace, tags=(plugin.kind, f"{namespace}:{plugin.name}"))
        for plugin in WORKFLOW_CHAIN
    ]


def collect_plugin_kinds(chain: list[StagePlugin] | tuple[StagePlugin, ...] = WORKFLOW_CHAIN) -> list[str]:
    return [plugin.kind for plugin in chain]
