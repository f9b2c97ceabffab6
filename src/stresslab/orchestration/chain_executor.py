"""Chain Executor — runs stage plugins in order, threading envelopes.

The output envelope of plugin ``i`` is the input of plugin ``i+1``. Plugins
are awaited one at a time; there is no fan-out. The first failure (an
``Err`` result, a raised exception, or a malformed return value) stops the
chain: the execution is marked FAILED, its errors are collected, and every
envelope produced so far is discarded. No retries.

State machine::

    READY ─► RUNNING(0) ─► RUNNING(1) ─► ... ─► SUCCEEDED
                  │             │
                  └─────────────┴──────────────► FAILED

Each successful transition appends one ``ExecutionTrace`` (``sequence`` is
the plugin's position in the chain) and one ``ExecutionStage`` timing.

Example::

    execution = await execute_chain(registry.list(), context, input_envelope)
    if execution.status == ChainStatus.SUCCEEDED:
        final = execution.output
    else:
        print(", ".join(execution.errors))
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import partial
from typing import Any

from stresslab.core.errors import StageExecutionError
from stresslab.core.logging import get_logger
from stresslab.core.result import Err, Ok, Result, try_result_async
from stresslab.core.timestamps import to_iso8601, utc_now
from stresslab.orchestration.audit import AuditKind, AuditScope
from stresslab.orchestration.plugins import PluginContext, StagePlugin
from stresslab.orchestration.stages import ExecutionStage, ExecutionTrace, StageEnvelope

logger = get_logger(__name__)


class ChainStatus(str, Enum):
    """Overall status of a chain execution."""

    READY = "ready"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class ChainExecution:
    """Outcome of one chain run."""

    status: ChainStatus = ChainStatus.READY
    output: StageEnvelope[Any] | None = None
    errors: list[str] = field(default_factory=list)
    traces: list[ExecutionTrace] = field(default_factory=list)
    stages: list[ExecutionStage] = field(default_factory=list)
    current_index: int | None = None
    failed_plugin: str | None = None
    failed_stage: str | None = None
    error: Exception | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == ChainStatus.SUCCEEDED

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_result(self) -> Result[StageEnvelope[Any]]:
        """``Ok(final envelope)`` or ``Err(StageExecutionError)`` with the errors list."""
        if self.status == ChainStatus.SUCCEEDED and self.output is not None:
            return Ok(self.output)
        errors = self.errors or [f"chain is {self.status.value}"]
        return Err(
            StageExecutionError(
                errors,
                stage=self.failed_stage,
                plugin_id=self.failed_plugin,
                cause=self.error,
            )
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging."""
        return {
            "status": self.status.value,
            "errors": list(self.errors),
            "failed_plugin": self.failed_plugin,
            "failed_stage": self.failed_stage,
            "started_at": to_iso8601(self.started_at),
            "completed_at": to_iso8601(self.completed_at),
            "duration_seconds": self.duration_seconds,
            "traces": [t.to_dict() for t in self.traces],
            "stages": [s.to_dict() for s in self.stages],
        }


def _error_messages(error: Exception) -> list[str]:
    if isinstance(error, StageExecutionError):
        return list(error.errors)
    return [str(error) or type(error).__name__]


def _validate_outcome(plugin: StagePlugin, outcome: Any) -> Result[StageEnvelope[Any]]:
    if not isinstance(outcome, (Ok, Err)):
        return Err(
            StageExecutionError([f"plugin '{plugin.kind}' returned {type(outcome).__name__}, expected a Result"])
        )
    if outcome.is_ok() and not isinstance(outcome.unwrap(), StageEnvelope):
        return Err(
            StageExecutionError([f"plugin '{plugin.kind}' produced {type(outcome.unwrap()).__name__}, expected a StageEnvelope"])
        )
    return outcome


async def execute_chain(
    plugins: Sequence[StagePlugin],
    context: PluginContext,
    initial_input: StageEnvelope[Any],
    audit: AuditScope | None = None,
) -> ChainExecution:
    """
    Run ``plugins`` sequentially starting from ``initial_input``.

    Args:
        plugins: Plugins in execution order
        context: Context passed to every plugin
        initial_input: Envelope handed to the first plugin
        audit: Optional scope receiving one ``trace`` event per successful
            transition and one ``error`` event on failure

    Returns:
        ChainExecution; never raises for plugin failures
    """
    execution = ChainExecution(status=ChainStatus.RUNNING, started_at=utc_now())
    current = initial_input

    logger.info(
        "chain.start",
        run_id=initial_input.run_id,
        plugin_count=len(plugins),
        first_stage=initial_input.stage.value,
    )

    for index, plugin in enumerate(plugins):
        execution.current_index = index
        started_at = utc_now()
        clock = time.perf_counter()

        logger.debug("chain.stage_start", index=index, kind=plugin.kind, stage=current.stage.value)

        raw = await try_result_async(partial(plugin.run, context, current))
        outcome = _validate_outcome(plugin, raw)

        if outcome.is_err():
            error = outcome.error
            messages = _error_messages(error)
            execution.status = ChainStatus.FAILED
            execution.errors.extend(messages)
            execution.failed_plugin = plugin.plugin_id
            execution.failed_stage = current.stage.value
            execution.error = error
            execution.output = None
            if audit is not None:
                for message in messages:
                    audit.record(AuditKind.ERROR, plugin.plugin_id, message)
            logger.warning(
                "chain.stage_failed",
                index=index,
                kind=plugin.kind,
                stage=current.stage.value,
                errors=messages,
            )
            break

        produced = outcome.unwrap()
        finished_at = utc_now()
        message = f"{plugin.kind} -> {produced.route}"
        execution.traces.append(
            ExecutionTrace(
                sequence=index,
                stage=produced.stage,
                plugin_id=plugin.plugin_id,
                ok=True,
                message=message,
            )
        )
        execution.stages.append(
            ExecutionStage(
                stage=produced.stage,
                route=produced.route,
                started_at=started_at,
                finished_at=finished_at,
                elapsed_ms=int((time.perf_counter() - clock) * 1000),
            )
        )
        if audit is not None:
            audit.record(AuditKind.TRACE, plugin.plugin_id, message)

        logger.debug("chain.stage_complete", index=index, kind=plugin.kind, stage=produced.stage.value)
        current = produced
    else:
        execution.status = ChainStatus.SUCCEEDED
        execution.output = current

    execution.completed_at = utc_now()
    logger.info(
        "chain.complete",
        run_id=initial_input.run_id,
        status=execution.status.value,
        completed_stages=len(execution.traces),
        duration_seconds=execution.duration_seconds,
    )
    return execution
