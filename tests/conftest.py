"""
Shared pytest fixtures for stresslab tests.

This module provides:
- A seed document factory with a small but complete workspace
- A normalized workspace built from it
- Settings isolated from the process environment
- Stub stage plugins for chain tests
"""

from __future__ import annotations

from collections.abc import Callable
from copy import deepcopy
from typing import Any

import pytest

from stresslab.core.errors import StageExecutionError
from stresslab.core.identifiers import RunId
from stresslab.core.result import Err, Ok
from stresslab.core.settings import StressLabSettings
from stresslab.orchestration.engine import build_input_envelope
from stresslab.orchestration.plugins import StagePlugin
from stresslab.orchestration.stages import WORKFLOW_STAGES
from stresslab.workspace.models import WorkflowWorkspaceSeed
from stresslab.workspace.normalize import parse_workspace

BASE_SEED: dict[str, Any] = {
    "tenantId": "acme",
    "runbooks": [
        {"id": "rb-db", "severityBand": "high", "runbookTitle": "Fail over database"},
        {"id": "rb-edge", "runbookTitle": "Drain edge traffic"},
    ],
    "signals": [
        {
            "id": "sig-1",
            "class": "availability",
            "severity": "low",
            "title": "edge 5xx bump",
            "createdAt": "2026-03-01T10:00:00Z",
        },
        {
            "id": "sig-2",
            "class": "integrity",
            "severity": "critical",
            "title": "replica checksum mismatch",
            "createdAt": "2026-03-01T10:01:00Z",
            "metadata": {"source": "db-audit"},
        },
        {
            "id": "sig-3",
            "class": "availability",
            "severity": "medium",
            "title": "api latency",
            "createdAt": "2026-03-01T10:02:00Z",
        },
    ],
    "targets": [
        {
            "workloadId": "db",
            "commandRunbookId": "rb-db",
            "name": "primary-db",
            "criticality": 5,
            "azAffinity": ["use1-az1", "use1-az2"],
            "baselineRtoMinutes": 45,
        },
        {
            "workloadId": "api",
            "commandRunbookId": "rb-db",
            "name": "api",
            "criticality": 2,
            "dependencies": ["db"],
        },
        {
            "workloadId": "edge",
            "commandRunbookId": "rb-edge",
            "name": "edge",
            "criticality": 3,
            "region": "eu-west-1",
            "dependencies": ["api", "db"],
        },
    ],
    "requestedBand": "high",
    "mode": "adaptive",
}


@pytest.fixture
def seed_factory() -> Callable[..., dict[str, Any]]:
    """Return a factory building seed documents; keyword args override top-level keys."""

    def make(**overrides: Any) -> dict[str, Any]:
        seed = deepcopy(BASE_SEED)
        seed.update(overrides)
        return seed

    return make


@pytest.fixture
def seed_document(seed_factory) -> dict[str, Any]:
    return seed_factory()


@pytest.fixture
def workspace(seed_document) -> WorkflowWorkspaceSeed:
    return parse_workspace(seed_document)


@pytest.fixture
def settings() -> StressLabSettings:
    return StressLabSettings(_env_file=None)


@pytest.fixture
def input_envelope(workspace):
    return build_input_envelope(workspace, run_id="run:acme:1700000000000")


@pytest.fixture
def run_id() -> RunId:
    return RunId("run:acme:1700000000000")


def make_stub_plugin(
    index: int,
    *,
    fail_with: str | None = None,
    raise_with: Exception | None = None,
    dependencies: tuple[str, ...] | None = None,
) -> StagePlugin:
    """A plugin that advances the envelope one stage, or fails on demand."""
    kind = f"stub/{index}"
    next_stage = WORKFLOW_STAGES[index + 1]

    async def run(context, envelope):
        if raise_with is not None:
            raise raise_with
        if fail_with is not None:
            return Err(StageExecutionError([fail_with]))
        return Ok(envelope.advance(next_stage, envelope.payload))

    deps = dependencies if dependencies is not None else ((f"stub/{index - 1}",) if index else ())
    return StagePlugin(kind=kind, name=f"stub-{index}", version="1.0.0", run=run, dependencies=deps)


@pytest.fixture
def stub_chain() -> Callable[..., list[StagePlugin]]:
    """Build ``count`` stub plugins; ``fail_at`` (1-based) makes that one fail."""

    def build(count: int = 6, fail_at: int | None = None, message: str = "stage exploded") -> list[StagePlugin]:
        return [
            make_stub_plugin(i, fail_with=message if fail_at == i + 1 else None)
            for i in range(count)
        ]

    return build


@pytest.fixture
def stub_plugin() -> Callable[..., StagePlugin]:
    return make_stub_plugin
