"""
Plugin contract for pipeline stages.

A stage plugin is static metadata plus an async ``run`` callable::

    async def run(context: PluginContext, envelope: StageEnvelope) -> Result[StageEnvelope]

``run`` returns ``Ok(next_envelope)`` or ``Err(error)``; raising is treated
as a failure by the chain executor. Plugins are usually declared with the
:func:`stage_plugin` decorator::

    @stage_plugin("stress-lab/shape-builder", name="advanced-workflow-shape",
                  dependencies=["stress-lab/input-collector"])
    async def shape_builder(context, envelope):
        ...

Tags:
    stresslab, orchestration, plugin, contract
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

from stresslab.core.identifiers import TenantId
from stresslab.core.result import Result
from stresslab.core.timestamps import utc_now
from stresslab.orchestration.stages import StageEnvelope

DEFAULT_NAMESPACE = "recovery:stress:lab:advanced-workflow"


@dataclass(frozen=True)
class PluginContext:
    """Per-run context handed to every plugin."""

    tenant_id: TenantId
    request_id: str
    namespace: str = DEFAULT_NAMESPACE
    started_at: datetime = field(default_factory=utc_now)
    config: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


PluginRun = Callable[[PluginContext, StageEnvelope[Any]], Awaitable[Result[StageEnvelope[Any]]]]


@dataclass(frozen=True)
class StagePlugin:
    """
    A registered pipeline stage.

    Attributes:
        kind: Registry key, e.g. ``stress-lab/simulator``
        name: Human-readable id, used as ``plugin_id`` in traces
        version: Semantic version string
        run: Async stage function
        dependencies: Kinds that must be registered before this one
        namespace: Namespace shared by a plugin catalog
        tags: Free-form labels
    """

    kind: str
    name: str
    version: str
    run: PluginRun
    dependencies: tuple[str, ...] = ()
    namespace: str = DEFAULT_NAMESPACE
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.kind:
            raise ValueError("plugin kind must not be empty")
        if not callable(self.run):
            raise TypeError(f"plugin '{self.kind}' run must be callable")
        object.__setattr__(self, "dependencies", tuple(self.dependencies))
        object.__setattr__(self, "tags", tuple(self.tags))

    @property
    def plugin_id(self) -> str:
        return self.name

    def describe(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "version": self.version,
            "namespace": self.namespace,
            "dependencies": list(self.dependencies),
            "tags": list(self.tags),
        }


def stage_plugin(
    kind: str,
    *,
    name: str,
    version: str = "1.0.0",
    dependencies: Iterable[str] = (),
    namespace: str = DEFAULT_NAMESPACE,
    tags: Iterable[str] | None = None,
) -> Callable[[PluginRun], StagePlugin]:
    """Decorator turning an async stage function into a ``StagePlugin``.

    Tags default to ``[kind, "<namespace>:<name>"]``.
    """

    def decorator(run: PluginRun) -> StagePlugin:
        return StagePlugin(
            kind=kind,
            name=name,
            version=version,
            run=run,
            dependencies=tuple(dependencies),
            namespace=namespace,
            tags=tuple(tags) if tags is not None else (kind, f"{namespace}:{name}"),
        )

    return decorator
