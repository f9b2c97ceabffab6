"""
Audit Scope — disposable, append-only event recorder for one run.

Architecture::

    AuditScope(tenant_id, run_id)
    ├── record(kind, source, message)   → AuditEvent (None once disposed)
    ├── timeline()                      → events in insertion order
    ├── summarize()                     → "run=..;tenant=..;trace=N|info=N|..."
    ├── to_trace()                      → low-fidelity ExecutionTrace rows
    └── dispose() / aclose()            → run dispose hooks, clear events

    with AuditScope(tenant, run_id) as scope: ...
    async with AuditScope(tenant, run_id) as scope: ...

A disposed scope drops further records silently. Failures inside dispose
hooks are logged and swallowed, so releasing a scope never raises.

Tags:
    stresslab, orchestration, audit, disposable, timeline
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from stresslab.core.errors import DisposalError
from stresslab.core.identifiers import RunId, TenantId
from stresslab.core.logging import get_logger
from stresslab.core.timestamps import to_iso8601, utc_now
from stresslab.orchestration.stages import ExecutionTrace, WorkflowStage

logger = get_logger(__name__)


class AuditKind(str, Enum):
    TRACE = "trace"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    RECOMMENDATION = "recommendation"


@dataclass(frozen=True)
class AuditEvent:
    kind: AuditKind
    source: str
    message: str
    at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "at": to_iso8601(self.at),
            "kind": self.kind.value,
            "source": self.source,
            "message": self.message,
        }


DisposeHook = Callable[[], Any]


class AuditScope:
    """Recording surface bound to one ``(tenant_id, run_id)`` pair."""

    def __init__(self, tenant_id: TenantId, run_id: RunId) -> None:
        self.tenant_id = tenant_id
        self.run_id = run_id
        self._events: list[AuditEvent] = []
        self._hooks: list[DisposeHook] = []
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def record(self, kind: AuditKind | str, source: str, message: str) -> AuditEvent | None:
        """Append an event. No-op (returns None) after disposal."""
        if self._disposed:
            return None
        event = AuditEvent(kind=AuditKind(kind), source=source, message=message)
        self._events.append(event)
        return event

    def timeline(self) -> list[AuditEvent]:
        return list(self._events)

    def counts(self) -> dict[AuditKind, int]:
        counts = {kind: 0 for kind in AuditKind}
        for event in self._events:
            counts[event.kind] += 1
        return counts

    def summarize(self) -> str:
        """``run=<runId>;tenant=<tenantId>;trace=N|info=N|warning=N|error=N|recommendation=N``"""
        tally = "|".join(f"{kind.value}={count}" for kind, count in self.counts().items())
        return f"run={self.run_id};tenant={self.tenant_id};{tally}"

    def to_trace(self) -> list[ExecutionTrace]:
        """Low-fidelity trace rows: even events map to ``input``, odd to ``report``."""
        return [
            ExecutionTrace(
                sequence=index,
                stage=WorkflowStage.INPUT if index % 2 == 0 else WorkflowStage.REPORT,
                plugin_id=event.source,
                ok=event.kind != AuditKind.ERROR,
                message=event.message,
            )
            for index, event in enumerate(self._events)
        ]

    def on_dispose(self, hook: DisposeHook) -> None:
        """Register a callback run once at disposal. May be async for ``aclose``."""
        self._hooks.append(hook)

    def _finish(self) -> None:
        self._events.clear()
        self._hooks.clear()
        self._disposed = True
        logger.debug("audit.disposed", run_id=self.run_id, tenant_id=self.tenant_id)

    def _log_failure(self, hook: DisposeHook, exc: Exception) -> None:
        error = DisposalError(f"audit dispose hook failed: {exc}", cause=exc).with_context(
            run_id=self.run_id, tenant_id=self.tenant_id
        )
        logger.warning("audit.dispose_failed", hook=repr(hook), error=error.to_dict())

    def dispose(self) -> None:
        """Run dispose hooks and clear the buffer. Idempotent and never raises."""
        if self._disposed:
            return
        for hook in self._hooks:
            try:
                outcome = hook()
                if inspect.isawaitable(outcome):
                    # Sync disposal cannot await; close the coroutine so it is not leaked.
                    close = getattr(outcome, "close", None)
                    if close is not None:
                        close()
                    raise DisposalError("async dispose hook requires aclose()")
            except Exception as e:
                self._log_failure(hook, e)
        self._finish()

    async def aclose(self) -> None:
        """Async disposal; awaits async hooks."""
        if self._disposed:
            return
        for hook in self._hooks:
            try:
                outcome = hook()
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                self._log_failure(hook, e)
        self._finish()

    def __enter__(self) -> AuditScope:
        return self

    def __exit__(self, *args: Any) -> None:
        self.dispose()

    async def __aenter__(self) -> AuditScope:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"AuditScope(run_id={self.run_id!r}, events={len(self._events)}, disposed={self._disposed})"
