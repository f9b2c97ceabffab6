"""
Ranking Engine — severity ordering of signals and runbook scoring.

``rank_signals`` keeps at most :data:`MAX_RANKED_SIGNALS` signals, highest
severity first, ties in input order. ``infer_ranking`` binds the ranked
signal at position ``i`` to ``runbooks[i % len(runbooks)]`` and scores it
``SEVERITY_BASE_SCORES[severity] + i``.

Example::

    signals  low, critical, medium   (one runbook "rb")
    ranked   critical, medium, low
    scores   rb=110, rb=71, rb=42
"""

from __future__ import annotations

from dataclasses import dataclass

from stresslab.core.identifiers import RunbookId
from stresslab.workspace.models import (
    RecoverySignal,
    SeverityBand,
    SignalClass,
    WorkflowWorkspaceSeed,
)

MAX_RANKED_SIGNALS = 8

SEVERITY_BASE_SCORES: dict[SeverityBand, int] = {
    SeverityBand.CRITICAL: 110,
    SeverityBand.HIGH: 90,
    SeverityBand.MEDIUM: 70,
    SeverityBand.LOW: 40,
}


@dataclass(frozen=True)
class RankingEntry:
    runbook_id: RunbookId
    score: int


@dataclass(frozen=True)
class SignalBucket:
    signal_class: SignalClass
    count: int


def rank_signals(workspace: WorkflowWorkspaceSeed) -> list[RecoverySignal]:
    """Top signals by severity rank (stable)."""
    ordered = sorted(workspace.signals, key=lambda s: s.severity_rank, reverse=True)
    return ordered[:MAX_RANKED_SIGNALS]


def infer_ranking(workspace: WorkflowWorkspaceSeed) -> list[RankingEntry]:
    """Score runbooks from the ranked signals. Empty when there are no runbooks."""
    if not workspace.runbooks:
        return []

    entries = [
        RankingEntry(
            runbook_id=workspace.runbooks[index % len(workspace.runbooks)].id,
            score=SEVERITY_BASE_SCORES[signal.severity] + index,
        )
        for index, signal in enumerate(rank_signals(workspace))
    ]
    entries.sort(key=lambda e: e.score, reverse=True)
    return entries


def bucket_signal_classes(signals: list[RecoverySignal]) -> list[SignalBucket]:
    """Count signals per class, classes in first-seen order."""
    counts: dict[SignalClass, int] = {}
    for signal in signals:
        counts[signal.signal_class] = counts.get(signal.signal_class, 0) + 1
    return [SignalBucket(signal_class=cls, count=count) for cls, count in counts.items()]
