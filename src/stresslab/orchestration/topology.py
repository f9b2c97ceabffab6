"""
Topology Builder — dependency graph over workload targets.

Every target gets a self-edge, then every declared dependency becomes a
weighted edge from the dependent to its dependency. The graph may contain
cycles; :func:`topology_cycles` reports them for diagnostics but nothing
rejects them.

Example::

    A (crit 5, no deps)     B (crit 2, deps [A])

    edges:  A→A  w=1  self:A
            B→B  w=1  self:B
            B→A  w=3  dependency:B->A

Tags:
    stresslab, orchestration, topology, graph, deterministic
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from stresslab.core.identifiers import WorkloadId
from stresslab.workspace.models import WorkflowWorkspaceSeed, WorkloadTarget


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


@dataclass(frozen=True)
class TopologyEdge:
    """Directed edge ``from_id → to_id`` with a coupling factor and reason."""

    from_id: WorkloadId
    to_id: WorkloadId
    weight: int
    coupling: float
    reason: str

    @property
    def is_self_edge(self) -> bool:
        return self.from_id == self.to_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": str(self.from_id),
            "to": str(self.to_id),
            "weight": self.weight,
            "payload": {"coupling": self.coupling, "reason": self.reason},
        }


@dataclass(frozen=True)
class WorkflowTopology:
    nodes: tuple[WorkloadId, ...]
    edges: tuple[TopologyEdge, ...]

    def dependency_edges(self) -> list[TopologyEdge]:
        return [edge for edge in self.edges if not edge.is_self_edge]

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [str(n) for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


def _dependency_edge(target: WorkloadTarget, dependency: WorkloadId, index: int) -> TopologyEdge:
    return TopologyEdge(
        from_id=target.workload_id,
        to_id=dependency,
        weight=int(_clamp(target.criticality + index + 1, 1, 5)),
        coupling=_clamp(target.criticality * 0.2 + 0.2, 0, 1),
        reason=f"dependency:{target.workload_id}->{dependency}",
    )


def build_topology(workspace: WorkflowWorkspaceSeed) -> WorkflowTopology:
    """
    Build the dependency topology of a workspace.

    Self-edges come first in target order, followed by dependency edges in
    target order then dependency order, so a workspace with ``n`` targets
    yields ``n + sum(len(t.dependencies))`` edges.
    """
    self_edges = [
        TopologyEdge(
            from_id=target.workload_id,
            to_id=target.workload_id,
            weight=1,
            coupling=1.0,
            reason=f"self:{target.name}",
        )
        for target in workspace.targets
    ]
    dependency_edges = [
        _dependency_edge(target, dependency, index)
        for target in workspace.targets
        for index, dependency in enumerate(target.dependencies)
    ]
    return WorkflowTopology(
        nodes=tuple(target.workload_id for target in workspace.targets),
        edges=tuple(self_edges + dependency_edges),
    )


def topology_cycles(topology: WorkflowTopology) -> list[list[WorkloadId]]:
    """
    Find dependency cycles (self-edges excluded).

    Each cycle is reported once, as the node path starting from the node
    first reached in node order, e.g. ``[A, B]`` for ``A→B→A``.
    """
    adjacency: dict[WorkloadId, list[WorkloadId]] = {node: [] for node in topology.nodes}
    for edge in topology.dependency_edges():
        adjacency.setdefault(edge.from_id, []).append(edge.to_id)
        adjacency.setdefault(edge.to_id, [])

    cycles: list[list[WorkloadId]] = []
    seen: set[frozenset[WorkloadId]] = set()
    state: dict[WorkloadId, int] = {}  # 1 = on stack, 2 = done
    stack: list[WorkloadId] = []

    def visit(node: WorkloadId) -> None:
        state[node] = 1
        stack.append(node)
        for nxt in adjacency[node]:
            if state.get(nxt) == 1:
                cycle = stack[stack.index(nxt):]
                key = frozenset(cycle)
                if key not in seen:
                    seen.add(key)
                    cycles.append(list(cycle))
            elif nxt not in state:
                visit(nxt)
        stack.pop()
        state[node] = 2

    for node in adjacency:
        if node not in state:
            visit(node)
    return cycles


def derive_topology_budget(workspace: WorkflowWorkspaceSeed) -> list[int]:
    """
    Per-target budget ``clamp(criticality*5 + len(az_affinity), 1, 5)``.

    One entry per target in target order, so targets sharing a workload id
    each keep their own budget.
    """
    return [
        int(_clamp(target.criticality * 5 + len(target.az_affinity), 1, 5))
        for target in workspace.targets
    ]
