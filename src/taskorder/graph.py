"""Dependency graph construction, cycle detection and depth analysis.

The graph is a ``networkx.DiGraph`` with an edge ``blocker -> dependent`` for
every blocking relationship, so predecessors are blockers and successors are
dependents. It is rebuilt on every call and never shared.
"""

from __future__ import annotations

import math
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

import networkx as nx

from taskorder.errors import CycleError, InvalidReferenceError
from taskorder.logger import get_logger
from taskorder.models import BlockingEdge, WorkItem

logger = get_logger()


@dataclass
class DependencyGraph:
    """Adjacency for one snapshot of eligible items."""

    dag: nx.DiGraph

    @property
    def ids(self) -> list[str]:
        return sorted(self.dag.nodes)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self.dag

    def __len__(self) -> int:
        return self.dag.number_of_nodes()

    def blockers(self, item_id: str) -> list[str]:
        return sorted(self.dag.predecessors(item_id))

    def dependents(self, item_id: str) -> list[str]:
        return sorted(self.dag.successors(item_id))

    def blocker_map(self) -> dict[str, set[str]]:
        return {iid: set(self.dag.predecessors(iid)) for iid in self.dag.nodes}

    def dependent_map(self) -> dict[str, set[str]]:
        return {iid: set(self.dag.successors(iid)) for iid in self.dag.nodes}

    def has_edge(self, dependent_id: str, blocker_id: str) -> bool:
        return self.dag.has_edge(blocker_id, dependent_id)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


def validate_edges(known_ids: Iterable[str], edges: Iterable[BlockingEdge]) -> None:
    """Reject self-edges and edges pointing at items that do not exist at all."""
    known = set(known_ids)
    for edge in edges:
        if edge.dependent_id == edge.blocker_id:
            raise InvalidReferenceError(edge.dependent_id, edge.blocker_id)
        for ref in (edge.dependent_id, edge.blocker_id):
            if ref not in known:
                other = edge.blocker_id if ref == edge.dependent_id else edge.dependent_id
                raise InvalidReferenceError(other, ref)


def hierarchy_edges(items: Iterable[WorkItem]) -> list[BlockingEdge]:
    """A parent cannot be ready until every one of its subtasks is done."""
    items = list(items)
    ids = {i.id for i in items}
    return [
        BlockingEdge(dependent_id=i.parent_id, blocker_id=i.id)
        for i in items
        if i.parent_id is not None and i.parent_id in ids and i.parent_id != i.id
    ]


def build_graph(
    items: Iterable[WorkItem],
    edges: Iterable[BlockingEdge],
    include_hierarchy: bool = True,
) -> DependencyGraph:
    """Build the graph over *items*, which must already be the eligible set.

    Edges with either end outside the eligible set are dropped: a blocker that
    is complete or filtered out cannot block anything.
    """
    items = list(items)
    G = nx.DiGraph()
    for item in sorted(items, key=lambda i: i.id):
        G.add_node(item.id, item=item)

    all_edges = list(edges)
    if include_hierarchy:
        all_edges.extend(hierarchy_edges(items))

    dropped = 0
    for edge in all_edges:
        if edge.blocker_id not in G or edge.dependent_id not in G:
            dropped += 1
            continue
        G.add_edge(edge.blocker_id, edge.dependent_id)

    logger.debug(
        "Built dependency graph: %d items, %d edges (%d dropped)",
        G.number_of_nodes(),
        G.number_of_edges(),
        dropped,
    )
    return DependencyGraph(G)


# ---------------------------------------------------------------------------
# Cycle detection
# ---------------------------------------------------------------------------

_WHITE, _GREY, _BLACK = 0, 1, 2


def find_cycle(graph: DependencyGraph) -> list[str] | None:
    """Return a closed walk ``[a, b, ..., a]`` if the graph has a cycle.

    Three-colour DFS along blocker -> dependent edges with an explicit stack,
    so long chains cannot exhaust the interpreter's recursion limit.
    """
    color = dict.fromkeys(graph.ids, _WHITE)
    for root in graph.ids:
        if color[root] != _WHITE:
            continue
        color[root] = _GREY
        path = [root]
        stack = [iter(graph.dependents(root))]
        while stack:
            for nxt in stack[-1]:
                if color[nxt] == _GREY:
                    cycle = path[path.index(nxt):] + [nxt]
                    logger.debug("Cycle found: %s", " -> ".join(cycle))
                    return cycle
                if color[nxt] == _WHITE:
                    color[nxt] = _GREY
                    path.append(nxt)
                    stack.append(iter(graph.dependents(nxt)))
                    break
            else:
                color[path.pop()] = _BLACK
                stack.pop()
    return None


def ensure_acyclic(graph: DependencyGraph) -> None:
    cycle = find_cycle(graph)
    if cycle is not None:
        raise CycleError(cycle)


def would_create_cycle(graph: DependencyGraph, dependent_id: str, blocker_id: str) -> list[str] | None:
    """Witness cycle that adding ``dependent depends on blocker`` would close.

    The new edge runs blocker -> dependent, so a cycle appears exactly when
    the dependent already reaches the blocker through its dependents.
    """
    if dependent_id not in graph or blocker_id not in graph:
        return None
    if dependent_id == blocker_id:
        return [dependent_id, dependent_id]
    try:
        path = nx.shortest_path(graph.dag, dependent_id, blocker_id)
    except nx.NetworkXNoPath:
        return None
    return path + [dependent_id]


# ---------------------------------------------------------------------------
# Depth ("blocking impact")
# ---------------------------------------------------------------------------


def compute_depths(graph: DependencyGraph) -> dict[str, int]:
    """Length of the longest chain of dependents hanging off each item.

    Kahn's algorithm on the reverse graph: items with no dependents are
    processed first and each blocker inherits ``depth + 1``.
    """
    ids = graph.ids
    depth = dict.fromkeys(ids, 0)
    pending = {iid: graph.dag.out_degree(iid) for iid in ids}
    queue = deque(iid for iid in ids if pending[iid] == 0)
    processed = 0

    while queue:
        iid = queue.popleft()
        processed += 1
        for blocker in graph.blockers(iid):
            depth[blocker] = max(depth[blocker], depth[iid] + 1)
            pending[blocker] -= 1
            if pending[blocker] == 0:
                queue.append(blocker)

    if processed != len(ids):
        # only reachable if the caller skipped the cycle check
        raise CycleError(find_cycle(graph) or sorted(iid for iid, n in pending.items() if n > 0))
    return depth


# ---------------------------------------------------------------------------
# Plain dependency order
# ---------------------------------------------------------------------------


def _ts(dt: datetime | None) -> float:
    return dt.timestamp() if dt is not None else math.inf


def dependency_order(graph: DependencyGraph, now: datetime) -> list[str]:
    """Topological order with a list-style ranking among unconstrained items.

    Blockers always come before their dependents. Among items that are free
    at the same point: overdue first, then earlier due date, higher priority,
    shorter duration, older creation time and finally id.
    """
    now_ts = now.timestamp()

    def rank(item_id: str) -> tuple:
        item: WorkItem = graph.dag.nodes[item_id]["item"]
        due = _ts(item.due_at)
        return (
            0 if due < now_ts else 1,
            due,
            -item.priority.rank,
            item.duration_minutes,
            item.created_at.timestamp(),
            item.id,
        )

    return list(nx.lexicographical_topological_sort(graph.dag, key=rank))
