"""Ready-set ordering: "what should I work on next".

A max-score variant of Kahn's algorithm. Items start Blocked or Ready
depending on their blocker count; the best-scoring Ready item is emitted,
its dependents lose one outstanding blocker, and the loop repeats until
every item is Ordered.
"""

from __future__ import annotations

import heapq
from collections.abc import Iterable
from datetime import datetime

from taskorder.config import EngineConfig
from taskorder.errors import CycleError
from taskorder.graph import (
    DependencyGraph,
    build_graph,
    compute_depths,
    find_cycle,
    validate_edges,
)
from taskorder.logger import get_logger
from taskorder.models import BlockingEdge, ItemFilter, OrderingResult, ScoreComponents, WorkItem
from taskorder.scoring import score_item, tie_break_key

logger = get_logger()


def eligible_items(items: Iterable[WorkItem], item_filter: ItemFilter | None = None) -> list[WorkItem]:
    """Active items, narrowed to those matching *item_filter* when given."""
    return [i for i in items if i.is_active and (item_filter is None or item_filter.matches(i))]


def prepare_graph(
    items: list[WorkItem],
    edges: list[BlockingEdge],
    item_filter: ItemFilter | None = None,
) -> DependencyGraph:
    """Validate edges against the whole snapshot, then graph the eligible items.

    Blockers outside the filter are dropped by the graph builder, so a
    filtered run never waits on work it was told to ignore.
    """
    validate_edges((i.id for i in items), edges)
    return build_graph(eligible_items(items, item_filter), edges)


def score_graph(
    graph: DependencyGraph,
    config: EngineConfig,
    now: datetime,
) -> dict[str, ScoreComponents]:
    """Score every item in an acyclic graph."""
    depths = compute_depths(graph)
    max_depth = max(depths.values(), default=0)
    return {
        iid: score_item(graph.dag.nodes[iid]["item"], now, config, depths[iid], max_depth)
        for iid in graph.ids
    }


def ready_set_order(graph: DependencyGraph, scores: dict[str, ScoreComponents]) -> list[str]:
    """Emit items highest score first, never before all of their blockers.

    The heap key ``(-score, tie_break_key)`` yields exactly what re-scanning
    the ready set for the best item every round would.
    """
    remaining = {iid: graph.dag.in_degree(iid) for iid in graph.ids}

    def entry(iid: str) -> tuple:
        return (-scores[iid].score, tie_break_key(graph.dag.nodes[iid]["item"]))

    ready = [entry(iid) for iid, n in remaining.items() if n == 0]
    heapq.heapify(ready)

    order: list[str] = []
    while ready:
        neg_score, key = heapq.heappop(ready)
        chosen = key[-1]
        order.append(chosen)
        logger.checks("Selected %s (score %.4f)", chosen, -neg_score)
        for dep in graph.dependents(chosen):
            remaining[dep] -= 1
            if remaining[dep] == 0:
                heapq.heappush(ready, entry(dep))

    if len(order) != len(remaining):
        stuck = sorted(iid for iid, n in remaining.items() if n > 0)
        raise CycleError(find_cycle(graph) or stuck, "Ordering stalled with blocked items: " + ", ".join(stuck))
    return order


def order_items(
    items: Iterable[WorkItem],
    edges: Iterable[BlockingEdge],
    config: EngineConfig | None = None,
    now: datetime | None = None,
    item_filter: ItemFilter | None = None,
) -> OrderingResult:
    """Order the active items of a snapshot by score within dependency limits.

    A cyclic snapshot yields a result carrying the witness cycle and an
    empty order instead of a partial one.
    """
    config = (config or EngineConfig()).validate()
    now = now or datetime.now(config.working_hours.tz)
    items = list(items)
    graph = prepare_graph(items, list(edges), item_filter)

    cycle = find_cycle(graph)
    if cycle is not None:
        logger.warning("Cannot order items, dependency cycle: %s", " -> ".join(cycle))
        return OrderingResult(cycle=cycle)

    scores = score_graph(graph, config, now)
    ordered = ready_set_order(graph, scores)
    return OrderingResult(ordered_ids=ordered, scores={iid: scores[iid] for iid in ordered})


def next_items(
    items: Iterable[WorkItem],
    edges: Iterable[BlockingEdge],
    config: EngineConfig | None = None,
    now: datetime | None = None,
    limit: int = 5,
    item_filter: ItemFilter | None = None,
) -> list[str]:
    """The best-scoring items that could be started right now.

    Raises CycleError when the snapshot is cyclic.
    """
    items = list(items)
    edges = list(edges)
    result = order_items(items, edges, config, now, item_filter)
    if result.cycle is not None:
        raise CycleError(result.cycle)
    graph = prepare_graph(items, edges, item_filter)
    ready = [iid for iid in result.ordered_ids if not graph.blockers(iid)]
    return ready[:limit]
