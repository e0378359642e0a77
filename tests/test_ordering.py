from datetime import datetime, timedelta

import pytest

from taskorder.config import EngineConfig, Weights
from taskorder.errors import CycleError, InvalidReferenceError
from taskorder.models import BlockingEdge, ItemFilter, ItemStatus, Priority, WorkItem
from taskorder.ordering import next_items, order_items

NOW = datetime(2026, 3, 2, 9, 0)


def _item(iid, **kw):
    kw.setdefault("created_at", datetime(2026, 1, 1))
    kw.setdefault("duration_minutes", 30)
    return WorkItem(id=iid, **kw)


def _edges(*pairs):
    return [BlockingEdge(d, b) for d, b in pairs]


def _snapshot():
    items = [
        _item("T-1", priority=Priority.LOW),
        _item("T-2", priority=Priority.HIGH, due_at=NOW + timedelta(hours=10)),
        _item("T-3", priority=Priority.MEDIUM, duration_minutes=10),
        _item("T-4", priority=Priority.HIGH),
        _item("T-5", priority=Priority.LOW, due_at=NOW - timedelta(hours=2)),
        _item("T-6", priority=Priority.MEDIUM, parent_id="T-4"),
    ]
    edges = _edges(("T-2", "T-1"), ("T-4", "T-3"), ("T-3", "T-1"))
    return items, edges


def test_every_item_ordered_once_and_after_its_blockers():
    items, edges = _snapshot()
    result = order_items(items, edges, now=NOW)
    assert result.cycle is None
    assert sorted(result.ordered_ids) == [i.id for i in items]
    pos = {iid: n for n, iid in enumerate(result.ordered_ids)}
    for e in edges:
        assert pos[e.blocker_id] < pos[e.dependent_id]
    assert pos["T-6"] < pos["T-4"]  # subtask before its parent


def test_ordering_is_deterministic():
    items, edges = _snapshot()
    first = order_items(items, edges, now=NOW)
    second = order_items(list(reversed(items)), list(reversed(edges)), now=NOW)
    assert first.ordered_ids == second.ordered_ids
    assert first.scores == second.scores


def test_overdue_item_comes_first():
    items, edges = _snapshot()
    assert order_items(items, edges, now=NOW).ordered_ids[0] == "T-5"


def test_blocking_impact_pulls_blocker_forward():
    items = [_item("A", priority=Priority.LOW), _item("B", priority=Priority.LOW), _item("C", priority=Priority.LOW)]
    result = order_items(items, _edges(("C", "B")), now=NOW)
    assert result.ordered_ids == ["B", "A", "C"]
    assert result.scores["B"].blocking == 1.0
    assert result.scores["A"].blocking == 0.0


def test_equal_scores_fall_back_to_id():
    items = [_item("B"), _item("A"), _item("C")]
    assert order_items(items, [], now=NOW).ordered_ids == ["A", "B", "C"]


def test_equal_scores_prefer_earlier_due():
    weights = Weights(urgency=0.0, priority=1.0, blocking=0.0, quick_win=0.0)
    items = [
        _item("A", due_at=NOW + timedelta(days=3)),
        _item("B", due_at=NOW + timedelta(days=1)),
    ]
    result = order_items(items, [], EngineConfig(weights=weights), now=NOW)
    assert result.ordered_ids == ["B", "A"]


def test_terminal_items_are_left_out():
    items = [_item("A", status=ItemStatus.COMPLETED), _item("B"), _item("C", status=ItemStatus.CANCELED)]
    result = order_items(items, _edges(("B", "A")), now=NOW)
    assert result.ordered_ids == ["B"]
    assert set(result.scores) == {"B"}


def test_cycle_gives_witness_and_empty_order():
    items = [_item("A"), _item("B"), _item("C")]
    result = order_items(items, _edges(("A", "B"), ("B", "A")), now=NOW)
    assert result.ordered_ids == []
    assert result.cycle == ["A", "B", "A"]
    assert result.has_cycle


def test_self_edge_is_rejected():
    with pytest.raises(InvalidReferenceError):
        order_items([_item("A")], _edges(("A", "A")), now=NOW)


def test_empty_snapshot():
    result = order_items([], [], now=NOW)
    assert result.ordered_ids == []
    assert result.cycle is None


def test_next_items_only_lists_ready_work():
    items, edges = _snapshot()
    ready = next_items(items, edges, now=NOW, limit=10)
    assert ready == [iid for iid in order_items(items, edges, now=NOW).ordered_ids if iid in {"T-1", "T-5", "T-6"}]
    assert next_items(items, edges, now=NOW, limit=1) == ["T-5"]


def test_next_items_raises_on_cycle():
    with pytest.raises(CycleError):
        next_items([_item("A"), _item("B")], _edges(("A", "B"), ("B", "A")), now=NOW)


def test_filter_drops_blockers_outside_it():
    items, edges = _snapshot()
    high = ItemFilter(priority=Priority.HIGH)

    result = order_items(items, edges, now=NOW, item_filter=high)
    assert result.cycle is None
    assert sorted(result.ordered_ids) == ["T-2", "T-4"]
    assert sorted(next_items(items, edges, now=NOW, limit=10, item_filter=high)) == ["T-2", "T-4"]


def test_filter_still_rejects_unknown_references():
    items = [_item("A", priority=Priority.HIGH), _item("B", priority=Priority.LOW)]
    with pytest.raises(InvalidReferenceError):
        order_items(items, _edges(("A", "Z")), now=NOW, item_filter=ItemFilter(priority=Priority.HIGH))
