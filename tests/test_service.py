from datetime import datetime

import pytest

from taskorder.config import EngineConfig
from taskorder.errors import CycleError, InvalidReferenceError
from taskorder.models import BlockingEdge, ItemFilter, ItemStatus, Priority, WorkItem
from taskorder.persistence import Store
from taskorder.service import PlanningService

MONDAY_9AM = datetime(2026, 3, 2, 9, 0)


@pytest.fixture
def store(tmp_path):
    s = Store(tmp_path / "tasks.json")
    items = {
        "T-1": WorkItem("T-1", title="Design", duration_minutes=60, created_at=datetime(2026, 1, 1)),
        "T-2": WorkItem("T-2", title="Build", duration_minutes=30, created_at=datetime(2026, 1, 1)),
        "T-3": WorkItem(
            "T-3",
            title="Old",
            duration_minutes=15,
            status=ItemStatus.COMPLETED,
            created_at=datetime(2026, 1, 1),
        ),
    }
    s.save(EngineConfig(), items, [BlockingEdge("T-2", "T-1")])
    return s


def test_store_round_trip(store):
    config, items, edges = store.load()
    assert config == EngineConfig()
    assert items["T-1"].title == "Design"
    assert items["T-3"].status == ItemStatus.COMPLETED
    assert edges == [BlockingEdge("T-2", "T-1")]


def test_missing_db_loads_empty(tmp_path):
    assert Store(tmp_path / "nope.json").load() == (None, {}, [])


def test_generate_id(store):
    _, items, _ = store.load()
    assert store.generate_id(items) == "T-4"
    assert store.generate_id({}) == "T-1"


def test_schedule_without_commit_leaves_store_alone(store):
    before = store.db_path.read_text()
    plan = PlanningService(store).schedule(EngineConfig(start_instant=MONDAY_9AM), now=MONDAY_9AM)
    assert [s.item_id for s in plan.slots] == ["T-1", "T-2"]
    assert plan.summary.total_planned_minutes == 90
    assert store.db_path.read_text() == before


def test_schedule_with_commit_writes_every_slot(store):
    config = EngineConfig(start_instant=MONDAY_9AM, commit=True)
    PlanningService(store).schedule(config, now=MONDAY_9AM)
    _, items, _ = store.load()
    assert items["T-1"].scheduled_start == MONDAY_9AM
    assert items["T-1"].scheduled_end == datetime(2026, 3, 2, 10, 0)
    assert items["T-2"].scheduled_start == datetime(2026, 3, 2, 10, 0)
    assert items["T-3"].scheduled_start is None


def test_commit_is_all_or_nothing(store):
    before = store.db_path.read_text()
    with pytest.raises(InvalidReferenceError) as exc:
        store.commit_schedule(
            [
                ("T-1", MONDAY_9AM, datetime(2026, 3, 2, 10, 0)),
                ("T-99", MONDAY_9AM, datetime(2026, 3, 2, 10, 0)),
            ]
        )
    assert exc.value.ids == ["T-99"]
    assert store.db_path.read_text() == before


def test_cyclic_snapshot_is_never_committed(store):
    config, items, edges = store.load()
    edges.append(BlockingEdge("T-1", "T-2"))
    store.save(config, items, edges)
    before = store.db_path.read_text()

    with pytest.raises(CycleError):
        PlanningService(store).schedule(EngineConfig(start_instant=MONDAY_9AM, commit=True))
    assert store.db_path.read_text() == before


def test_service_uses_stored_config(store):
    config, items, edges = store.load()
    config.daily_capacity_minutes = 60
    config.start_instant = MONDAY_9AM
    store.save(config, items, edges)

    plan = PlanningService(store).schedule(now=MONDAY_9AM)
    assert plan.slot_for("T-2").start == datetime(2026, 3, 3, 9, 0)


def test_order_through_service(store):
    result = PlanningService(store).order(now=MONDAY_9AM)
    assert result.ordered_ids == ["T-1", "T-2"]
    assert PlanningService(store).next(now=MONDAY_9AM) == ["T-1"]


def test_add_dependency_persists_edge(store):
    config, items, edges = store.load()
    items["T-4"] = WorkItem("T-4", priority=Priority.HIGH)
    store.save(config, items, edges)

    edge = PlanningService(store).add_dependency("T-4", "T-2")
    assert edge == BlockingEdge("T-4", "T-2")
    assert BlockingEdge("T-4", "T-2") in store.load()[2]


def test_add_dependency_rejects_cycle(store):
    with pytest.raises(CycleError) as exc:
        PlanningService(store).add_dependency("T-1", "T-2")
    assert exc.value.cycle == ["T-1", "T-2", "T-1"]
    assert store.load()[2] == [BlockingEdge("T-2", "T-1")]


def test_add_dependency_rejects_cycle_through_completed_item(store):
    service = PlanningService(store)
    service.add_dependency("T-3", "T-2")
    with pytest.raises(CycleError):
        service.add_dependency("T-1", "T-3")


def test_add_dependency_rejects_bad_references(store):
    service = PlanningService(store)
    with pytest.raises(InvalidReferenceError):
        service.add_dependency("T-1", "T-1")
    with pytest.raises(InvalidReferenceError) as exc:
        service.add_dependency("T-1", "T-42")
    assert exc.value.ref_id == "T-42"


def test_remove_dependency(store):
    service = PlanningService(store)
    assert service.remove_dependency("T-2", "T-1") is True
    assert service.remove_dependency("T-2", "T-1") is False
    assert store.load()[2] == []


def test_filtered_schedule_ignores_blockers_outside_the_filter(store):
    config, items, edges = store.load()
    items["T-2"].priority = Priority.HIGH
    store.save(config, items, edges)

    plan = PlanningService(store).schedule(
        EngineConfig(start_instant=MONDAY_9AM, commit=True),
        now=MONDAY_9AM,
        item_filter=ItemFilter(priority=Priority.HIGH),
    )
    assert [s.item_id for s in plan.slots] == ["T-2"]
    assert plan.slots[0].start == MONDAY_9AM
    assert plan.slots[0].constraints.blockers == []

    _, items, _ = store.load()
    assert items["T-1"].scheduled_start is None
    assert items["T-2"].scheduled_start == MONDAY_9AM


def test_filtered_next(store):
    service = PlanningService(store)
    assert service.next(now=MONDAY_9AM, item_filter=ItemFilter(query="build")) == ["T-2"]
    assert service.order(now=MONDAY_9AM, item_filter=ItemFilter(query="nothing")).ordered_ids == []
