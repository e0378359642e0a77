"""Project an item order onto working hours with a daily capacity budget."""

from __future__ import annotations

import enum
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta, tzinfo

from taskorder.config import EngineConfig
from taskorder.errors import ConfigurationError
from taskorder.graph import DependencyGraph, dependency_order, ensure_acyclic
from taskorder.logger import get_logger
from taskorder.models import (
    BlockingEdge,
    ItemFilter,
    SchedulePlan,
    ScheduledSlot,
    ScheduleSummary,
    SlotConstraints,
    WorkItem,
)
from taskorder.ordering import prepare_graph, ready_set_order, score_graph
from taskorder.timeutil import align, localize, round_up_quarter_hour

logger = get_logger()

DUE_VIOLATION_NOTE = "Scheduled after due date"
PARENT_NOTE = "Parent has incomplete children"


class ScheduleMode(enum.StrEnum):
    PRIORITY = "priority"  # ready-set order by score
    DEPENDENCY = "dependency"  # plain topological order


# ---------------------------------------------------------------------------
# Working day helpers
# ---------------------------------------------------------------------------


def _skip_weekends_forward(day: date, config: EngineConfig) -> date:
    """If *day* is a Saturday or Sunday and skip_weekends is on, move to Monday."""
    if not config.skip_weekends:
        return day
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return day


def _next_working_day(day: date, config: EngineConfig) -> date:
    return _skip_weekends_forward(day + timedelta(days=1), config)


def _at(day: date, clock: time, zone: tzinfo | None) -> datetime:
    return datetime.combine(day, clock, tzinfo=zone)


# ---------------------------------------------------------------------------
# Calendar pass
# ---------------------------------------------------------------------------


def plan_calendar(
    ordered: Iterable[WorkItem],
    graph: DependencyGraph | None,
    config: EngineConfig,
    now: datetime | None = None,
) -> SchedulePlan:
    """Assign start/end times to *ordered* items, one after another.

    Items are never split across days. A day that already has work on it
    rolls over when the next item does not fit its remaining capacity; an
    empty day accepts any item, even one longer than the daily capacity, and
    the negative remainder simply closes that day.

    The "Parent has incomplete children" note is attached to the parent's
    slot, the item left waiting, not to the slots of its children.
    """
    config.validate()
    ordered = list(ordered)
    wh = config.working_hours
    work_start, work_end = wh.start_time, wh.end_time
    capacity = config.daily_capacity_minutes

    cursor = round_up_quarter_hour(localize(config.resolve_start(now), wh.tz))
    zone = cursor.tzinfo
    day = _skip_weekends_forward(cursor.date(), config)
    if day != cursor.date():
        cursor = _at(day, work_start, zone)
    remaining = capacity

    planned_ids = {i.id for i in ordered}
    parents = {i.parent_id for i in ordered if i.parent_id in planned_ids}
    ends: dict[str, datetime] = {}
    slots: list[ScheduledSlot] = []

    for item in ordered:
        duration = item.duration_minutes
        constraints = SlotConstraints()

        blockers = [b for b in (graph.blockers(item.id) if graph else []) if b in ends]
        if blockers:
            constraints.blockers = blockers
            cursor = max(cursor, max(ends[b] for b in blockers))

        # roll forward until the cursor sits inside the current day's window
        while cursor > _at(day, work_end, zone) or (cursor == _at(day, work_end, zone) and duration > 0):
            day = _next_working_day(day, config)
            remaining = capacity
            logger.checks("Past working hours, moving to %s", day.isoformat())
        if cursor < _at(day, work_start, zone):
            cursor = _at(day, work_start, zone)

        if remaining < duration and remaining < capacity:
            day = _next_working_day(day, config)
            cursor = _at(day, work_start, zone)
            remaining = capacity
            logger.checks("%s does not fit today's capacity, moving to %s", item.id, day.isoformat())

        start = cursor
        end = start + timedelta(minutes=duration)

        if item.due_at is not None and end > align(item.due_at, end):
            constraints.due_violation = True
            constraints.notes.append(DUE_VIOLATION_NOTE)
        if item.id in parents:
            constraints.notes.append(PARENT_NOTE)

        slots.append(ScheduledSlot(item_id=item.id, start=start, end=end, constraints=constraints))
        logger.checks("Placed %s at %s - %s", item.id, start.isoformat(), end.isoformat())

        ends[item.id] = end
        cursor = end
        remaining -= duration

    summary = ScheduleSummary(
        total_planned_minutes=sum(int(round(s.duration_minutes)) for s in slots),
        unplaced_count=len(ordered) - len(slots),
        violation_count=sum(1 for s in slots if s.constraints.due_violation),
    )
    return SchedulePlan(slots=slots, summary=summary)


def plan_schedule(
    items: Iterable[WorkItem],
    edges: Iterable[BlockingEdge],
    config: EngineConfig | None = None,
    now: datetime | None = None,
    mode: ScheduleMode | str = ScheduleMode.PRIORITY,
    item_filter: ItemFilter | None = None,
) -> SchedulePlan:
    """Order the active items of a snapshot and place them on the calendar.

    With *item_filter* only the matching active items are planned; edges to
    items outside it are ignored rather than reported.

    Raises CycleError before any ordering work when the graph is cyclic, and
    ConfigurationError for a malformed config or unknown mode.
    """
    config = (config or EngineConfig()).validate()
    try:
        mode = ScheduleMode(mode)
    except ValueError as e:
        raise ConfigurationError("mode", f"expected one of {[m.value for m in ScheduleMode]}") from e

    graph = prepare_graph(list(items), list(edges), item_filter)
    ensure_acyclic(graph)
    if len(graph) == 0:
        return SchedulePlan()

    reference = now or datetime.now(config.working_hours.tz)
    if mode == ScheduleMode.PRIORITY:
        order = ready_set_order(graph, score_graph(graph, config, reference))
    else:
        order = dependency_order(graph, reference)

    logger.debug("Scheduling %d items in %s mode", len(order), mode.value)
    return plan_calendar((graph.dag.nodes[iid]["item"] for iid in order), graph, config, now)
