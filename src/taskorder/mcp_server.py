"""MCP server for taskorder: exposes ordering and scheduling tools to AI assistants."""

from __future__ import annotations

import json
import os
from datetime import datetime

from mcp.server.fastmcp import FastMCP

from taskorder.config import EngineConfig
from taskorder.errors import EngineError
from taskorder.models import ItemFilter, Priority, WorkItem
from taskorder.persistence import DEFAULT_DB_FILE, Store
from taskorder.service import PlanningService

mcp = FastMCP(
    "taskorder",
    instructions="""\
taskorder keeps a list of work items (duration in minutes, priority low/medium/high, \
optional due date, optional parent) and blocking relationships between them. \
A dependent item cannot start before its blockers are done, and a parent cannot \
start before its subtasks are done.

Key concepts:
- **Order**: get_order ranks every open item by a weighted score of urgency \
(due date), priority, blocking impact (how many items wait on it) and quick win \
(short items), never placing an item before its blockers.
- **Next**: get_next lists the best items that can be started right now.
- **Schedule**: plan_schedule places the order on the calendar inside working \
hours and a daily capacity, and flags items that end after their due date. \
Pass commit=true to save the planned start/end times.

When the user asks what to work on, use get_next. When they ask when things \
will get done, use plan_schedule.\
""",
)


def _get_store() -> Store:
    return Store(os.environ.get("TASKORDER_DB", DEFAULT_DB_FILE))


def _service() -> PlanningService:
    return PlanningService(_get_store())


def _item_filter(payload: dict | None) -> ItemFilter | None:
    return ItemFilter.from_dict(payload) if payload else None


# ---------------------------------------------------------------------------
# Write tools
# ---------------------------------------------------------------------------


@mcp.tool()
def add_item(
    title: str,
    duration_minutes: int = 30,
    priority: str = "medium",
    due_at: str | None = None,
    parent_id: str | None = None,
) -> str:
    """Add a new work item.

    Args:
        title: Item title
        duration_minutes: Estimated duration in minutes
        priority: low, medium or high
        due_at: Due timestamp in ISO format (e.g. "2026-03-02T17:00")
        parent_id: ID of the parent item, if this is a subtask
    """
    if duration_minutes < 0:
        return f"Error: duration_minutes must be >= 0, got {duration_minutes}."
    store = _get_store()
    config, items, edges = store.load()
    if parent_id is not None and parent_id not in items:
        return f"Error: parent {parent_id} not found."
    try:
        prio = Priority.parse(priority)
        due = datetime.fromisoformat(due_at) if due_at else None
    except ValueError as e:
        return f"Error: {e}"

    iid = store.generate_id(items)
    items[iid] = WorkItem(
        id=iid,
        title=title,
        duration_minutes=duration_minutes,
        priority=prio,
        due_at=due,
        parent_id=parent_id,
    )
    store.save(config, items, edges)
    return f"Added '{title}' as {iid}"


@mcp.tool()
def add_dependency(dependent_id: str, blocker_id: str) -> str:
    """Record that one item cannot start before another is done.

    Args:
        dependent_id: Item that has to wait (e.g. "T-4")
        blocker_id: Item that has to finish first (e.g. "T-2")
    """
    try:
        _service().add_dependency(dependent_id, blocker_id)
    except EngineError as e:
        return f"Error: {e}"
    return f"{dependent_id} now depends on {blocker_id}."


@mcp.tool()
def remove_dependency(dependent_id: str, blocker_id: str) -> str:
    """Remove a blocking relationship between two items."""
    if _service().remove_dependency(dependent_id, blocker_id):
        return f"{dependent_id} no longer depends on {blocker_id}."
    return f"{dependent_id} does not depend on {blocker_id}."


# ---------------------------------------------------------------------------
# Read tools
# ---------------------------------------------------------------------------


@mcp.tool()
def get_order(config: dict | None = None, filter: dict | None = None) -> str:
    """Rank all open items, best first, with score components.

    Args:
        config: Optional overrides such as {"weights": {"U": 0.6, "P": 0.2, "B": 0.1, "Q": 0.1}},
            "horizon_hours", "overdue_boost" or "quick_win_cap_minutes".
        filter: Optional item filter, e.g. {"priority": "high", "parent_id": "T-3", "q": "report"}
    """
    try:
        cfg = EngineConfig.from_dict(config) if config else None
        result = _service().order(cfg, item_filter=_item_filter(filter))
    except EngineError as e:
        return json.dumps({"error": e.to_dict()})
    return json.dumps(result.to_dict(), indent=2)


@mcp.tool()
def get_next(limit: int = 3, filter: dict | None = None) -> str:
    """Items that can be started right now, best first.

    Args:
        limit: How many suggestions to return
        filter: Optional item filter with "status", "priority", "parent_id" or "q"
    """
    store = _get_store()
    _, items, _ = store.load()
    try:
        ids = PlanningService(store).next(limit=limit, item_filter=_item_filter(filter))
    except EngineError as e:
        return json.dumps({"error": e.to_dict()})
    return json.dumps(
        [{"id": iid, "title": items[iid].title, "duration_minutes": items[iid].duration_minutes} for iid in ids],
        indent=2,
    )


@mcp.tool()
def plan_schedule(
    mode: str = "priority",
    start: str | None = None,
    commit: bool = False,
    config: dict | None = None,
    filter: dict | None = None,
) -> str:
    """Place open items on the calendar.

    Args:
        mode: "priority" (ranked by score) or "dependency" (plain dependency order)
        start: Start instant in ISO format; defaults to now
        commit: Save the planned start/end times
        config: Optional overrides such as {"working_hours": {"start": "08:00", "end": "16:00"},
            "daily_capacity_minutes": 360}
        filter: Only plan matching items, e.g. {"parent_id": "T-3"}. Blockers outside
            the filter are ignored.
    """
    store = _get_store()
    try:
        cfg = EngineConfig.from_dict(config) if config else (store.load_config() or EngineConfig())
        if start:
            cfg.start_instant = datetime.fromisoformat(start)
        cfg.commit = commit
        plan = PlanningService(store).schedule(cfg, mode=mode, item_filter=_item_filter(filter))
    except EngineError as e:
        return json.dumps({"error": e.to_dict()})
    except ValueError as e:
        return json.dumps({"error": {"kind": "configuration", "message": str(e), "ids": []}})
    return json.dumps(plan.to_dict(), indent=2)


def main():
    """Entry point for the MCP server."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
