"""Typer CLI for taskorder."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from taskorder.config import EngineConfig, Weights, WorkingHours
from taskorder.errors import CycleError, EngineError
from taskorder.graph import build_graph, would_create_cycle
from taskorder.logger import setup_logger
from taskorder.models import BlockingEdge, ItemFilter, ItemStatus, Priority, WorkItem
from taskorder.persistence import DEFAULT_DB_FILE, Store
from taskorder.scheduler import ScheduleMode
from taskorder.service import PlanningService

app = typer.Typer(
    name="taskorder",
    help="Dependency-aware task ordering and calendar scheduling.",
    no_args_is_help=True,
)
console = Console()

_state = {"db": Path(DEFAULT_DB_FILE)}


def _get_store() -> Store:
    return Store(_state["db"])


def _parse_dt(value: str | None, option: str) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        console.print(f"[red]Invalid {option} '{value}'. Use ISO format, e.g. 2026-03-02T09:00[/red]")
        raise typer.Exit(1)


def _fail(err: EngineError) -> typer.Exit:
    console.print(f"[red]Error ({err.kind}): {err}[/red]")
    return typer.Exit(1)


def _fmt(dt: datetime | None) -> str:
    return dt.strftime("%a %b %d, %H:%M") if dt else "-"


StatusOpt = Annotated[Optional[str], typer.Option("--status", help="Only items with this status (todo, in_progress)")]
PriorityOpt = Annotated[Optional[str], typer.Option("--priority", "-p", help="Only items with this priority")]
ParentOpt = Annotated[Optional[str], typer.Option("--parent", help="Only subtasks of this item")]
SearchOpt = Annotated[Optional[str], typer.Option("--search", "-s", help="Only items whose title contains this text")]


def _item_filter(
    status: str | None, priority: str | None, parent: str | None, search: str | None
) -> ItemFilter | None:
    if not any((status, priority, parent, search)):
        return None
    try:
        return ItemFilter.from_dict({"status": status, "priority": priority, "parent_id": parent, "q": search})
    except EngineError as e:
        raise _fail(e)


@app.callback()
def main(
    db: Annotated[Path, typer.Option("--db", help="Path to the task database")] = Path(DEFAULT_DB_FILE),
    verbose: Annotated[int, typer.Option("--verbose", "-v", count=True, help="Increase log verbosity (-v, -vv, -vvv)")] = 0,
) -> None:
    _state["db"] = db
    setup_logger(verbose)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def init(
    working_hours: Annotated[str, typer.Option("--hours", help="Working hours, HH:MM-HH:MM")] = "09:00-17:30",
    timezone: Annotated[Optional[str], typer.Option(help="Timezone for working hours (e.g. Europe/Berlin)")] = None,
    capacity: Annotated[int, typer.Option(help="Daily capacity in minutes")] = 480,
    skip_weekends: bool = False,
    horizon: Annotated[float, typer.Option(help="Urgency horizon in hours")] = 168.0,
) -> None:
    """Initialize (or reinitialize) the engine configuration."""
    store = _get_store()
    _, items, edges = store.load()
    try:
        config = EngineConfig(
            working_hours=WorkingHours.from_range(working_hours, timezone),
            daily_capacity_minutes=capacity,
            skip_weekends=skip_weekends,
            horizon_hours=horizon,
        ).validate()
    except EngineError as e:
        raise _fail(e)
    store.save(config, items, edges)
    console.print(f"[green]Configuration saved to {store.db_path}[/green]")


@app.command()
def add(
    title: str,
    duration: Annotated[int, typer.Option("--duration", "-d", min=0, help="Estimated duration in minutes")] = 30,
    priority: Annotated[str, typer.Option("--priority", "-p", help="low, medium or high")] = "medium",
    due: Annotated[Optional[str], typer.Option(help="Due timestamp (ISO format)")] = None,
    parent: Annotated[Optional[str], typer.Option(help="Parent item ID")] = None,
    depends: Annotated[Optional[list[str]], typer.Option("--depends", help="Item IDs this depends on")] = None,
) -> None:
    """Add a new work item.

    Dependencies can be given individually (--depends T-1 --depends T-2)
    or comma-separated (--depends T-1,T-2).
    """
    store = _get_store()
    config, items, edges = store.load()
    try:
        prio = Priority.parse(priority)
    except ValueError:
        console.print(f"[red]Invalid priority '{priority}'. Use: low, medium, high[/red]")
        raise typer.Exit(1)
    if parent is not None and parent not in items:
        console.print(f"[red]Parent {parent} not found.[/red]")
        raise typer.Exit(1)

    expanded: list[str] = []
    for d in depends or []:
        expanded.extend(part.strip() for part in d.split(",") if part.strip())
    for dep in expanded:
        if dep not in items:
            console.print(f"[red]Dependency {dep} not found.[/red]")
            raise typer.Exit(1)

    iid = store.generate_id(items)
    items[iid] = WorkItem(
        id=iid,
        title=title,
        duration_minutes=duration,
        priority=prio,
        due_at=_parse_dt(due, "due date"),
        parent_id=parent,
    )

    # a subtask blocks its parent, so depending on an ancestor is a cycle
    graph = build_graph(list(items.values()), edges)
    for dep in expanded:
        cycle = would_create_cycle(graph, iid, dep)
        if cycle is not None:
            raise _fail(CycleError(cycle))
        graph.dag.add_edge(dep, iid)
        edges.append(BlockingEdge(dependent_id=iid, blocker_id=dep))

    store.save(config, items, edges)
    console.print(f"[green]Added '{title}' as {iid}[/green]")


@app.command("list")
def list_items(
    show_all: Annotated[bool, typer.Option("--all", "-a", help="Include completed and canceled items")] = False,
) -> None:
    """List work items and their blockers."""
    _, items, edges = _get_store().load()
    shown = [i for i in items.values() if show_all or i.is_active]
    if not shown:
        console.print("No items found.")
        return

    blockers: dict[str, list[str]] = {}
    for e in edges:
        blockers.setdefault(e.dependent_id, []).append(e.blocker_id)

    table = Table(title="Items")
    table.add_column("ID", no_wrap=True)
    table.add_column("Title")
    table.add_column("Min", justify="right")
    table.add_column("Priority")
    table.add_column("Due")
    table.add_column("Parent")
    table.add_column("Blocked by")
    table.add_column("Status")
    for i in shown:
        table.add_row(
            i.id,
            i.title,
            str(i.duration_minutes),
            i.priority.value,
            _fmt(i.due_at),
            i.parent_id or "-",
            ", ".join(sorted(blockers.get(i.id, []))) or "-",
            i.status.value,
            style="dim" if not i.is_active else None,
        )
    console.print(table)


def _set_status(item_id: str, status: ItemStatus) -> None:
    store = _get_store()
    config, items, edges = store.load()
    if item_id not in items:
        console.print(f"[red]Item {item_id} not found.[/red]")
        raise typer.Exit(1)
    items[item_id].status = status
    store.save(config, items, edges)
    console.print(f"[green]{item_id} is now {status.value}.[/green]")


@app.command()
def done(item_id: str) -> None:
    """Mark an item completed."""
    _set_status(item_id, ItemStatus.COMPLETED)


@app.command()
def cancel(item_id: str) -> None:
    """Mark an item canceled."""
    _set_status(item_id, ItemStatus.CANCELED)


@app.command()
def start(item_id: str) -> None:
    """Mark an item in progress."""
    _set_status(item_id, ItemStatus.IN_PROGRESS)


@app.command()
def block(
    dependent: Annotated[str, typer.Argument(help="Item that has to wait")],
    blocker: Annotated[str, typer.Argument(help="Item that has to finish first")],
) -> None:
    """Record that DEPENDENT cannot start before BLOCKER is done."""
    try:
        PlanningService(_get_store()).add_dependency(dependent, blocker)
    except EngineError as e:
        raise _fail(e)
    console.print(f"[green]{dependent} now depends on {blocker}[/green]")


@app.command()
def unblock(dependent: str, blocker: str) -> None:
    """Remove a blocking relationship."""
    if PlanningService(_get_store()).remove_dependency(dependent, blocker):
        console.print(f"[green]{dependent} no longer depends on {blocker}[/green]")
    else:
        console.print(f"[yellow]{dependent} does not depend on {blocker}, skipping.[/yellow]")


def _load_config(store: Store) -> EngineConfig:
    return store.load_config() or EngineConfig()


@app.command()
def order(
    weights: Annotated[Optional[str], typer.Option(help="Score weights U,P,B,Q (e.g. 0.45,0.35,0.15,0.05)")] = None,
    status: StatusOpt = None,
    priority: PriorityOpt = None,
    parent: ParentOpt = None,
    search: SearchOpt = None,
) -> None:
    """Show the full priority order with score breakdowns."""
    item_filter = _item_filter(status, priority, parent, search)
    store = _get_store()
    config = _load_config(store)
    if weights:
        try:
            u, p, b, q = (float(w) for w in weights.split(","))
        except ValueError:
            console.print("[red]--weights needs four comma-separated numbers[/red]")
            raise typer.Exit(1)
        config.weights = Weights(urgency=u, priority=p, blocking=b, quick_win=q)

    _, items, _ = store.load()
    try:
        result = PlanningService(store).order(config, item_filter=item_filter)
    except EngineError as e:
        raise _fail(e)
    if result.cycle is not None:
        console.print(f"[red]Dependency cycle: {' -> '.join(result.cycle)}[/red]")
        raise typer.Exit(1)
    if not result.ordered_ids:
        console.print("Nothing to order.")
        return

    table = Table(title="Priority Order")
    table.add_column("#", justify="right")
    table.add_column("ID", no_wrap=True)
    table.add_column("Title")
    table.add_column("Score", justify="right")
    table.add_column("Urgency", justify="right")
    table.add_column("Priority", justify="right")
    table.add_column("Blocking", justify="right")
    table.add_column("Quick win", justify="right")
    for n, iid in enumerate(result.ordered_ids, 1):
        s = result.scores[iid]
        table.add_row(
            str(n),
            iid,
            items[iid].title,
            f"{s.score:.3f}",
            f"{s.urgency:.2f}",
            f"{s.priority:.2f}",
            f"{s.blocking:.2f}",
            f"{s.quick_win:.2f}",
            style="bold red" if s.urgency > 1 else None,
        )
    console.print(table)


@app.command("next")
def next_up(
    limit: Annotated[int, typer.Option("--limit", "-n", help="How many suggestions")] = 3,
    status: StatusOpt = None,
    priority: PriorityOpt = None,
    parent: ParentOpt = None,
    search: SearchOpt = None,
) -> None:
    """Suggest what to work on next."""
    item_filter = _item_filter(status, priority, parent, search)
    store = _get_store()
    _, items, _ = store.load()
    try:
        ids = PlanningService(store).next(limit=limit, item_filter=item_filter)
    except EngineError as e:
        raise _fail(e)
    if not ids:
        console.print("Nothing is ready. All done?")
        return
    console.print(f"[bold]Up next:[/bold] {ids[0]} {items[ids[0]].title}")
    for iid in ids[1:]:
        console.print(f"  then {iid} {items[iid].title}")


@app.command()
def schedule(
    mode: Annotated[ScheduleMode, typer.Option(help="priority: by score; dependency: plain topological order")] = ScheduleMode.PRIORITY,
    start_at: Annotated[Optional[str], typer.Option("--start", help="Start instant (ISO format, default now)")] = None,
    working_hours: Annotated[Optional[str], typer.Option("--hours", help="Override working hours, HH:MM-HH:MM")] = None,
    capacity: Annotated[Optional[int], typer.Option(help="Override daily capacity in minutes")] = None,
    commit: Annotated[bool, typer.Option("--commit", help="Write the planned slots back to the database")] = False,
    status: StatusOpt = None,
    priority: PriorityOpt = None,
    parent: ParentOpt = None,
    search: SearchOpt = None,
) -> None:
    """Place active items on the calendar within working hours and capacity.

    The filter options restrict the plan to matching items; blockers left
    out by the filter do not hold anything back.
    """
    item_filter = _item_filter(status, priority, parent, search)
    store = _get_store()
    config = _load_config(store)
    _, items, _ = store.load()
    config.start_instant = _parse_dt(start_at, "start")
    config.commit = commit
    try:
        if working_hours:
            config.working_hours = WorkingHours.from_range(working_hours, config.working_hours.timezone)
        if capacity is not None:
            config.daily_capacity_minutes = capacity
        plan = PlanningService(store).schedule(config, mode=mode, item_filter=item_filter)
    except EngineError as e:
        raise _fail(e)

    if not plan.slots:
        console.print("No items to schedule.")
        return

    table = Table(title="Schedule")
    table.add_column("ID", no_wrap=True)
    table.add_column("Title")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Due")
    table.add_column("Blocked by")
    table.add_column("Notes")
    for slot in plan.slots:
        item = items[slot.item_id]
        table.add_row(
            slot.item_id,
            item.title,
            _fmt(slot.start),
            _fmt(slot.end),
            _fmt(item.due_at),
            ", ".join(slot.constraints.blockers) or "-",
            "; ".join(slot.constraints.notes) or "-",
            style="bold red" if slot.constraints.due_violation else None,
        )
    console.print(table)

    s = plan.summary
    console.print(
        f"Planned {s.total_planned_minutes} min, "
        f"{s.unplaced_count} unplaced, {s.violation_count} due-date violations"
    )
    if commit:
        console.print(f"[green]Committed {len(plan.slots)} slots.[/green]")


if __name__ == "__main__":
    app()
