"""Planning service: snapshot in, engine run, optional atomic commit out."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from taskorder.config import EngineConfig
from taskorder.errors import CycleError, InvalidReferenceError
from taskorder.graph import build_graph, would_create_cycle
from taskorder.logger import get_logger
from taskorder.models import BlockingEdge, ItemFilter, OrderingResult, SchedulePlan, WorkItem
from taskorder.ordering import next_items, order_items
from taskorder.scheduler import ScheduleMode, plan_schedule

logger = get_logger()


class TaskRepository(Protocol):
    """Storage collaborator the engine reads snapshots from and commits to."""

    def load_snapshot(self) -> tuple[list[WorkItem], list[BlockingEdge]]: ...

    def load_config(self) -> EngineConfig | None: ...

    def commit_schedule(self, assignments: list[tuple[str, datetime, datetime]]) -> None: ...

    def add_edge(self, edge: BlockingEdge) -> None: ...

    def remove_edge(self, edge: BlockingEdge) -> bool: ...


class PlanningService:
    """Runs the engine over one consistent snapshot per call.

    The service keeps no state between calls; two overlapping calls may see
    different snapshots and the last commit wins.
    """

    def __init__(self, repository: TaskRepository):
        self.repository = repository

    def _config(self, config: EngineConfig | None) -> EngineConfig:
        if config is None:
            config = self.repository.load_config() or EngineConfig()
        return config.validate()

    def order(
        self,
        config: EngineConfig | None = None,
        now: datetime | None = None,
        item_filter: ItemFilter | None = None,
    ) -> OrderingResult:
        config = self._config(config)
        items, edges = self.repository.load_snapshot()
        return order_items(items, edges, config, now, item_filter)

    def next(
        self,
        config: EngineConfig | None = None,
        now: datetime | None = None,
        limit: int = 5,
        item_filter: ItemFilter | None = None,
    ) -> list[str]:
        config = self._config(config)
        items, edges = self.repository.load_snapshot()
        return next_items(items, edges, config, now, limit, item_filter)

    def schedule(
        self,
        config: EngineConfig | None = None,
        now: datetime | None = None,
        mode: ScheduleMode | str = ScheduleMode.PRIORITY,
        item_filter: ItemFilter | None = None,
    ) -> SchedulePlan:
        """Compute the full plan, then commit it in one batch if requested."""
        config = self._config(config)
        items, edges = self.repository.load_snapshot()
        plan = plan_schedule(items, edges, config, now, mode, item_filter)
        if config.commit and plan.slots:
            self.repository.commit_schedule(plan.assignments())
        return plan

    def add_dependency(self, dependent_id: str, blocker_id: str) -> BlockingEdge:
        """Persist ``dependent depends on blocker`` unless it would close a cycle."""
        if dependent_id == blocker_id:
            raise InvalidReferenceError(dependent_id, blocker_id)
        items, edges = self.repository.load_snapshot()
        known = {i.id for i in items}
        for ref in (dependent_id, blocker_id):
            if ref not in known:
                raise InvalidReferenceError(dependent_id if ref == blocker_id else blocker_id, ref)

        edge = BlockingEdge(dependent_id=dependent_id, blocker_id=blocker_id)
        if edge in edges:
            return edge

        # terminal items still count here: reopening one must not expose a cycle
        graph = build_graph(items, edges)
        cycle = would_create_cycle(graph, dependent_id, blocker_id)
        if cycle is not None:
            raise CycleError(cycle, f"Adding {dependent_id} <- {blocker_id} would create a cycle: " + " -> ".join(cycle))

        self.repository.add_edge(edge)
        logger.changes("%s now depends on %s", dependent_id, blocker_id)
        return edge

    def remove_dependency(self, dependent_id: str, blocker_id: str) -> bool:
        removed = self.repository.remove_edge(BlockingEdge(dependent_id=dependent_id, blocker_id=blocker_id))
        if removed:
            logger.changes("%s no longer depends on %s", dependent_id, blocker_id)
        return removed
