"""Dependency-aware task ordering and calendar scheduling."""

from taskorder.config import EngineConfig, Weights, WorkingHours
from taskorder.errors import ConfigurationError, CycleError, EngineError, InvalidReferenceError
from taskorder.models import (
    BlockingEdge,
    ItemFilter,
    ItemStatus,
    OrderingResult,
    Priority,
    SchedulePlan,
    ScheduledSlot,
    ScoreComponents,
    WorkItem,
)
from taskorder.ordering import next_items, order_items
from taskorder.scheduler import ScheduleMode, plan_calendar, plan_schedule

__all__ = [
    "BlockingEdge",
    "ConfigurationError",
    "CycleError",
    "EngineConfig",
    "EngineError",
    "InvalidReferenceError",
    "ItemFilter",
    "ItemStatus",
    "OrderingResult",
    "Priority",
    "ScheduleMode",
    "SchedulePlan",
    "ScheduledSlot",
    "ScoreComponents",
    "Weights",
    "WorkItem",
    "WorkingHours",
    "next_items",
    "order_items",
    "plan_calendar",
    "plan_schedule",
]
