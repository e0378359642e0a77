"""Priority score for a single work item."""

from __future__ import annotations

import math
from datetime import datetime

from taskorder.config import EngineConfig
from taskorder.models import Priority, ScoreComponents, WorkItem
from taskorder.timeutil import align

PRIORITY_VALUE = {Priority.LOW: 0.0, Priority.MEDIUM: 0.5, Priority.HIGH: 1.0}


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def urgency_component(due_at: datetime | None, now: datetime, config: EngineConfig) -> float:
    if due_at is None:
        return 0.0
    due_at = align(due_at, now)
    if due_at <= now:
        return 1.0 + config.overdue_boost
    hours_left = (due_at - now).total_seconds() / 3600
    return 1.0 - _clamp(hours_left / config.horizon_hours, 0.0, 1.0)


def blocking_component(depth: int, max_depth: int) -> float:
    if max_depth <= 0:
        return 0.0
    return depth / max_depth


def quick_win_component(duration_minutes: int, config: EngineConfig) -> float:
    cap = config.quick_win_cap_minutes
    return 1.0 - _clamp(duration_minutes, 1, cap) / cap


def score_item(
    item: WorkItem,
    now: datetime,
    config: EngineConfig,
    depth: int = 0,
    max_depth: int = 0,
) -> ScoreComponents:
    """Score one item. Pure: same arguments, same result."""
    u = urgency_component(item.due_at, now, config)
    p = PRIORITY_VALUE[item.priority]
    b = blocking_component(depth, max_depth)
    q = quick_win_component(item.duration_minutes, config)
    w = config.weights
    return ScoreComponents(
        urgency=u,
        priority=p,
        blocking=b,
        quick_win=q,
        score=w.urgency * u + w.priority * p + w.blocking * b + w.quick_win * q,
    )


def tie_break_key(item: WorkItem) -> tuple[float, int, float, str]:
    """Ascending key used only when two scores are equal; lower wins.

    Earlier due date, then higher priority, then shorter duration (zero or
    unset durations sort last), then id.
    """
    due = item.due_at.timestamp() if item.due_at is not None else math.inf
    duration = item.duration_minutes if item.duration_minutes > 0 else math.inf
    return (due, -item.priority.rank, duration, item.id)
