"""Work item, edge and result records exchanged with the engine."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime

from taskorder.errors import ConfigurationError


class ItemStatus(enum.StrEnum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.COMPLETED, ItemStatus.CANCELED)


class Priority(enum.StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @classmethod
    def parse(cls, value: str) -> Priority:
        """Accept "high" as well as the title-cased "High" used by older exports."""
        return cls(value.lower())


_PRIORITY_RANK = {Priority.LOW: 0, Priority.MEDIUM: 1, Priority.HIGH: 2}


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


@dataclass
class WorkItem:
    """Read-only snapshot of a single task as seen by the engine."""

    id: str
    duration_minutes: int = 0
    priority: Priority = Priority.MEDIUM
    due_at: datetime | None = None
    parent_id: str | None = None
    status: ItemStatus = ItemStatus.TODO
    created_at: datetime = field(default_factory=datetime.now)
    title: str = ""
    scheduled_start: datetime | None = None  # written by the commit step only
    scheduled_end: datetime | None = None

    def __post_init__(self):
        if self.duration_minutes < 0:
            raise ValueError(f"Item {self.id}: duration_minutes must be >= 0, got {self.duration_minutes}")

    @property
    def is_active(self) -> bool:
        return not self.status.is_terminal

    def to_dict(self) -> dict:
        d = {
            "title": self.title,
            "duration_minutes": self.duration_minutes,
            "priority": self.priority.value,
            "due_at": _iso(self.due_at),
            "parent_id": self.parent_id,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }
        if self.scheduled_start is not None:
            d["scheduled_start"] = _iso(self.scheduled_start)
            d["scheduled_end"] = _iso(self.scheduled_end)
        return d

    @classmethod
    def from_dict(cls, item_id: str, d: dict) -> WorkItem:
        return cls(
            id=item_id,
            title=d.get("title", ""),
            duration_minutes=int(d.get("duration_minutes", 0)),
            priority=Priority.parse(d.get("priority", "medium")),
            due_at=_parse_dt(d.get("due_at")),
            parent_id=d.get("parent_id"),
            status=ItemStatus(d.get("status", "todo")),
            created_at=_parse_dt(d.get("created_at")) or datetime.now(),
            scheduled_start=_parse_dt(d.get("scheduled_start")),
            scheduled_end=_parse_dt(d.get("scheduled_end")),
        )


@dataclass(frozen=True)
class ItemFilter:
    """Narrows which active items a run considers. Unset fields match anything."""

    status: ItemStatus | None = None
    priority: Priority | None = None
    parent_id: str | None = None
    query: str | None = None  # case-insensitive title substring

    def matches(self, item: WorkItem) -> bool:
        if self.status is not None and item.status != self.status:
            return False
        if self.priority is not None and item.priority != self.priority:
            return False
        if self.parent_id is not None and item.parent_id != self.parent_id:
            return False
        if self.query and self.query.lower() not in item.title.lower():
            return False
        return True

    def to_dict(self) -> dict:
        return {
            "status": self.status.value if self.status else None,
            "priority": self.priority.value if self.priority else None,
            "parent_id": self.parent_id,
            "q": self.query,
        }

    @classmethod
    def from_dict(cls, d: dict) -> ItemFilter:
        """Parse a filter payload; accepts ``parentId`` and ``q`` as well."""
        if not isinstance(d, dict):
            raise ConfigurationError("filter", f"expected an object, got {type(d).__name__}")
        status = d.get("status")
        priority = d.get("priority")
        try:
            return cls(
                status=ItemStatus(status) if status else None,
                priority=Priority.parse(priority) if priority else None,
                parent_id=d.get("parent_id", d.get("parentId")),
                query=d.get("q", d.get("query")),
            )
        except (AttributeError, ValueError) as e:
            raise ConfigurationError("filter", str(e)) from e


@dataclass(frozen=True)
class BlockingEdge:
    """``dependent_id`` cannot become ready until ``blocker_id`` is complete."""

    dependent_id: str
    blocker_id: str

    def to_dict(self) -> dict:
        return {"dependent": self.dependent_id, "blocker": self.blocker_id}

    @classmethod
    def from_dict(cls, d: dict) -> BlockingEdge:
        return cls(dependent_id=d["dependent"], blocker_id=d["blocker"])


@dataclass(frozen=True)
class ScoreComponents:
    """Normalized score parts for one item plus the weighted total."""

    urgency: float
    priority: float
    blocking: float
    quick_win: float
    score: float

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "urgency": self.urgency,
            "priority": self.priority,
            "blocking": self.blocking,
            "quick_win": self.quick_win,
        }


@dataclass
class OrderingResult:
    ordered_ids: list[str] = field(default_factory=list)
    scores: dict[str, ScoreComponents] = field(default_factory=dict)
    cycle: list[str] | None = None

    @property
    def has_cycle(self) -> bool:
        return self.cycle is not None

    def to_dict(self) -> dict:
        return {
            "ordered_ids": list(self.ordered_ids),
            "scores": {iid: s.to_dict() for iid, s in self.scores.items()},
            "cycle": self.cycle,
        }


@dataclass
class SlotConstraints:
    blockers: list[str] = field(default_factory=list)
    due_violation: bool = False
    notes: list[str] = field(default_factory=list)


@dataclass
class ScheduledSlot:
    """A concrete calendar placement for one item."""

    item_id: str
    start: datetime
    end: datetime
    constraints: SlotConstraints = field(default_factory=SlotConstraints)

    @property
    def duration_minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "constraints": {
                "blockers": list(self.constraints.blockers),
                "due_violation": self.constraints.due_violation,
                "notes": list(self.constraints.notes),
            },
        }


@dataclass
class ScheduleSummary:
    total_planned_minutes: int = 0
    unplaced_count: int = 0
    violation_count: int = 0

    def to_dict(self) -> dict:
        return {
            "total_planned_minutes": self.total_planned_minutes,
            "unplaced_count": self.unplaced_count,
            "violation_count": self.violation_count,
        }


@dataclass
class SchedulePlan:
    slots: list[ScheduledSlot] = field(default_factory=list)
    summary: ScheduleSummary = field(default_factory=ScheduleSummary)

    def slot_for(self, item_id: str) -> ScheduledSlot | None:
        return next((s for s in self.slots if s.item_id == item_id), None)

    def assignments(self) -> list[tuple[str, datetime, datetime]]:
        """(id, start, end) triples in the shape the commit step persists."""
        return [(s.item_id, s.start, s.end) for s in self.slots]

    def to_dict(self) -> dict:
        return {
            "slots": [s.to_dict() for s in self.slots],
            "summary": self.summary.to_dict(),
        }
