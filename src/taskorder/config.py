"""Engine configuration: score weights, working hours and capacity."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, time, tzinfo
from taskorder.errors import ConfigurationError
from taskorder.timeutil import resolve_tz

_CLOCK_RE = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


def parse_clock(value: str, field_name: str = "working_hours") -> time:
    """Parse an ``HH:MM`` string into a ``time``."""
    m = _CLOCK_RE.match(value.strip())
    if not m:
        raise ConfigurationError(field_name, f"expected HH:MM, got {value!r}")
    return time(int(m.group(1)), int(m.group(2)))


def _pick(d: dict, *keys: str, default=None):
    """Return the first key present in *d* (snake_case or the older camelCase)."""
    for k in keys:
        if k in d and d[k] is not None:
            return d[k]
    return default


@dataclass
class Weights:
    """Weights for urgency, priority, blocking impact and quick win."""

    urgency: float = 0.45
    priority: float = 0.35
    blocking: float = 0.15
    quick_win: float = 0.05

    def to_dict(self) -> dict:
        return {"U": self.urgency, "P": self.priority, "B": self.blocking, "Q": self.quick_win}

    @classmethod
    def from_dict(cls, d: dict) -> Weights:
        return cls(
            urgency=float(_pick(d, "U", "urgency", default=0.45)),
            priority=float(_pick(d, "P", "priority", default=0.35)),
            blocking=float(_pick(d, "B", "blocking", default=0.15)),
            quick_win=float(_pick(d, "Q", "quick_win", "quickWin", default=0.05)),
        )


@dataclass
class WorkingHours:
    start: str = "09:00"
    end: str = "17:30"
    timezone: str | None = None

    @property
    def start_time(self) -> time:
        return parse_clock(self.start, "working_hours.start")

    @property
    def end_time(self) -> time:
        return parse_clock(self.end, "working_hours.end")

    @property
    def tz(self) -> tzinfo | None:
        try:
            return resolve_tz(self.timezone)
        except ValueError as e:
            raise ConfigurationError("working_hours.timezone", f"unknown timezone {self.timezone!r}") from e

    def validate(self) -> None:
        if self.end_time <= self.start_time:
            raise ConfigurationError(
                "working_hours", f"end {self.end} must be after start {self.start}"
            )
        _ = self.tz  # raises on unknown zone

    def to_dict(self) -> dict:
        d = {"start": self.start, "end": self.end}
        if self.timezone:
            d["timezone"] = self.timezone
        return d

    @classmethod
    def from_dict(cls, d: dict) -> WorkingHours:
        return cls(
            start=d.get("start", "09:00"),
            end=d.get("end", "17:30"),
            timezone=d.get("timezone"),
        )

    @classmethod
    def from_range(cls, value: str, timezone: str | None = None) -> WorkingHours:
        """Build from a ``"09:00-17:30"`` range string."""
        try:
            start, end = (part.strip() for part in value.split("-"))
        except ValueError as e:
            raise ConfigurationError("working_hours", f"expected HH:MM-HH:MM, got {value!r}") from e
        return cls(start=start, end=end, timezone=timezone)


@dataclass
class EngineConfig:
    """All options recognized by the ordering and calendar schedulers."""

    weights: Weights = field(default_factory=Weights)
    horizon_hours: float = 168.0
    overdue_boost: float = 0.20
    quick_win_cap_minutes: int = 30
    working_hours: WorkingHours = field(default_factory=WorkingHours)
    start_instant: datetime | None = None  # None means "now" at call time
    daily_capacity_minutes: int = 480
    commit: bool = False
    skip_weekends: bool = False

    def validate(self) -> EngineConfig:
        """Raise ConfigurationError on the first malformed option."""
        self.working_hours.validate()
        if self.daily_capacity_minutes <= 0:
            raise ConfigurationError("daily_capacity_minutes", "must be positive")
        if self.horizon_hours <= 0:
            raise ConfigurationError("horizon_hours", "must be positive")
        if self.quick_win_cap_minutes <= 0:
            raise ConfigurationError("quick_win_cap_minutes", "must be positive")
        if self.overdue_boost < 0:
            raise ConfigurationError("overdue_boost", "must not be negative")
        for name, value in self.weights.to_dict().items():
            if value < 0:
                raise ConfigurationError(f"weights.{name}", "must not be negative")
        return self

    def resolve_start(self, now: datetime | None = None) -> datetime:
        if self.start_instant is not None:
            return self.start_instant
        return now if now is not None else datetime.now(self.working_hours.tz)

    def to_dict(self) -> dict:
        d = {
            "weights": self.weights.to_dict(),
            "horizon_hours": self.horizon_hours,
            "overdue_boost": self.overdue_boost,
            "quick_win_cap_minutes": self.quick_win_cap_minutes,
            "working_hours": self.working_hours.to_dict(),
            "daily_capacity_minutes": self.daily_capacity_minutes,
            "commit": self.commit,
            "skip_weekends": self.skip_weekends,
        }
        if self.start_instant is not None:
            d["start_instant"] = self.start_instant.isoformat()
        return d

    @classmethod
    def from_dict(cls, d: dict) -> EngineConfig:
        """Build a config from a stored dict or an API-style payload.

        Both snake_case keys and the camelCase names of the HTTP API
        (``horizonHours``, ``quickWinCapMins``, ``dailyCapacity`` ...) are accepted.
        """
        for name, keys in (("weights", ("weights",)), ("working_hours", ("working_hours", "workingHours"))):
            nested = _pick(d, *keys)
            if nested is not None and not isinstance(nested, dict):
                raise ConfigurationError(name, f"expected an object, got {type(nested).__name__}")
        start = _pick(d, "start_instant", "startInstant", "startDate")
        if isinstance(start, str):
            try:
                start = datetime.fromisoformat(start)
            except ValueError as e:
                raise ConfigurationError("start_instant", f"not an ISO timestamp: {start!r}") from e
        try:
            return cls(
                weights=Weights.from_dict(d.get("weights") or {}),
                horizon_hours=float(_pick(d, "horizon_hours", "horizonHours", default=168.0)),
                overdue_boost=float(_pick(d, "overdue_boost", "overdueBoost", default=0.20)),
                quick_win_cap_minutes=int(
                    _pick(d, "quick_win_cap_minutes", "quickWinCapMinutes", "quickWinCapMins", default=30)
                ),
                working_hours=WorkingHours.from_dict(_pick(d, "working_hours", "workingHours", default={})),
                start_instant=start,
                daily_capacity_minutes=int(
                    _pick(d, "daily_capacity_minutes", "dailyCapacityMinutes", "dailyCapacity", default=480)
                ),
                commit=bool(d.get("commit", False)),
                skip_weekends=bool(_pick(d, "skip_weekends", "skipWeekends", default=False)),
            )
        except (AttributeError, TypeError, ValueError) as e:
            raise ConfigurationError("config", str(e)) from e
