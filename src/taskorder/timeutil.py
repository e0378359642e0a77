"""Timezone and clock helpers shared by the scorer and the calendar."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_OFFSET_RE = re.compile(r"^([+-])(\d{2}):?(\d{2})$")


def resolve_tz(name: str | None) -> tzinfo | None:
    """Resolve a zone name into a tzinfo; None or "" means no zone.

    Accepts "UTC"/"Z", IANA names and fixed offsets such as "+02:00".
    Raises ValueError for anything else.
    """
    if not name:
        return None
    s = name.strip()
    if s.upper() in {"UTC", "Z", "GMT"}:
        return timezone.utc

    m = _OFFSET_RE.match(s)
    if m:
        sign, hh, mm = m.group(1), int(m.group(2)), int(m.group(3))
        if hh > 23 or mm > 59:
            raise ValueError(f"Invalid timezone offset: {s!r}")
        minutes = hh * 60 + mm
        return timezone(timedelta(minutes=minutes if sign == "+" else -minutes))

    try:
        return ZoneInfo(s)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Invalid timezone identifier: {s!r}") from e


def localize(dt: datetime, tz: tzinfo | None) -> datetime:
    """Express *dt* in *tz*; naive datetimes are taken to already be in it."""
    if tz is None:
        return dt
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def align(dt: datetime, like: datetime) -> datetime:
    """Make *dt* comparable with *like* (both naive or both aware)."""
    if like.tzinfo is None:
        if dt.tzinfo is None:
            return dt
        return dt.astimezone().replace(tzinfo=None)
    return localize(dt, like.tzinfo)


def round_up_quarter_hour(dt: datetime) -> datetime:
    """Round up to the next 15-minute boundary; exact boundaries stay put."""
    base = dt.replace(second=0, microsecond=0)
    if base != dt:
        base += timedelta(minutes=1)
    remainder = base.minute % 15
    if remainder:
        base += timedelta(minutes=15 - remainder)
    return base
