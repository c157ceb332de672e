"""Countdown and duration helpers shared by the board, list and detail views.

All functions take the current time as epoch milliseconds so that callers
(and tests) decide which clock is authoritative. Nothing in this module
raises on malformed timestamps: bad input degrades to a zero duration or a
``"-"`` label.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional, Tuple, Union

if TYPE_CHECKING:  # pragma: no cover
    from .models import Session

LAST_MINUTES_WARNING = 15
MS_PER_MINUTE = 60_000

TimestampLike = Union[str, datetime, None]

_SQL_TIMESTAMP = re.compile(r"^(\d{4}-\d{2}-\d{2})[ T](\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?)(.*)$")


def parse_timestamp(value: TimestampLike) -> Optional[datetime]:
    """Parse a naive ``YYYY-MM-DD HH:MM:SS`` or ISO-8601 timestamp."""

    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    match = _SQL_TIMESTAMP.match(text)
    if match:
        day, clock, suffix = match.groups()
        suffix = suffix.strip()
        if suffix in {"Z", "z"}:
            suffix = "+00:00"
        text = f"{day}T{clock}{suffix}"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def to_epoch_ms(value: TimestampLike) -> Optional[int]:
    """Return ``value`` as epoch milliseconds; naive values are local time."""

    moment = parse_timestamp(value)
    if moment is None:
        return None
    try:
        return int(moment.timestamp() * 1000)
    except (OverflowError, OSError, ValueError):
        return None


def _finite(value: Union[int, float, None]) -> bool:
    return value is not None and not isinstance(value, bool) and math.isfinite(value)


def remaining_ms(now_ms: int, end_ms: int) -> int:
    """Milliseconds left until ``end_ms``, clamped at zero."""

    if not (_finite(now_ms) and _finite(end_ms)):
        return 0
    return int(max(end_ms - now_ms, 0))


def elapsed_minutes(start: TimestampLike, end: TimestampLike, now_ms: int) -> int:
    """Whole minutes from ``start`` until ``end`` (or ``now_ms`` while open)."""

    start_ms = to_epoch_ms(start)
    if start_ms is None:
        return 0
    if end is None or end == "":
        end_ms: Optional[int] = int(now_ms) if _finite(now_ms) else None
    else:
        end_ms = to_epoch_ms(end)
    if end_ms is None:
        return 0
    return max((end_ms - start_ms) // MS_PER_MINUTE, 0)


def session_duration_minutes(session: "Session", now_ms: int) -> int:
    """Duration of ``session``; the persisted value wins once completed."""

    if session.is_completed and session.duration_minutes is not None:
        return max(int(session.duration_minutes), 0)
    return elapsed_minutes(session.start_time, session.end_time, now_ms)


def format_clock(ms: Union[int, float]) -> str:
    if not _finite(ms) or ms <= 0:
        return "00:00:00"
    total_seconds = int(ms // 1000)
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_duration(minutes: Union[int, float]) -> str:
    """Render minutes as ``"2 h"``, ``"2 h 5 min"`` or ``"45 min"``."""

    if not _finite(minutes) or minutes <= 0:
        return "0 min"
    hours, mins = divmod(int(minutes), 60)
    if hours <= 0:
        return f"{mins} min"
    if mins == 0:
        return f"{hours} h"
    return f"{hours} h {mins} min"


def format_time_label(value: TimestampLike) -> str:
    """Local ``HH:MM`` label for a timestamp, ``"-"`` when missing."""

    moment = parse_timestamp(value)
    if moment is None:
        return "-"
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.strftime("%H:%M")


@dataclass(frozen=True, slots=True)
class Countdown:
    """Snapshot of a countdown at one instant."""

    remaining_ms: int
    finished: bool
    near_expiry: bool

    @property
    def remaining_minutes(self) -> int:
        return self.remaining_ms // MS_PER_MINUTE

    @property
    def clock(self) -> str:
        return format_clock(self.remaining_ms)

    @property
    def state(self) -> str:
        if self.finished:
            return "finished"
        if self.near_expiry:
            return "warning"
        return "running"


def countdown(planned_end: TimestampLike, now_ms: int) -> Countdown:
    """Countdown towards ``planned_end`` as seen from ``now_ms``.

    ``finished`` is derived from the local clock only; the server may not
    have flipped the row to ``completed`` yet. A missing or unparseable end
    counts as finished.
    """

    end_ms = to_epoch_ms(planned_end)
    left = remaining_ms(now_ms, end_ms) if end_ms is not None else 0
    finished = left <= 0
    near = not finished and left <= LAST_MINUTES_WARNING * MS_PER_MINUTE
    return Countdown(remaining_ms=left, finished=finished, near_expiry=near)


def is_near_expiry(planned_end: TimestampLike, now_ms: int) -> bool:
    return countdown(planned_end, now_ms).near_expiry


def plan_session_end(
    start: datetime,
    *,
    default_minutes: int = 120,
    close_hour: int = 20,
) -> Tuple[datetime, int]:
    """Planned end for a session starting at ``start``.

    The standard duration is capped at closing time on the start day.
    Returns the planned end and the effective minutes (never negative).
    """

    planned = start + timedelta(minutes=default_minutes)
    closing = start.replace(hour=close_hour, minute=0, second=0, microsecond=0)
    final_end = min(planned, closing)
    minutes = max(round((final_end - start).total_seconds() / 60), 0)
    return final_end, int(minutes)


def format_wire_timestamp(moment: datetime) -> str:
    """Format ``moment`` the way the API stores it (naive local)."""

    if moment.tzinfo is not None:
        moment = moment.astimezone().replace(tzinfo=None)
    return moment.strftime("%Y-%m-%d %H:%M:%S")


__all__ = [
    "Countdown",
    "LAST_MINUTES_WARNING",
    "MS_PER_MINUTE",
    "countdown",
    "elapsed_minutes",
    "format_clock",
    "format_duration",
    "format_time_label",
    "format_wire_timestamp",
    "is_near_expiry",
    "parse_timestamp",
    "plan_session_end",
    "remaining_ms",
    "session_duration_minutes",
    "to_epoch_ms",
]
