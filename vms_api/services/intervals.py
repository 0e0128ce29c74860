# vms_api/services/intervals.py
"""
Pure time-window checks used at assignment time.

Windows are half-open [start, end): a shift ending at 13:00 and one starting at
13:00 do not overlap. A window missing either bound cannot prove anything and
is reported as MISSING_WINDOW_DATA instead of silently passing.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

DEFAULT_DAILY_HOURS_LIMIT = 12.0


class CheckOutcome(str, enum.Enum):
    CLEAR = "clear"
    CONFLICT = "conflict"
    MISSING_WINDOW_DATA = "missing_window_data"


@dataclass(frozen=True)
class TimeWindow:
    start: Optional[datetime]
    end: Optional[datetime]
    ref: Optional[int] = None  # shift id the window came from

    @classmethod
    def of(cls, shift) -> "TimeWindow":
        return cls(getattr(shift, "start_at", None), getattr(shift, "end_at", None), getattr(shift, "id", None))

    @property
    def is_complete(self) -> bool:
        return self.start is not None and self.end is not None

    @property
    def duration_hours(self) -> float:
        if not self.is_complete:
            return 0.0
        return (self.end - self.start).total_seconds() / 3600.0

    def overlaps(self, other: "TimeWindow") -> bool:
        if not (self.is_complete and other.is_complete):
            return False
        return self.start < other.end and other.start < self.end


def find_overlap(candidate: TimeWindow, committed: Iterable[TimeWindow]) -> Optional[TimeWindow]:
    """First committed window intersecting the candidate, or None."""
    for w in committed:
        if candidate.overlaps(w):
            return w
    return None


def classify_overlap(candidate: TimeWindow, committed: Iterable[TimeWindow]) -> CheckOutcome:
    if not candidate.is_complete:
        return CheckOutcome.MISSING_WINDOW_DATA
    if find_overlap(candidate, committed) is not None:
        return CheckOutcome.CONFLICT
    return CheckOutcome.CLEAR


def has_overlap(candidate: TimeWindow, committed: Iterable[TimeWindow]) -> bool:
    return classify_overlap(candidate, committed) is CheckOutcome.CONFLICT


# ---------- daily hour cap ----------

def day_bounds(ts: datetime) -> tuple[datetime, datetime]:
    """Local midnight of ts and the following midnight."""
    start = datetime.combine(ts.date(), datetime.min.time(), tzinfo=ts.tzinfo)
    return start, start + timedelta(days=1)


def committed_hours_on_day(day_of: datetime, committed: Iterable[TimeWindow]) -> float:
    """
    Sum of committed durations that lie wholly inside the calendar day of
    `day_of`. Windows crossing either midnight are left out entirely, not
    pro-rated.
    """
    day_start, next_day = day_bounds(day_of)
    total = 0.0
    for w in committed:
        if not w.is_complete:
            continue
        if w.start >= day_start and w.end < next_day:
            total += w.duration_hours
    return total


def classify_daily_cap(
    candidate: TimeWindow,
    committed: Iterable[TimeWindow],
    cap_hours: float = DEFAULT_DAILY_HOURS_LIMIT,
) -> CheckOutcome:
    if not candidate.is_complete:
        return CheckOutcome.MISSING_WINDOW_DATA
    total = committed_hours_on_day(candidate.start, committed) + candidate.duration_hours
    if total > cap_hours:
        return CheckOutcome.CONFLICT
    return CheckOutcome.CLEAR


def would_exceed_daily_cap(
    candidate: TimeWindow,
    committed: Iterable[TimeWindow],
    cap_hours: float = DEFAULT_DAILY_HOURS_LIMIT,
) -> bool:
    return classify_daily_cap(candidate, committed, cap_hours) is CheckOutcome.CONFLICT


def worked_hours(checked_in_at: datetime, checked_out_at: datetime) -> float:
    """Elapsed hours rounded to 2 decimals, never negative."""
    secs = (checked_out_at - checked_in_at).total_seconds()
    return round(max(secs, 0.0) / 3600.0, 2)
