"""Weekly ordering calendar.

Orders cover one Monday..Sunday week. A week's cutoff is the day before it
starts (Sunday) at CUTOFF_HOUR:CUTOFF_MINUTE in ORDER_TIMEZONE. Every function
here is pure: callers pass the reference instant, nothing reads the clock.

Ordering window rule: the window offered at instant ``t`` is the earliest
Monday strictly after t's local date whose cutoff is still ahead of (or equal
to) ``t``. Up to Sunday noon that is the coming Monday; from Sunday noon on it
is the Monday after.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from residentmeals.utilities.config import ORDER_TIMEZONE, CUTOFF_HOUR, CUTOFF_MINUTE

DAYS_PER_WEEK = 7


@dataclass(frozen=True)
class OrderingWindow:
    week_start: date
    week_end: date
    cutoff: datetime

    def to_dict(self):
        return {
            "weekStartDate": self.week_start.isoformat(),
            "weekEndDate": self.week_end.isoformat(),
            "deadline": self.cutoff.isoformat(),
        }


def _zone(tz) -> ZoneInfo:
    return tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz or ORDER_TIMEZONE)


def _require_aware(instant: datetime) -> None:
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ValueError("reference instant must be timezone-aware")


def is_monday(d: date) -> bool:
    return d.isoweekday() == 1


def week_end_for(week_start: date) -> date:
    return week_start + timedelta(days=DAYS_PER_WEEK - 1)


def monday_of(d: date) -> date:
    """Monday of the calendar week containing ``d``."""
    return d - timedelta(days=d.weekday())


def cutoff_for_week(week_start: date, tz=None, hour: int = CUTOFF_HOUR, minute: int = CUTOFF_MINUTE) -> datetime:
    """Cutoff instant for the week starting at ``week_start`` (must be a Monday)."""
    if not is_monday(week_start):
        raise ValueError(f"week start {week_start.isoformat()} is not a Monday")
    sunday_before = week_start - timedelta(days=1)
    return datetime.combine(sunday_before, time(hour, minute), tzinfo=_zone(tz))


def is_past_cutoff(week_start: date, now: datetime, tz=None) -> bool:
    """True once ``now`` is strictly after the week's cutoff."""
    _require_aware(now)
    return now > cutoff_for_week(week_start, tz)


def next_ordering_window(reference_instant: datetime, tz=None) -> OrderingWindow:
    """Return the week a new order placed at ``reference_instant`` should cover."""
    _require_aware(reference_instant)
    zone = _zone(tz)
    local_date = reference_instant.astimezone(zone).date()
    week_start = monday_of(local_date) + timedelta(days=DAYS_PER_WEEK)
    cutoff = cutoff_for_week(week_start, zone)
    if reference_instant > cutoff:
        week_start += timedelta(days=DAYS_PER_WEEK)
        cutoff = cutoff_for_week(week_start, zone)
    return OrderingWindow(week_start, week_end_for(week_start), cutoff)


__all__ = [
    "OrderingWindow", "is_monday", "week_end_for", "monday_of",
    "cutoff_for_week", "is_past_cutoff", "next_ordering_window",
]
