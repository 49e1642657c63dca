"""
services/scheduling.py
─────────────────────────────────────────────────────────────────────
Pure court-scheduling rules: overlap, cancellation window, refunds,
open slots and recurrence expansion. No database access here.
"""
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

from ..constants import COURT_CLOSE_HOUR, COURT_OPEN_HOUR

CANCELLATION_NOTICE = timedelta(hours=24)
FULL_REFUND_NOTICE  = timedelta(hours=48)

RECURRENCE_HARD_CAP        = 100
DEFAULT_MAX_OCCURRENCES    = 10

Interval = Tuple[datetime, datetime]


def overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    """Half-open intervals: touching ends do not overlap."""
    return start < other_end and end > other_start


def hours_between(start: datetime, end: datetime) -> Decimal:
    seconds = Decimal((end - start).total_seconds())
    return (seconds / Decimal(3600)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def can_cancel(status: str, start: datetime, now: datetime) -> bool:
    return status == "confirmed" and start - now >= CANCELLATION_NOTICE


def refund_percentage(start: datetime, now: datetime) -> int:
    notice = start - now
    if notice >= FULL_REFUND_NOTICE:
        return 100
    if notice >= CANCELLATION_NOTICE:
        return 50
    return 0


def refund_amount(paid: Decimal, start: datetime, now: datetime) -> Decimal:
    pct = Decimal(refund_percentage(start, now))
    return (Decimal(paid) * pct / Decimal(100)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# ────────────────────────────────────────────────────────────────────
#  Open slots
# ────────────────────────────────────────────────────────────────────

@dataclass
class Slot:
    start: datetime
    end:   datetime

    def as_dict(self) -> dict:
        return {
            "start_time": self.start.isoformat(),
            "end_time":   self.end.isoformat(),
            "time":       self.start.strftime("%H:%M"),
        }


def available_slots(
    day: date,
    duration_hours: int,
    booked: Iterable[Interval],
    tzinfo,
    now: Optional[datetime] = None,
) -> List[Slot]:
    """
    Hourly slot starts from opening time while the slot still ends by
    closing time. Slots overlapping a booking, or already started, are dropped.
    """
    booked = list(booked)
    length = timedelta(hours=duration_hours)
    slots: List[Slot] = []
    for hour in range(COURT_OPEN_HOUR, COURT_CLOSE_HOUR - duration_hours + 1):
        start = datetime.combine(day, time(hour=hour), tzinfo=tzinfo)
        end   = start + length
        if now is not None and start <= now:
            continue
        if any(overlaps(start, end, b_start, b_end) for b_start, b_end in booked):
            continue
        slots.append(Slot(start, end))
    return slots


# ────────────────────────────────────────────────────────────────────
#  Recurrence
# ────────────────────────────────────────────────────────────────────

def _add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year  = value.year + month_index // 12
    month = month_index % 12 + 1
    day   = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def recurrence_starts(
    first_start: datetime,
    pattern: str,
    interval: int = 1,
    days_of_week: Sequence[int] = (),
    end_date: Optional[date] = None,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> List[datetime]:
    """
    Expand a recurrence into occurrence start times, first occurrence included.

    pattern      : "daily" | "weekly" | "monthly"
    days_of_week : 0=Sunday … 6=Saturday, weekly only; empty = same weekday
    """
    if pattern not in ("daily", "weekly", "monthly"):
        raise ValueError(f"Unknown recurrence pattern: {pattern}")
    interval = max(int(interval or 1), 1)
    limit    = min(int(max_occurrences or DEFAULT_MAX_OCCURRENCES), RECURRENCE_HARD_CAP)

    def within(value: datetime) -> bool:
        return end_date is None or value.date() <= end_date

    starts: List[datetime] = []

    if pattern == "weekly" and days_of_week:
        # python weekday(): Monday=0 → convert to Sunday=0
        wanted = {int(d) % 7 for d in days_of_week}
        week_start = first_start - timedelta(days=(first_start.weekday() + 1) % 7)
        week = 0
        while len(starts) < limit:
            block = week_start + timedelta(weeks=week * interval)
            if not within(block):
                break
            for offset in range(7):
                candidate = block + timedelta(days=offset)
                if candidate < first_start or offset not in wanted:
                    continue
                if not within(candidate) or len(starts) >= limit:
                    break
                starts.append(candidate)
            week += 1
        return starts

    current = first_start
    step = 0
    while len(starts) < limit and within(current):
        starts.append(current)
        step += 1
        if pattern == "daily":
            current = first_start + timedelta(days=step * interval)
        elif pattern == "weekly":
            current = first_start + timedelta(weeks=step * interval)
        else:
            current = _add_months(first_start, step * interval)
    return starts
