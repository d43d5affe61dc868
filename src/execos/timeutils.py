"""Date math for reporting windows.

Every window is UTC. Weeks start on Monday, months on the 1st.
Nothing here touches the store — these are pure functions.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Sequence

from execos.errors import ValidationError
from execos.models import ReviewPeriodType


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_date(value: str | date | None, default: date | None = None) -> date:
    """Parse an ISO ``YYYY-MM-DD`` string. ``None`` falls back to *default* (or today, UTC)."""
    if value is None:
        return default or utcnow().date()
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid date (expected YYYY-MM-DD): {value!r}") from None


def to_date_key(value: date | datetime) -> str:
    if isinstance(value, datetime):
        return ensure_utc(value).date().isoformat()
    return value.isoformat()


def start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def end_of_day(d: date) -> datetime:
    return datetime.combine(d, time.max, tzinfo=timezone.utc)


def start_of_week(d: date | datetime) -> date:
    """Monday of the week containing *d*."""
    if isinstance(d, datetime):
        d = ensure_utc(d).date()
    return d - timedelta(days=d.weekday())


def start_of_month(d: date | datetime) -> date:
    if isinstance(d, datetime):
        d = ensure_utc(d).date()
    return d.replace(day=1)


def week_range(week_start: date) -> tuple[datetime, datetime]:
    """Monday 00:00 through Sunday 23:59:59.999999."""
    return start_of_day(week_start), end_of_day(week_start + timedelta(days=6))


def month_range(month_start: date) -> tuple[datetime, datetime]:
    if month_start.month == 12:
        next_month = month_start.replace(year=month_start.year + 1, month=1, day=1)
    else:
        next_month = month_start.replace(month=month_start.month + 1, day=1)
    return start_of_day(month_start), end_of_day(next_month - timedelta(days=1))


def normalize_period_start(period_type: ReviewPeriodType, value: str | date | None = None) -> date:
    d = parse_date(value)
    if period_type == ReviewPeriodType.MONTHLY:
        return start_of_month(d)
    return start_of_week(d)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from *start* to *end*, never negative."""
    delta = (ensure_utc(end) - ensure_utc(start)).total_seconds() / 60.0
    return max(0, round_half_up(delta))


def overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open intervals: touching ends do not overlap."""
    return a_start < b_end and b_start < a_end


def in_range(value: datetime | None, start: datetime, end: datetime) -> bool:
    """Inclusive on both ends. ``None`` is never in range."""
    if value is None:
        return False
    return start <= ensure_utc(value) <= end


def same_calendar_day(a: datetime, b: datetime) -> bool:
    return ensure_utc(a).date() == ensure_utc(b).date()


def clamp_percent(value: float) -> int:
    """Round to the nearest integer and clamp to [0, 100]."""
    if not math.isfinite(value):
        return 0
    return max(0, min(100, round_half_up(value)))


def percent_of(part: float, total: float) -> int:
    """Share of *total* as a clamped percent; 0 when there is no total."""
    if not total:
        return 0
    return clamp_percent(part / total * 100)


def apportion_percents(values: Sequence[float], total: float | None = None) -> list[int]:
    """Integer shares of *total* (default: sum of *values*) that never sum past 100.

    Largest remainder: floor every share, then hand the leftover points to the
    biggest fractional parts, earlier entries first on a tie. When *total* is
    larger than the values' sum, the gap keeps its own share and is dropped.
    """
    if total is None:
        total = sum(values)
    if not total or total <= 0:
        return [0 for _ in values]

    parts = list(values)
    rest = total - sum(parts)
    if rest > 0:
        parts.append(rest)

    shares = [max(0.0, part) / total * 100 for part in parts]
    result = [math.floor(share) for share in shares]
    leftover = 100 - sum(result)
    by_remainder = sorted(range(len(shares)), key=lambda i: (-(shares[i] - result[i]), i))
    for i in by_remainder[: max(0, leftover)]:
        result[i] += 1
    return [min(100, share) for share in result[: len(values)]]


def round_hours(minutes: float) -> float:
    return round(minutes / 60.0, 1)
