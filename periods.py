from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Union

from models import IntervalKind
from recurrence import (
    BIWEEKLY_DAYS,
    InvalidFrequency,
    days_in_month,
    local_today,
    to_calendar_date,
)

# Weeks start on Monday (date.weekday() == 0).
WEEK_START = 0


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end


def _coerce_interval(value: Union[IntervalKind, str]) -> IntervalKind:
    if isinstance(value, IntervalKind):
        return value
    try:
        return IntervalKind(str(value).strip().lower())
    except ValueError as exc:
        raise InvalidFrequency(f"Unsupported interval: {value!r}") from exc


def _month_end(day: date) -> date:
    return day.replace(day=days_in_month(day.year, day.month))


def _days_after(day: date, days: int) -> date:
    # windows at the end of the calendar stop at date.max
    try:
        return day + timedelta(days=days)
    except OverflowError:
        return date.max


def window_for(
    interval: Union[IntervalKind, str],
    reference: Optional[Union[date, datetime, str]] = None,
) -> Period:
    """Inclusive calendar window of the period containing ``reference``.

    Biweekly windows run from the start of the current week through the day
    two weeks later.
    """
    kind = _coerce_interval(interval)
    today = local_today() if reference is None else to_calendar_date(reference)

    if kind in (IntervalKind.weekly, IntervalKind.biweekly):
        week_start = today - timedelta(days=(today.weekday() - WEEK_START) % 7)
        if kind == IntervalKind.weekly:
            return Period(kind.value, week_start, _days_after(week_start, 6))
        return Period(kind.value, week_start, _days_after(week_start, BIWEEKLY_DAYS))
    if kind == IntervalKind.monthly:
        return Period(kind.value, today.replace(day=1), _month_end(today))
    return Period(kind.value, date(today.year, 1, 1), date(today.year, 12, 31))

