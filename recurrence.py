"""Recurrence resolution for incomes and expenses.

Recurring transactions are stored once, as an anchor date plus a frequency.
Every later occurrence is computed on read: ``next_occurrence`` answers
"when does this happen next" and ``expand``/``total_in_interval`` answer
"how much falls inside this window". Nothing here touches the database or
logs; callers hand in plain values (ORM rows or ``Schedule``) and get plain
values back.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Iterator, Optional, Protocol, Union
from zoneinfo import ZoneInfo

from config import get_settings
from models import Frequency

WEEKLY_DAYS = 7
BIWEEKLY_DAYS = 14

DateLike = Union[date, datetime, str]


class InvalidFrequency(ValueError):
    pass


class InvalidDate(ValueError):
    pass


class Recurring(Protocol):
    amount_cents: int
    anchor_date: date
    frequency: Union[Frequency, str]

    @property
    def skipped_dates(self) -> Iterable[date]: ...


@dataclass(frozen=True)
class Schedule:
    amount_cents: int
    anchor_date: date
    frequency: Frequency = Frequency.once
    skipped_dates: frozenset[date] = field(default_factory=frozenset)


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def to_calendar_date(value: DateLike) -> date:
    """Reduce ``value`` to a calendar date in the reference zone.

    Aware datetimes are converted to the configured zone before the date is
    taken; naive datetimes are assumed to already be reference-zone wall time.
    Strings are ISO dates (``2025-01-31``) or ``31.01.2025``.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(ZoneInfo(get_settings().timezone))
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        raw = value.strip()
        try:
            if "T" in raw:
                return to_calendar_date(datetime.fromisoformat(raw))
            return date.fromisoformat(raw)
        except ValueError:
            pass
        try:
            return datetime.strptime(raw, "%d.%m.%Y").date()
        except ValueError as exc:
            raise InvalidDate(f"Invalid date: {value!r}") from exc
    raise InvalidDate(f"Invalid date: {value!r}")


def coerce_frequency(value: Union[Frequency, str]) -> Frequency:
    if isinstance(value, Frequency):
        return value
    normalized = str(value).strip().lower()
    if normalized == "byweekly":
        normalized = "biweekly"
    try:
        return Frequency(normalized)
    except ValueError as exc:
        raise InvalidFrequency(f"Unsupported frequency: {value!r}") from exc


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(base: date, months: int, *, desired_day: Optional[int] = None) -> date:
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1
    day = desired_day or base.day
    return date(year, month, min(day, days_in_month(year, month)))


def add_years(base: date, years: int) -> date:
    try:
        return add_months(base, 12 * years)
    except ValueError:
        return date.max


def step(
    current: date, frequency: Union[Frequency, str], *, anchor_day: Optional[int] = None
) -> date:
    """Return the date one recurrence unit after ``current``.

    Months and years clamp to the end of a shorter target month. Passing the
    series' ``anchor_day`` lets a clamped date (Feb 28) return to the anchor
    day (the 31st) on the following step.
    """
    freq = coerce_frequency(frequency)
    if freq == Frequency.weekly:
        return current + timedelta(days=WEEKLY_DAYS)
    if freq == Frequency.biweekly:
        return current + timedelta(days=BIWEEKLY_DAYS)
    if freq == Frequency.monthly:
        return add_months(current, 1, desired_day=anchor_day)
    if freq == Frequency.yearly:
        return add_months(current, 12, desired_day=anchor_day)
    raise InvalidFrequency("A one-time transaction has no recurrence step")


def occurrence_at(anchor: date, frequency: Union[Frequency, str], index: int) -> date:
    freq = coerce_frequency(frequency)
    if freq == Frequency.weekly:
        return anchor + timedelta(days=WEEKLY_DAYS * index)
    if freq == Frequency.biweekly:
        return anchor + timedelta(days=BIWEEKLY_DAYS * index)
    if freq == Frequency.monthly:
        return add_months(anchor, index)
    if freq == Frequency.yearly:
        return add_months(anchor, 12 * index)
    raise InvalidFrequency("A one-time transaction has no recurrence step")


def _occurrence_or_none(anchor: date, frequency: Frequency, index: int) -> Optional[date]:
    # a series has no occurrences past date.max
    try:
        return occurrence_at(anchor, frequency, index)
    except (OverflowError, ValueError):
        return None


def _first_index_on_or_after(anchor: date, frequency: Frequency, minimum: date) -> int:
    if anchor >= minimum:
        return 0
    if frequency in (Frequency.weekly, Frequency.biweekly):
        interval = WEEKLY_DAYS if frequency == Frequency.weekly else BIWEEKLY_DAYS
        days_between = (minimum - anchor).days
        return (days_between + interval - 1) // interval
    months_between = (minimum.year - anchor.year) * 12 + (minimum.month - anchor.month)
    months_per_step = 1 if frequency == Frequency.monthly else 12
    index = months_between // months_per_step
    while True:
        candidate = _occurrence_or_none(anchor, frequency, index)
        if candidate is None or candidate >= minimum:
            return index
        index += 1


class SkipRegistry:
    """Dates one recurring series must not occur on.

    ``persist`` is the storage hook; it runs before a new date is recorded so a
    failed write leaves the registry unchanged. Adding a date that is already
    present is a no-op and returns ``False``.
    """

    def __init__(
        self,
        dates: Iterable[DateLike] = (),
        persist: Optional[Callable[[date], None]] = None,
    ) -> None:
        self._dates: set[date] = {to_calendar_date(d) for d in dates}
        self._persist = persist

    def is_skipped(self, day: DateLike) -> bool:
        return to_calendar_date(day) in self._dates

    def add(self, day: DateLike) -> bool:
        value = to_calendar_date(day)
        if value in self._dates:
            return False
        if self._persist is not None:
            self._persist(value)
        self._dates.add(value)
        return True

    def __contains__(self, day: object) -> bool:
        return isinstance(day, (date, str)) and self.is_skipped(day)

    def __len__(self) -> int:
        return len(self._dates)

    def __iter__(self) -> Iterator[date]:
        return iter(sorted(self._dates))


def _registry_for(item: Recurring, skips: Optional[SkipRegistry]) -> SkipRegistry:
    if skips is not None:
        return skips
    return SkipRegistry(item.skipped_dates or ())


def _horizon(horizon_years: Optional[int]) -> int:
    years = get_settings().horizon_years if horizon_years is None else horizon_years
    if years < 0:
        raise ValueError("horizon_years must not be negative")
    return years


def next_occurrence(
    item: Recurring,
    as_of: DateLike,
    horizon_years: Optional[int] = None,
    skips: Optional[SkipRegistry] = None,
) -> Optional[date]:
    """First non-skipped occurrence strictly after ``as_of``.

    A future anchor is its own next occurrence. Returns ``None`` for one-time
    transactions and when nothing qualifies within ``horizon_years`` of
    ``as_of``.
    """
    freq = coerce_frequency(item.frequency)
    if freq == Frequency.once:
        return None
    reference = to_calendar_date(as_of)
    if reference == date.max:
        return None
    anchor = to_calendar_date(item.anchor_date)
    horizon = add_years(reference, _horizon(horizon_years))
    registry = _registry_for(item, skips)

    index = _first_index_on_or_after(anchor, freq, reference + timedelta(days=1))
    candidate = _occurrence_or_none(anchor, freq, index)
    while candidate is not None and candidate <= horizon:
        if not registry.is_skipped(candidate):
            return candidate
        index += 1
        candidate = _occurrence_or_none(anchor, freq, index)
    return None


def expand(
    item: Recurring,
    start: DateLike,
    end: DateLike,
    horizon_years: Optional[int] = None,
    skips: Optional[SkipRegistry] = None,
) -> Iterator[date]:
    """Yield every occurrence of ``item`` inside ``[start, end]``."""
    window_start = to_calendar_date(start)
    window_end = to_calendar_date(end)
    if window_start > window_end:
        raise InvalidDate("Window start must be on or before window end")
    freq = coerce_frequency(item.frequency)
    anchor = to_calendar_date(item.anchor_date)

    if freq == Frequency.once:
        if window_start <= anchor <= window_end:
            yield anchor
        return

    limit = min(window_end, add_years(window_start, _horizon(horizon_years)))
    registry = _registry_for(item, skips)
    index = _first_index_on_or_after(anchor, freq, window_start)
    current = _occurrence_or_none(anchor, freq, index)
    while current is not None and current <= limit:
        if not registry.is_skipped(current):
            yield current
        index += 1
        current = _occurrence_or_none(anchor, freq, index)


def occurrences_in_interval(
    items: Iterable[Recurring],
    start: DateLike,
    end: DateLike,
    horizon_years: Optional[int] = None,
) -> Iterator[tuple[Recurring, date]]:
    for item in items:
        for day in expand(item, start, end, horizon_years):
            yield item, day


def total_in_interval(
    items: Iterable[Recurring],
    start: DateLike,
    end: DateLike,
    horizon_years: Optional[int] = None,
) -> int:
    return sum(
        item.amount_cents
        for item, _day in occurrences_in_interval(items, start, end, horizon_years)
    )
