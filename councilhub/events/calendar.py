"""
Month grid and day bucketing for the events calendar.

Pure functions over anything with ``start_date``/``end_date`` attributes;
no database access happens here.
"""
from __future__ import annotations

import calendar as _calendar
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from councilhub.events.enums import EventStatus

GRID_CELLS = 42
MAX_VISIBLE_PER_DAY = 3


class Dated(Protocol):
    start_date: datetime
    end_date: datetime


@dataclass(frozen=True)
class DayCell:
    date: date
    is_current_month: bool


@dataclass
class CellEvents:
    visible: List[Dated] = field(default_factory=list)
    overflow: int = 0

    @property
    def overflow_label(self) -> Optional[str]:
        return f"+{self.overflow} more" if self.overflow else None


def _check_month(year: int, month: int) -> None:
    if not 1 <= month <= 12:
        raise ValueError(f"month must be between 1 and 12, got {month}")
    # the padding cells must stay inside the representable date range
    if not 1 < year < 9999:
        raise ValueError(f"year out of range: {year}")


def build_month_grid(year: int, month: int) -> List[DayCell]:
    """
    Six Sunday-first weeks covering ``month``.

    Leading cells come from the previous month, trailing cells from the next,
    so the result always has 42 entries.
    """
    _check_month(year, month)
    first = date(year, month, 1)
    # date.weekday(): Monday=0 .. Sunday=6; shift so Sunday is column 0
    lead = (first.weekday() + 1) % 7
    start = first - timedelta(days=lead)
    return [
        DayCell(date=day, is_current_month=day.month == month)
        for day in (start + timedelta(days=i) for i in range(GRID_CELLS))
    ]


def _day_of(value: datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def day_span(event: Dated) -> tuple[datetime, datetime]:
    """Start truncated to midnight and end pushed to the last instant of its day."""
    start = datetime.combine(_day_of(event.start_date), time.min)
    end = datetime.combine(_day_of(event.end_date), time.max)
    return start, end


def occurs_on(event: Dated, day: date) -> bool:
    start, end = day_span(event)
    return start.date() <= day <= end.date()


def _by_start(events: Iterable[Dated]) -> List[Dated]:
    return sorted(events, key=lambda e: e.start_date)


def events_for_date(day: date, events: Iterable[Dated]) -> List[Dated]:
    """Every event whose day span contains ``day``, earliest start first."""
    return _by_start(e for e in events if occurs_on(e, day))


def summarize_cell(
    day: date, events: Iterable[Dated], limit: int = MAX_VISIBLE_PER_DAY
) -> CellEvents:
    todays = events_for_date(day, events)
    return CellEvents(visible=todays[:limit], overflow=max(len(todays) - limit, 0))


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    _check_month(year, month)
    last_day = _calendar.monthrange(year, month)[1]
    return (
        datetime.combine(date(year, month, 1), time.min),
        datetime.combine(date(year, month, last_day), time.max),
    )


def month_events(year: int, month: int, events: Iterable[Dated]) -> List[Dated]:
    """Events overlapping the month, for the list view."""
    first, last = month_bounds(year, month)
    selected = []
    for event in events:
        start, end = day_span(event)
        if start <= last and end >= first:
            selected.append(event)
    return _by_start(selected)


def filter_by_status(events: Iterable, status: Optional[EventStatus]) -> List:
    if status is None:
        return list(events)
    return [e for e in events if e.status == status]


def status_counts(events: Sequence) -> Dict[str, int]:
    counts = Counter(e.status.value for e in events)
    result = {"ALL": len(events)}
    result.update({s.value: counts.get(s.value, 0) for s in EventStatus})
    return result


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1
