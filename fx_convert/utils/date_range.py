"""Calendar helpers used by the resolver and the nearest-date search."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterator, Tuple


@dataclass(frozen=True)
class DateRange:
    """Container representing a closed date range."""

    start: date
    end: date

    def as_tuple(self) -> Tuple[date, date]:
        """Return the range as a tuple of ``(start, end)``."""
        return (self.start, self.end)


def parse_date(value: str | date | datetime) -> date:
    """Parse a date string in ISO format to :class:`date`.

    ``datetime`` values are truncated to their calendar day since rates have
    day granularity.
    """

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value, "%Y-%m-%d").date()


def window_around(day: date, max_days: int) -> DateRange:
    """Return the inclusive ``day ± max_days`` window."""

    if max_days < 0:
        raise ValueError("max_days must not be negative")
    delta = timedelta(days=max_days)
    return DateRange(start=day - delta, end=day + delta)


def outward_offsets(day: date, max_days: int) -> Iterator[tuple[date, int]]:
    """Yield ``(candidate, distance)`` moving away from ``day``.

    At each distance the earlier candidate is yielded before the later one,
    which makes "earlier date wins" the tie-break for equidistant hits.
    """

    yield day, 0
    for offset in range(1, max_days + 1):
        delta = timedelta(days=offset)
        yield day - delta, offset
        yield day + delta, offset


def days_between(start: date, end: date) -> int:
    """Return ``end - start`` in whole days (negative when ``end`` is earlier)."""

    return (end - start).days


__all__ = ["DateRange", "days_between", "outward_offsets", "parse_date", "window_around"]
