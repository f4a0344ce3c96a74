"""Granularity buckets, calendar boundaries and padded heatmap grids.

Everything here is pure: results depend only on the arguments and the
``CalendarSettings`` / ``GridSettings`` handed to the resolver, never on the
host locale or wall clock.
"""

from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Iterator, Optional, Union

from ..errors import InvalidDateCalculation
from ..logging_config import get_logger

logger = get_logger(__name__)

DateLike = Union[date, datetime]

END_OF_DAY = time(23, 59, 59)


class Granularity(str, Enum):
    """Temporal bucket size of a view."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @property
    def view_title(self) -> str:
        return {
            Granularity.DAY: "Daily",
            Granularity.WEEK: "Weekly",
            Granularity.MONTH: "Monthly",
            Granularity.YEAR: "Yearly",
        }[self]

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, value: Union[str, "Granularity"]) -> "Granularity":
        if isinstance(value, Granularity):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            choices = ", ".join(g.value for g in cls)
            raise ValueError(f"Unknown granularity {value!r}; expected one of {choices}") from exc


@dataclass(frozen=True)
class CalendarSettings:
    """Calendar conventions: first weekday (0=Monday .. 6=Sunday) and zone."""

    first_weekday: int = 0
    timezone: tzinfo = field(default=timezone.utc)

    def __post_init__(self) -> None:
        if not 0 <= self.first_weekday <= 6:
            raise ValueError(f"first_weekday must be in 0..6, got {self.first_weekday}")


@dataclass(frozen=True)
class GridSettings:
    """Fixed-column heatmap geometry shared by padding and rendering."""

    month_columns: int = 10
    week_columns: int = 7
    year_columns: int = 45
    year_rows: int = 10

    @property
    def year_cells(self) -> int:
        return self.year_columns * self.year_rows

    def columns_for(self, granularity: Granularity) -> int:
        return {
            Granularity.DAY: 1,
            Granularity.WEEK: self.week_columns,
            Granularity.MONTH: self.month_columns,
            Granularity.YEAR: self.year_columns,
        }[granularity]


@dataclass(frozen=True)
class DateRange:
    """Inclusive [start, end] instants covering one granularity bucket."""

    start: datetime
    end: datetime

    @property
    def first_day(self) -> date:
        return self.start.date()

    @property
    def last_day(self) -> date:
        return self.end.date()

    def days(self) -> Iterator[date]:
        """Yield every calendar date in the range, oldest first."""

        cursor = self.first_day
        last = self.last_day
        while cursor <= last:
            yield cursor
            if cursor == date.max:
                break
            cursor += timedelta(days=1)

    def contains(self, day: date) -> bool:
        return self.first_day <= day <= self.last_day

    def __len__(self) -> int:
        return (self.last_day - self.first_day).days + 1


class DateRangeResolver:
    """Resolve (granularity, anchor) into boundaries, day lists and grids."""

    def __init__(
        self,
        calendar: Optional[CalendarSettings] = None,
        grid: Optional[GridSettings] = None,
    ) -> None:
        self.calendar = calendar or CalendarSettings()
        self.grid = grid or GridSettings()

    # Normalisation

    def normalize(self, value: DateLike) -> date:
        """Return the calendar day of ``value`` in the configured zone.

        Naive datetimes are taken as wall-clock time in that zone already.
        """
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                try:
                    value = value.astimezone(self.calendar.timezone)
                except (OverflowError, ValueError) as exc:
                    logger.error("Failed to normalize %s", value.isoformat())
                    raise InvalidDateCalculation(
                        f"Cannot convert {value.isoformat()} to the configured timezone"
                    ) from exc
            return value.date()
        return value

    def start_of_day(self, value: DateLike) -> datetime:
        return datetime.combine(self.normalize(value), time.min, tzinfo=self.calendar.timezone)

    def end_of_day(self, value: DateLike) -> datetime:
        return datetime.combine(self.normalize(value), END_OF_DAY, tzinfo=self.calendar.timezone)

    # Boundaries

    def bucket_bounds(self, granularity: Granularity, anchor: DateLike) -> tuple[date, date]:
        """First and last calendar day of the bucket containing ``anchor``."""

        granularity = Granularity.parse(granularity)
        day = self.normalize(anchor)
        try:
            if granularity is Granularity.DAY:
                return day, day
            if granularity is Granularity.WEEK:
                offset = (day.weekday() - self.calendar.first_weekday) % 7
                first = day - timedelta(days=offset)
                return first, first + timedelta(days=6)
            if granularity is Granularity.MONTH:
                days_in_month = monthrange(day.year, day.month)[1]
                return day.replace(day=1), day.replace(day=days_in_month)
            return date(day.year, 1, 1), date(day.year, 12, 31)
        except (OverflowError, ValueError) as exc:
            logger.error(
                "Failed to calculate %s range", granularity.value, extra={"anchor": str(day)}
            )
            raise InvalidDateCalculation(
                f"Cannot calculate {granularity.value} range for {day.isoformat()}"
            ) from exc

    def range_for(self, granularity: Granularity, anchor: DateLike) -> DateRange:
        """Inclusive range of the bucket: first day 00:00 to last day 23:59:59."""

        granularity = Granularity.parse(granularity)
        first, last = self.bucket_bounds(granularity, anchor)
        logger.debug("Resolved %s range %s..%s", granularity.value, first, last)
        return DateRange(start=self.start_of_day(first), end=self.end_of_day(last))

    def dates_in_range(self, granularity: Granularity, anchor: DateLike) -> list[date]:
        return list(self.range_for(granularity, anchor).days())

    def same_bucket(self, granularity: Granularity, a: DateLike, b: DateLike) -> bool:
        return self.bucket_bounds(granularity, a) == self.bucket_bounds(granularity, b)

    # Grids

    def padded_grid(self, granularity: Granularity, anchor: DateLike) -> list[Optional[date]]:
        """Bucket days followed by ``None`` slots filling the fixed grid.

        Month views pad to a whole number of rows; year views pad to the
        configured total cell count. Week and day views are never padded.
        """
        granularity = Granularity.parse(granularity)
        cells: list[Optional[date]] = list(self.dates_in_range(granularity, anchor))
        if granularity is Granularity.MONTH:
            columns = self.grid.month_columns
            rows = -(-len(cells) // columns)
            total = rows * columns
        elif granularity is Granularity.YEAR:
            total = self.grid.year_cells
        else:
            return cells
        return cells + [None] * max(0, total - len(cells))

    def grid_rows(self, granularity: Granularity, anchor: DateLike) -> list[list[Optional[date]]]:
        """``padded_grid`` chunked into rows of the grid's column count."""

        granularity = Granularity.parse(granularity)
        cells = self.padded_grid(granularity, anchor)
        columns = self.grid.columns_for(granularity)
        return [cells[i : i + columns] for i in range(0, len(cells), columns)]

    # Labels

    def label(self, granularity: Granularity, anchor: DateLike) -> str:
        """Header text for the bucket, e.g. ``March 2024``."""

        granularity = Granularity.parse(granularity)
        first, last = self.bucket_bounds(granularity, anchor)
        if granularity is Granularity.DAY:
            return f"{first:%b} {first.day}, {first.year}"
        if granularity is Granularity.WEEK:
            return f"{first:%b} {first.day} - {last:%b} {last.day}"
        if granularity is Granularity.MONTH:
            return f"{first:%B} {first.year}"
        return str(first.year)


__all__ = [
    "CalendarSettings",
    "DateRange",
    "DateRangeResolver",
    "Granularity",
    "GridSettings",
]
