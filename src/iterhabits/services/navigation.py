"""Navigation window rules: no future anchors, bounded history."""

from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, timedelta

from ..errors import InvalidDateCalculation
from .date_ranges import Granularity


@dataclass(frozen=True)
class LookbackPolicy:
    """How many granularity units into the past a view may navigate."""

    days: int = 7
    weeks: int = 4
    months: int = 12
    years: int = 1

    def __post_init__(self) -> None:
        for name in ("days", "weeks", "months", "years"):
            if getattr(self, name) < 0:
                raise ValueError(f"Lookback {name} must not be negative")

    def units_for(self, granularity: Granularity) -> int:
        return {
            Granularity.DAY: self.days,
            Granularity.WEEK: self.weeks,
            Granularity.MONTH: self.months,
            Granularity.YEAR: self.years,
        }[Granularity.parse(granularity)]


def _shift_months(anchor: date, months: int) -> date:
    index = anchor.year * 12 + (anchor.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(anchor.day, monthrange(year, month)[1])
    return date(year, month, day)


def step(anchor: date, granularity: Granularity, offset: int) -> date:
    """Move ``anchor`` by ``offset`` whole granularity units.

    Month and year moves keep the day of month where possible and clamp it to
    the target month's length otherwise (Jan 31 + 1 month is Feb 28/29).
    """
    granularity = Granularity.parse(granularity)
    try:
        if granularity is Granularity.DAY:
            return anchor + timedelta(days=offset)
        if granularity is Granularity.WEEK:
            return anchor + timedelta(weeks=offset)
        if granularity is Granularity.MONTH:
            return _shift_months(anchor, offset)
        return _shift_months(anchor, offset * 12)
    except (OverflowError, ValueError) as exc:
        raise InvalidDateCalculation(
            f"Cannot move {anchor.isoformat()} by {offset} {granularity.value}(s)"
        ) from exc


def oldest_allowed(
    granularity: Granularity, today: date, policy: LookbackPolicy = LookbackPolicy()
) -> date:
    """Earliest anchor reachable from ``today`` for this granularity."""

    return step(today, granularity, -policy.units_for(granularity))


def clamp(
    requested: date,
    granularity: Granularity,
    today: date,
    policy: LookbackPolicy = LookbackPolicy(),
) -> date:
    """Pull ``requested`` back into [oldest_allowed, today]."""

    if requested > today:
        return today
    floor = oldest_allowed(granularity, today, policy)
    if requested < floor:
        return floor
    return requested


def previous(
    anchor: date,
    granularity: Granularity,
    today: date,
    policy: LookbackPolicy = LookbackPolicy(),
) -> date:
    """One unit back, clamped to the oldest allowed anchor."""

    return clamp(step(anchor, granularity, -1), granularity, today, policy)


def can_go_next(anchor: date, granularity: Granularity, today: date) -> bool:
    return step(anchor, granularity, 1) <= today


def next_anchor(anchor: date, granularity: Granularity, today: date) -> date:
    """One unit forward, or ``anchor`` unchanged if that would pass today."""

    candidate = step(anchor, granularity, 1)
    if candidate > today:
        return anchor
    return candidate


def can_go_previous(
    anchor: date,
    granularity: Granularity,
    today: date,
    policy: LookbackPolicy = LookbackPolicy(),
) -> bool:
    return anchor > oldest_allowed(granularity, today, policy)


def date_for_page(page: int, granularity: Granularity, max_pages: int, today: date) -> date:
    """Anchor shown on pager index ``page``, where ``max_pages`` is today."""

    return step(today, granularity, -(max_pages - page))


__all__ = [
    "LookbackPolicy",
    "can_go_next",
    "can_go_previous",
    "clamp",
    "date_for_page",
    "next_anchor",
    "oldest_allowed",
    "previous",
    "step",
]
