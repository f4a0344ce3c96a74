"""Streak and completion-rate helpers over per-day completion maps.

``today`` is always an explicit argument so results never depend on when the
function happens to run.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Iterable, Mapping, Optional, Sequence

CompletionMap = Mapping[date, bool]


@dataclass(frozen=True)
class HabitStatistics:
    """Derived metrics for one habit over one range."""

    streak: int
    rate: float
    percentage: int
    longest_streak: int = 0

    @property
    def band(self) -> str:
        return rate_band(self.rate)


def current_streak(completions: CompletionMap, today: date) -> int:
    """Consecutive completed days ending at the most recent key <= today.

    A missing day breaks the run exactly like an explicit ``False``.
    """
    past = [day for day in completions if day <= today]
    if not past:
        return 0

    streak = 0
    cursor = max(past)
    while completions.get(cursor) is True:
        streak += 1
        if cursor == date.min:
            break
        cursor -= timedelta(days=1)
    return streak


def longest_streak(days: Iterable[date]) -> int:
    """Longest run of consecutive dates in ``days``."""

    longest = 0
    run = 0
    last_day: Optional[date] = None
    for day in sorted(set(days)):
        if last_day is not None and day == last_day + timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        last_day = day
    return longest


def _whole_percent(done: int, total: int) -> int:
    # Exact counts, halves up.
    return (200 * done + total) // (2 * total)


def completion_rate(completions: CompletionMap, today: date) -> float:
    """Share of keys <= today that are completed; 0.0 when there are none."""

    past = [done for day, done in completions.items() if day <= today]
    if not past:
        return 0.0
    return sum(1 for done in past if done) / len(past)


def display_percentage(completions: CompletionMap, today: date) -> int:
    """``completion_rate`` as a whole percent, rounding halves up."""

    past = [done for day, done in completions.items() if day <= today]
    if not past:
        return 0
    return _whole_percent(sum(1 for done in past if done), len(past))


def rate_band(rate: float) -> str:
    """Colour bucket for a completion rate."""

    if 0.0 <= rate < 0.25:
        return "red"
    if 0.25 <= rate < 0.5:
        return "orange"
    if 0.5 <= rate < 0.75:
        return "yellow"
    if 0.75 <= rate <= 1.0:
        return "green"
    return "gray"


def completion_summary(
    cells: Sequence[Optional[date]], is_completed: Callable[[date], bool]
) -> str:
    """Percentage label over the real (non-padding) cells of a grid."""

    days = [cell for cell in cells if cell is not None]
    if not days:
        return "0%"
    done = sum(1 for day in days if is_completed(day))
    return f"{_whole_percent(done, len(days))}%"


def build_statistics(
    completions: CompletionMap,
    today: date,
    *,
    history: Iterable[date] = (),
) -> HabitStatistics:
    """Bundle streak, rate and percentage; ``history`` feeds the longest streak."""

    history_days = {day for day in history if day <= today}
    history_days.update(day for day, done in completions.items() if done and day <= today)
    return HabitStatistics(
        streak=current_streak(completions, today),
        rate=completion_rate(completions, today),
        percentage=display_percentage(completions, today),
        longest_streak=longest_streak(history_days),
    )


__all__ = [
    "CompletionMap",
    "HabitStatistics",
    "build_statistics",
    "completion_rate",
    "completion_summary",
    "current_streak",
    "display_percentage",
    "longest_streak",
    "rate_band",
]
