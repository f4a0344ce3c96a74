"""Completion repository protocol."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Iterable, Optional, Protocol

from ...models.habit import Habit
from ...services.date_ranges import DateRange


class CompletionRepository(Protocol):
    """Builds per-day completion maps and flips single days."""

    def completion_map(
        self, habit: Habit, date_range: DateRange, *, today: Optional[date] = None
    ) -> dict[date, bool]:
        """Map every day in the range to its completion state."""
        ...

    def completion_maps(
        self, habits: Iterable[Habit], date_range: DateRange, *, today: Optional[date] = None
    ) -> dict[uuid.UUID, dict[date, bool]]:
        """Completion maps for several habits from one range query."""
        ...

    def is_completed(self, habit: Habit, day: date) -> bool:
        """Return True when an entry exists for (habit, day)."""
        ...

    def toggle(self, habit: Habit, day: date) -> bool:
        """Flip (habit, day) atomically and return the new state."""
        ...

    def completed_days(self, habit: Habit) -> list[date]:
        """All completed days for a habit, ascending."""
        ...
