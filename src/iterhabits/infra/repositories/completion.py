"""Completion maps and atomic day toggles on top of the record store."""

from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from sqlmodel import Session

from ...domain.filters import CompletionFilter
from ...domain.repositories.store import RecordStore
from ...errors import FilterEvaluationError
from ...logging_config import get_logger
from ...models.habit import CompletionEntry, Habit
from ...services.date_ranges import DateRange

logger = get_logger(__name__)


class SQLModelCompletionRepository:
    """Reads and flips per-day completion state for habits.

    A completion entry's presence is the completion signal. Every read goes
    through a filtered fetch first; if the store cannot evaluate the filter,
    the whole collection is scanned with the same predicate in-process.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    def _entries(
        self,
        where: CompletionFilter,
        *,
        limit: Optional[int] = None,
        session: Optional[Session] = None,
        operation: str = "fetch",
    ) -> list[CompletionEntry]:
        if where.is_empty:
            return []
        try:
            return list(
                self.store.fetch(
                    CompletionEntry,
                    where,
                    limit,
                    order_by=CompletionEntry.day,
                    session=session,
                )
            )
        except FilterEvaluationError as exc:
            logger.warning(
                "Filtered %s failed, falling back to full scan",
                operation,
                extra={"operation": operation, "error": str(exc)},
            )
            rows = [
                entry
                for entry in self.store.fetch(
                    CompletionEntry, order_by=CompletionEntry.day, session=session
                )
                if where.matches(entry)
            ]
            return rows[:limit] if limit is not None else rows

    @staticmethod
    def _query_bounds(date_range: DateRange, today: Optional[date]) -> tuple[date, date]:
        # Days after today cannot be completed; never ask storage about them.
        last = date_range.last_day if today is None else min(date_range.last_day, today)
        return date_range.first_day, last

    def completion_map(
        self, habit: Habit, date_range: DateRange, *, today: Optional[date] = None
    ) -> dict[date, bool]:
        """Map every day in ``date_range`` to whether ``habit`` was completed.

        Days without an entry are explicit ``False``.
        """
        first, last = self._query_bounds(date_range, today)
        where = CompletionFilter.for_habit(habit.id, first, last)
        completed = {entry.day for entry in self._entries(where, operation="completion_map")}
        return {day: day in completed for day in date_range.days()}

    def completion_maps(
        self, habits: Iterable[Habit], date_range: DateRange, *, today: Optional[date] = None
    ) -> dict[uuid.UUID, dict[date, bool]]:
        """``completion_map`` for many habits with a single range query."""

        habit_ids = [habit.id for habit in habits]
        first, last = self._query_bounds(date_range, today)
        where = CompletionFilter.for_habits(habit_ids, first, last)

        completed: dict[uuid.UUID, set[date]] = defaultdict(set)
        for entry in self._entries(where, operation="completion_maps"):
            completed[entry.habit_id].add(entry.day)

        days = list(date_range.days())
        return {
            habit_id: {day: day in completed[habit_id] for day in days}
            for habit_id in habit_ids
        }

    def is_completed(self, habit: Habit, day: date) -> bool:
        where = CompletionFilter.for_day(habit.id, day)
        return bool(self._entries(where, limit=1, operation="is_completed"))

    def toggle(self, habit: Habit, day: date) -> bool:
        """Flip completion of (habit, day) in one transaction.

        Deletes every matching entry when completed, inserts one otherwise.
        Returns the new state.
        """
        where = CompletionFilter.for_day(habit.id, day)
        with self.store.atomic() as session:
            matches = self._entries(where, session=session, operation="toggle")
            if matches:
                for entry in matches:
                    session.delete(entry)
                completed = False
            else:
                session.add(CompletionEntry(habit_id=habit.id, day=day))
                completed = True

        logger.info(
            "Toggled completion",
            extra={"habit_id": str(habit.id), "day": day.isoformat(), "completed": completed},
        )
        return completed

    def completed_days(self, habit: Habit) -> list[date]:
        where = CompletionFilter.for_habit(habit.id)
        return sorted({entry.day for entry in self._entries(where, operation="completed_days")})
