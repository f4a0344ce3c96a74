"""Record filters usable both as SQL clauses and as in-process predicates."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Optional

from ..models.habit import CompletionEntry


@dataclass(frozen=True)
class CompletionFilter:
    """Completion entries for some habits whose day falls in [start, end].

    ``clauses()`` and ``matches()`` must select exactly the same rows: the
    store evaluates the former, the fallback scan the latter.
    """

    habit_ids: Optional[frozenset[uuid.UUID]] = None
    start: Optional[date] = None
    end: Optional[date] = None

    @classmethod
    def for_habit(
        cls, habit_id: uuid.UUID, start: Optional[date] = None, end: Optional[date] = None
    ) -> "CompletionFilter":
        return cls(habit_ids=frozenset({habit_id}), start=start, end=end)

    @classmethod
    def for_habits(
        cls, habit_ids: Iterable[uuid.UUID], start: Optional[date] = None, end: Optional[date] = None
    ) -> "CompletionFilter":
        return cls(habit_ids=frozenset(habit_ids), start=start, end=end)

    @classmethod
    def for_day(cls, habit_id: uuid.UUID, day: date) -> "CompletionFilter":
        return cls.for_habit(habit_id, day, day)

    @property
    def is_empty(self) -> bool:
        """True when no row can possibly match."""

        if self.habit_ids is not None and not self.habit_ids:
            return True
        return self.start is not None and self.end is not None and self.start > self.end

    def clauses(self) -> list[Any]:
        """SQLAlchemy expressions for a ``select(...).where(*clauses)``."""

        clauses: list[Any] = []
        if self.habit_ids is not None:
            ids = sorted(self.habit_ids, key=str)
            if len(ids) == 1:
                clauses.append(CompletionEntry.habit_id == ids[0])
            else:
                clauses.append(CompletionEntry.habit_id.in_(ids))  # type: ignore[attr-defined]
        if self.start is not None:
            clauses.append(CompletionEntry.day >= self.start)
        if self.end is not None:
            clauses.append(CompletionEntry.day <= self.end)
        return clauses

    def matches(self, entry: CompletionEntry) -> bool:
        if self.habit_ids is not None and entry.habit_id not in self.habit_ids:
            return False
        if self.start is not None and entry.day < self.start:
            return False
        if self.end is not None and entry.day > self.end:
            return False
        return True
