"""Habit service: the engine API consumed by views and the CLI."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Callable, Iterable, Optional, Union

from ..domain.repositories import CompletionRepository, RecordStore
from ..errors import ValidationError
from ..infra.repositories.completion import SQLModelCompletionRepository
from ..logging_config import get_logger
from ..models.habit import Habit, HabitType
from .date_ranges import DateLike, DateRangeResolver, Granularity
from .statistics import HabitStatistics, build_statistics

logger = get_logger(__name__)

TITLE_MAX_LENGTH = 80


def validate_title(title: Optional[str]) -> str:
    """Return the stripped title or raise ``ValidationError``."""

    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError("Habit title must not be empty")
    if len(cleaned) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Habit title must be at most {TITLE_MAX_LENGTH} characters")
    return cleaned


def parse_habit_type(value: Union[str, HabitType, None]) -> HabitType:
    if value is None:
        return HabitType.NEUTRAL
    if isinstance(value, HabitType):
        return value
    try:
        return HabitType(str(value).strip().lower())
    except ValueError as exc:
        choices = ", ".join(t.value for t in HabitType)
        raise ValidationError(f"Unknown habit type {value!r}; expected one of {choices}") from exc


class HabitService:
    """Create, list, delete and toggle habits; build maps and statistics.

    ``clock`` returns "today" and is read once per public call, never midway
    through a calculation.
    """

    def __init__(
        self,
        store: RecordStore,
        completions: Optional[CompletionRepository] = None,
        resolver: Optional[DateRangeResolver] = None,
        *,
        clock: Optional[Callable[[], date]] = None,
    ):
        self.store = store
        self.completions = completions or SQLModelCompletionRepository(store)
        self.resolver = resolver or DateRangeResolver()
        self._clock = clock

    def today(self) -> date:
        if self._clock is not None:
            return self._clock()
        return self.resolver.normalize(datetime.now(self.resolver.calendar.timezone))

    # Habits

    def create_habit(
        self, title: str, habit_type: Union[str, HabitType, None] = HabitType.NEUTRAL
    ) -> Habit:
        cleaned = validate_title(title)
        if self._title_matches(cleaned):
            raise ValidationError(f"A habit named {cleaned!r} already exists")
        habit = Habit(title=cleaned, habit_type=parse_habit_type(habit_type))
        self.store.insert(habit)
        self.store.save()
        logger.info(
            "Habit created",
            extra={"habit_id": str(habit.id), "habit_type": habit.habit_type.value},
        )
        return habit

    def fetch_habits(self) -> list[Habit]:
        return list(self.store.fetch(Habit, order_by=Habit.created_at))

    def _title_matches(self, title: str) -> list[Habit]:
        wanted = title.strip().lower()
        return [habit for habit in self.fetch_habits() if habit.title.lower() == wanted]

    def find_habit(self, key: str) -> Optional[Habit]:
        """Look a habit up by id or case-insensitive title.

        Raises ``ValidationError`` when the title matches more than one habit.
        """
        needle = key.strip()
        try:
            wanted_id: Optional[uuid.UUID] = uuid.UUID(needle)
        except ValueError:
            wanted_id = None
        if wanted_id is not None:
            for habit in self.fetch_habits():
                if habit.id == wanted_id:
                    return habit
        matches = self._title_matches(needle)
        if len(matches) > 1:
            raise ValidationError(f"{len(matches)} habits are named {needle!r}; use the habit id")
        return matches[0] if matches else None

    def delete_habit(self, habit: Habit) -> None:
        """Delete a habit together with all of its completion entries."""

        self.store.delete(habit)
        self.store.save()
        logger.info("Habit deleted", extra={"habit_id": str(habit.id)})

    # Completion

    def is_completed(self, habit: Habit, day: DateLike) -> bool:
        return self.completions.is_completed(habit, self.resolver.normalize(day))

    def toggle_completion(self, habit: Habit, day: DateLike) -> bool:
        """Flip one day and return the new state; callers re-fetch maps after."""

        return self.completions.toggle(habit, self.resolver.normalize(day))

    def fetch_completion_map(
        self, habit: Habit, granularity: Union[str, Granularity], anchor: DateLike
    ) -> dict[date, bool]:
        date_range = self.resolver.range_for(Granularity.parse(granularity), anchor)
        return self.completions.completion_map(habit, date_range, today=self.today())

    def fetch_completion_maps(
        self,
        granularity: Union[str, Granularity],
        anchor: DateLike,
        habits: Optional[Iterable[Habit]] = None,
    ) -> dict[uuid.UUID, dict[date, bool]]:
        """Maps for every habit (or ``habits``) from one storage query."""

        date_range = self.resolver.range_for(Granularity.parse(granularity), anchor)
        if habits is None:
            habits = self.fetch_habits()
        return self.completions.completion_maps(habits, date_range, today=self.today())

    # Statistics

    def fetch_statistics(
        self, habit: Habit, granularity: Union[str, Granularity], anchor: DateLike
    ) -> HabitStatistics:
        """Streak and rate over the bucket; longest streak over all history."""

        today = self.today()
        date_range = self.resolver.range_for(Granularity.parse(granularity), anchor)
        completions = self.completions.completion_map(habit, date_range, today=today)
        history = self.completions.completed_days(habit)
        return build_statistics(completions, today, history=history)

    def fetch_statistics_for_all(
        self, granularity: Union[str, Granularity], anchor: DateLike
    ) -> dict[uuid.UUID, HabitStatistics]:
        """Per-habit statistics for a whole view from one range query.

        The longest streak here is limited to the bucket.
        """
        today = self.today()
        date_range = self.resolver.range_for(Granularity.parse(granularity), anchor)
        maps = self.completions.completion_maps(self.fetch_habits(), date_range, today=today)
        return {
            habit_id: build_statistics(completions, today)
            for habit_id, completions in maps.items()
        }
