"""Tests for completion maps, toggles and the full-scan fallback."""

from __future__ import annotations

import logging
import threading
from datetime import date, timedelta

import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from iterhabits.domain.filters import CompletionFilter
from iterhabits.errors import FilterEvaluationError, StorageError
from iterhabits.models import CompletionEntry, Habit
from iterhabits.services.date_ranges import Granularity

GRANULARITIES = list(Granularity)


def _stored_entries(session_factory, habit: Habit) -> list[CompletionEntry]:
    with session_factory() as session:
        statement = select(CompletionEntry).where(CompletionEntry.habit_id == habit.id)
        return list(session.exec(statement).all())


class TestCompletionMap:
    def test_every_day_present_with_explicit_false(
        self, completion_repo, resolver, habit_factory, complete_days, today
    ):
        habit = habit_factory("Read")
        complete_days(habit, date(2024, 3, 2), date(2024, 3, 9))
        date_range = resolver.range_for(Granularity.MONTH, today)

        completions = completion_repo.completion_map(habit, date_range, today=today)

        assert list(completions) == list(date_range.days())
        assert completions[date(2024, 3, 2)] is True
        assert completions[date(2024, 3, 9)] is True
        assert completions[date(2024, 3, 3)] is False
        assert sum(completions.values()) == 2

    def test_days_after_today_are_false_even_with_entries(
        self, completion_repo, resolver, habit_factory, complete_days, today
    ):
        habit = habit_factory("Run")
        complete_days(habit, today, today + timedelta(days=3))
        date_range = resolver.range_for(Granularity.MONTH, today)

        completions = completion_repo.completion_map(habit, date_range, today=today)

        assert completions[today] is True
        assert completions[today + timedelta(days=3)] is False

    def test_other_habits_do_not_leak(
        self, completion_repo, resolver, habit_factory, complete_days, today
    ):
        read = habit_factory("Read")
        run = habit_factory("Run")
        complete_days(run, today)
        date_range = resolver.range_for(Granularity.DAY, today)

        assert completion_repo.completion_map(read, date_range, today=today) == {today: False}

    @pytest.mark.parametrize("granularity", GRANULARITIES)
    def test_fallback_scan_matches_filtered_fetch(
        self,
        completion_repo,
        scan_repo,
        resolver,
        habit_factory,
        complete_days,
        today,
        granularity,
    ):
        habit = habit_factory("Meditate")
        other = habit_factory("Stretch")
        complete_days(habit, date(2023, 12, 31), date(2024, 1, 1), date(2024, 3, 4), today)
        complete_days(other, date(2024, 3, 5))
        date_range = resolver.range_for(granularity, today)

        filtered = completion_repo.completion_map(habit, date_range, today=today)
        scanned = scan_repo.completion_map(habit, date_range, today=today)

        assert filtered == scanned
        assert scan_repo.store.filtered_attempts == 1


class TestCompletionMaps:
    def test_batch_uses_one_query(self, scan_repo, resolver, habit_factory, complete_days, today):
        habits = [habit_factory(f"Habit {i}") for i in range(4)]
        complete_days(habits[1], date(2024, 3, 6))
        complete_days(habits[3], date(2024, 3, 4), date(2024, 3, 5))
        date_range = resolver.range_for(Granularity.WEEK, today)

        maps = scan_repo.completion_maps(habits, date_range, today=today)

        assert scan_repo.store.filtered_attempts == 1
        assert set(maps) == {habit.id for habit in habits}
        assert all(len(days) == 7 for days in maps.values())
        assert sum(maps[habits[0].id].values()) == 0
        assert maps[habits[1].id][date(2024, 3, 6)] is True
        assert sum(maps[habits[3].id].values()) == 2

    def test_batch_agrees_with_single_maps(
        self, completion_repo, resolver, habit_factory, complete_days, today
    ):
        habits = [habit_factory("A"), habit_factory("B")]
        complete_days(habits[0], date(2024, 3, 1), date(2024, 3, 10))
        complete_days(habits[1], date(2024, 2, 29))
        date_range = resolver.range_for(Granularity.MONTH, today)

        maps = completion_repo.completion_maps(habits, date_range, today=today)

        for habit in habits:
            assert maps[habit.id] == completion_repo.completion_map(habit, date_range, today=today)

    def test_no_habits(self, completion_repo, resolver, today):
        date_range = resolver.range_for(Granularity.WEEK, today)

        assert completion_repo.completion_maps([], date_range, today=today) == {}


class TestToggle:
    @pytest.mark.parametrize("repo_fixture", ["completion_repo", "scan_repo"])
    def test_toggle_round_trip(self, request, repo_fixture, habit_factory, session_factory, today):
        repo = request.getfixturevalue(repo_fixture)
        habit = habit_factory("Journal")

        assert repo.is_completed(habit, today) is False
        assert repo.toggle(habit, today) is True
        assert repo.is_completed(habit, today) is True
        assert len(_stored_entries(session_factory, habit)) == 1

        assert repo.toggle(habit, today) is False
        assert repo.is_completed(habit, today) is False
        assert _stored_entries(session_factory, habit) == []

    def test_toggle_only_touches_one_day(self, completion_repo, habit_factory, complete_days, today):
        habit = habit_factory("Walk")
        yesterday = today - timedelta(days=1)
        complete_days(habit, yesterday)

        completion_repo.toggle(habit, today)
        completion_repo.toggle(habit, yesterday)

        assert completion_repo.completed_days(habit) == [today]

    def test_toggle_on_fallback_path_logs_warning(self, scan_repo, habit_factory, today, caplog):
        habit = habit_factory("Floss")

        with caplog.at_level(logging.WARNING, logger="iterhabits"):
            scan_repo.toggle(habit, today)

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert warnings
        assert "falling back to full scan" in warnings[0].getMessage()
        assert warnings[0].operation == "toggle"

    def test_concurrent_toggles_never_interleave(self, completion_repo, habit_factory, today):
        habit = habit_factory("Breathe")
        errors: list[Exception] = []
        results: list[bool] = []

        def worker() -> None:
            try:
                for _ in range(10):
                    results.append(completion_repo.toggle(habit, today))
            except Exception as exc:  # noqa: BLE001
                errors.append(exc)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(results) == 40
        assert results.count(True) == results.count(False) == 20
        assert completion_repo.is_completed(habit, today) is False
        assert completion_repo.completed_days(habit) == []

    def test_unique_constraint_rejects_duplicates(self, session_factory, habit_factory, today):
        habit = habit_factory("Water")

        with pytest.raises(IntegrityError):
            with session_factory() as session:
                session.add(CompletionEntry(habit_id=habit.id, day=today))
                session.add(CompletionEntry(habit_id=habit.id, day=today))


class TestCompletedDays:
    def test_sorted_history(self, completion_repo, habit_factory, complete_days):
        habit = habit_factory("Piano")
        complete_days(habit, date(2024, 3, 1), date(2023, 7, 4), date(2024, 1, 1))

        assert completion_repo.completed_days(habit) == [
            date(2023, 7, 4),
            date(2024, 1, 1),
            date(2024, 3, 1),
        ]


class BrokenFilter:
    """Filter whose clauses cannot be compiled to SQL."""

    def clauses(self):
        return [object()]

    def matches(self, record):
        return True


class UnsupportedFilter:
    def clauses(self):
        raise NotImplementedError("no SQL form")

    def matches(self, record):
        return True


class TestRecordStore:
    def test_insert_and_fetch(self, store):
        store.insert(Habit(title="Cook"))
        assert store.has_pending
        store.save()

        assert not store.has_pending
        assert [habit.title for habit in store.fetch(Habit)] == ["Cook"]

    def test_filtered_fetch_with_limit(self, store, habit_factory, complete_days, today):
        habit = habit_factory("Draw")
        complete_days(habit, today, today - timedelta(days=1), today - timedelta(days=2))

        rows = store.fetch(
            CompletionEntry,
            CompletionFilter.for_habit(habit.id),
            2,
            order_by=CompletionEntry.day,
        )

        assert [row.day for row in rows] == [today - timedelta(days=2), today - timedelta(days=1)]

    @pytest.mark.parametrize("where", [BrokenFilter(), UnsupportedFilter()])
    def test_uncompilable_filter_raises_filter_error(self, store, where):
        with pytest.raises(FilterEvaluationError):
            store.fetch(CompletionEntry, where)

    def test_storage_failure_is_not_a_filter_error(self, store, db_engine, habit_factory):
        habit = habit_factory("Swim")
        CompletionEntry.__table__.drop(db_engine)

        with pytest.raises(StorageError) as excinfo:
            store.fetch(CompletionEntry, CompletionFilter.for_habit(habit.id))

        assert not isinstance(excinfo.value, FilterEvaluationError)

    def test_repository_does_not_mask_storage_failure(
        self, completion_repo, db_engine, habit_factory, today
    ):
        habit = habit_factory("Code")
        CompletionEntry.__table__.drop(db_engine)

        with pytest.raises(StorageError):
            completion_repo.is_completed(habit, today)

    def test_failed_save_clears_queue(self, store, habit_factory, today):
        habit = habit_factory("Sleep")
        store.insert(CompletionEntry(habit_id=habit.id, day=today))
        store.insert(CompletionEntry(habit_id=habit.id, day=today))

        with pytest.raises(StorageError):
            store.save()

        assert not store.has_pending
        assert store.fetch(CompletionEntry) == []

    def test_delete_before_insert_in_one_save(self, store, habit_factory, complete_days, today):
        habit = habit_factory("Yoga")
        complete_days(habit, today)
        existing = store.fetch(CompletionEntry, CompletionFilter.for_day(habit.id, today))[0]

        store.delete(existing)
        store.insert(CompletionEntry(habit_id=habit.id, day=today))
        store.save()

        rows = store.fetch(CompletionEntry)
        assert len(rows) == 1
        assert rows[0].id != existing.id

    def test_deleting_habit_cascades_to_entries(
        self, store, session_factory, habit_factory, complete_days, today
    ):
        habit = habit_factory("Tea")
        keep = habit_factory("Coffee")
        complete_days(habit, today, today - timedelta(days=1))
        complete_days(keep, today)

        store.delete(habit)
        store.save()

        assert _stored_entries(session_factory, habit) == []
        assert len(_stored_entries(session_factory, keep)) == 1
        assert [h.title for h in store.fetch(Habit)] == ["Coffee"]
