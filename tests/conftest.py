"""Pytest configuration and shared fixtures for IterHabits tests.

Every test gets its own SQLite file, so repositories and services run
against a real database without touching the application data directory.
"""

from __future__ import annotations

from datetime import date, timezone
from pathlib import Path
from typing import Any, Optional, Sequence

import pytest
from sqlmodel import Session, SQLModel, create_engine

from iterhabits.config import BaseConfig
from iterhabits.errors import FilterEvaluationError
from iterhabits.infra.database import apply_sqlite_pragmas, create_session_factory
from iterhabits.infra.repositories import SQLModelCompletionRepository, SQLModelRecordStore
from iterhabits.models import CompletionEntry, Habit, HabitType
from iterhabits.services.date_ranges import CalendarSettings, DateRangeResolver
from iterhabits.services.habits import HabitService

# Sunday; the Monday-first week containing it is Mar 4 - Mar 10.
TODAY = date(2024, 3, 10)


class ScanOnlyStore(SQLModelRecordStore):
    """Store that cannot evaluate filters, forcing the in-process scan."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.filtered_attempts = 0

    def fetch(
        self,
        kind: Any,
        where: Optional[Any] = None,
        limit: Optional[int] = None,
        *,
        order_by: Any = None,
        session: Optional[Session] = None,
    ) -> Sequence[Any]:
        if where is not None:
            self.filtered_attempts += 1
            raise FilterEvaluationError("predicate not supported by this store")
        return super().fetch(kind, None, limit, order_by=order_by, session=session)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine(tmp_path: Path):
    """Create an isolated SQLite database for each test.

    Yields:
        Engine: SQLModel engine with all tables created
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        echo=False,
        connect_args={"check_same_thread": False},
    )
    apply_sqlite_pragmas(engine, BaseConfig.SQLITE_PRAGMAS)
    SQLModel.metadata.create_all(engine)

    yield engine

    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Transactional session scopes, as used by the application."""
    return create_session_factory(db_engine)


@pytest.fixture
def store(session_factory) -> SQLModelRecordStore:
    return SQLModelRecordStore(session_factory)


@pytest.fixture
def scan_only_store(session_factory) -> ScanOnlyStore:
    return ScanOnlyStore(session_factory)


@pytest.fixture
def completion_repo(store) -> SQLModelCompletionRepository:
    return SQLModelCompletionRepository(store)


@pytest.fixture
def scan_repo(scan_only_store) -> SQLModelCompletionRepository:
    """Completion repository whose every read takes the fallback path."""
    return SQLModelCompletionRepository(scan_only_store)


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def resolver() -> DateRangeResolver:
    return DateRangeResolver(CalendarSettings(first_weekday=0, timezone=timezone.utc))


@pytest.fixture
def service(store, completion_repo, resolver, today) -> HabitService:
    return HabitService(store, completion_repo, resolver, clock=lambda: today)


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def habit_factory(service):
    """Factory for creating persisted habits.

    Returns:
        Callable: Function that creates and persists Habit instances
    """

    def _create_habit(
        title: str = "Test Habit",
        habit_type: HabitType = HabitType.NEUTRAL,
    ) -> Habit:
        return service.create_habit(title, habit_type)

    return _create_habit


@pytest.fixture
def complete_days(session_factory):
    """Insert completion entries directly, bypassing the toggle logic."""

    def _complete(habit: Habit, *days: date) -> None:
        with session_factory() as session:
            for day in days:
                session.add(CompletionEntry(habit_id=habit.id, day=day))

    return _complete
