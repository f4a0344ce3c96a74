"""Application context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from sqlalchemy.engine import Engine

from .config import BaseConfig
from .infra.database import SessionFactory, bootstrap_database
from .infra.repositories import SQLModelCompletionRepository, SQLModelRecordStore
from .services.date_ranges import DateRangeResolver
from .services.habits import HabitService
from .services.navigation import LookbackPolicy


@dataclass
class AppContext:
    """Everything a view or command needs, wired once at startup."""

    config: BaseConfig
    engine: Engine
    session_factory: SessionFactory

    store: SQLModelRecordStore
    completion_repo: SQLModelCompletionRepository

    resolver: DateRangeResolver
    lookback: LookbackPolicy
    habit_service: HabitService

    def today(self) -> date:
        return self.habit_service.today()


def create_app_context(
    config: Optional[BaseConfig] = None,
    *,
    clock: Optional[Callable[[], date]] = None,
) -> AppContext:
    """Create the database, the single record store and the services on top."""

    if config is None:
        config = BaseConfig()

    engine, session_factory = bootstrap_database(config)

    # One store per process: it is the serialization point for all access.
    store = SQLModelRecordStore(session_factory)
    completion_repo = SQLModelCompletionRepository(store)
    resolver = DateRangeResolver(config.calendar_settings(), config.grid_settings())

    return AppContext(
        config=config,
        engine=engine,
        session_factory=session_factory,
        store=store,
        completion_repo=completion_repo,
        resolver=resolver,
        lookback=config.lookback_policy(),
        habit_service=HabitService(store, completion_repo, resolver, clock=clock),
    )
