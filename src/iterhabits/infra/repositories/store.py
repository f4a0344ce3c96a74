"""SQLModel-backed record store.

The store is the single access point to the database: every operation runs
under one re-entrant lock, so multi-step sequences executed inside
``atomic()`` cannot interleave with any other store call.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Sequence

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import ArgumentError, CompileError, SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from ...domain.repositories.store import RecordFilter, RecordT
from ...errors import FilterEvaluationError, StorageError
from ...infra.database import SessionFactory
from ...logging_config import get_logger

logger = get_logger(__name__)

# Raised while building or compiling a filtered statement.
_FILTER_ERRORS = (CompileError, ArgumentError, NotImplementedError)


class SQLModelRecordStore:
    """Queue-and-save record store over a session factory."""

    def __init__(self, session_factory: SessionFactory):
        """Initialize with a session factory."""
        self.session_factory = session_factory
        self._lock = threading.RLock()
        self._pending_inserts: list[SQLModel] = []
        self._pending_deletes: list[SQLModel] = []

    @property
    def has_pending(self) -> bool:
        return bool(self._pending_inserts or self._pending_deletes)

    def insert(self, record: SQLModel) -> None:
        with self._lock:
            self._pending_inserts.append(record)

    def delete(self, record: SQLModel) -> None:
        with self._lock:
            self._pending_deletes.append(record)

    def save(self) -> None:
        """Apply queued work in one transaction, deletes before inserts.

        The queue is cleared whether or not the transaction succeeds.
        """
        with self._lock:
            inserts, self._pending_inserts = self._pending_inserts, []
            deletes, self._pending_deletes = self._pending_deletes, []
            if not inserts and not deletes:
                return
            try:
                with self.session_factory() as session:
                    for record in deletes:
                        persistent = session.get(type(record), _identity(record))
                        if persistent is not None:
                            session.delete(persistent)
                    session.flush()
                    for record in inserts:
                        session.add(record)
            except SQLAlchemyError as exc:
                logger.error(
                    "Save failed",
                    extra={"inserts": len(inserts), "deletes": len(deletes)},
                )
                raise StorageError(f"Failed to save changes: {exc}") from exc

    def fetch(
        self,
        kind: type[RecordT],
        where: Optional[RecordFilter] = None,
        limit: Optional[int] = None,
        *,
        order_by: Any = None,
        session: Optional[Session] = None,
    ) -> Sequence[RecordT]:
        """Return records of ``kind`` matching ``where``.

        Records fetched with a caller-supplied ``session`` stay attached to
        it; otherwise they are returned detached.

        Raises:
            FilterEvaluationError: ``where`` could not be turned into SQL.
            StorageError: any other database failure.
        """
        with self._lock:
            if session is not None:
                return self._fetch(session, kind, where, limit, order_by)
            try:
                with self.session_factory() as own_session:
                    return self._fetch(own_session, kind, where, limit, order_by)
            except SQLAlchemyError as exc:
                raise StorageError(f"Failed to fetch {kind.__name__}: {exc}") from exc

    @contextmanager
    def atomic(self) -> Iterator[Session]:
        """Hold the store lock and one transaction for the whole block."""

        with self._lock:
            try:
                with self.session_factory() as session:
                    yield session
            except SQLAlchemyError as exc:
                raise StorageError(f"Transaction failed: {exc}") from exc

    def _fetch(
        self,
        session: Session,
        kind: type[RecordT],
        where: Optional[RecordFilter],
        limit: Optional[int],
        order_by: Any,
    ) -> list[RecordT]:
        statement = select(kind)
        try:
            if where is not None:
                statement = statement.where(*where.clauses())
            if order_by is not None:
                statement = statement.order_by(order_by)
            if limit is not None:
                statement = statement.limit(limit)
            return list(session.exec(statement).all())
        except _FILTER_ERRORS as exc:
            if where is None:
                raise StorageError(f"Failed to fetch {kind.__name__}: {exc}") from exc
            raise FilterEvaluationError(
                f"Cannot evaluate filter on {kind.__name__}: {exc}"
            ) from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to fetch {kind.__name__}: {exc}") from exc


def _identity(record: SQLModel) -> tuple:
    return tuple(sa_inspect(type(record)).primary_key_from_instance(record))
