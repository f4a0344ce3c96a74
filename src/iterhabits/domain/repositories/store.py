"""Record store protocol."""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Any, Optional, Protocol, Sequence, TypeVar

from sqlmodel import Session, SQLModel

RecordT = TypeVar("RecordT", bound=SQLModel)


class RecordFilter(Protocol):
    """A predicate the store can push down, with an in-process twin."""

    def clauses(self) -> list[Any]:
        """Return SQL expressions selecting the matching rows."""
        ...

    def matches(self, record: Any) -> bool:
        """Return True when ``record`` satisfies the same predicate."""
        ...


class RecordStore(Protocol):
    """Durable record collection the completion engine is built on."""

    def insert(self, record: SQLModel) -> None:
        """Queue a record for insertion on the next save."""
        ...

    def delete(self, record: SQLModel) -> None:
        """Queue a record for deletion on the next save."""
        ...

    def save(self) -> None:
        """Apply queued inserts and deletes in one transaction."""
        ...

    def fetch(
        self,
        kind: type[RecordT],
        where: Optional[RecordFilter] = None,
        limit: Optional[int] = None,
        *,
        order_by: Any = None,
        session: Optional[Session] = None,
    ) -> Sequence[RecordT]:
        """Return records of ``kind``, optionally filtered and limited."""
        ...

    def atomic(self) -> AbstractContextManager[Session]:
        """Serialize a multi-step read/modify/write inside one transaction."""
        ...
