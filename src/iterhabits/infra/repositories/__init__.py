"""Concrete repository implementations using SQLModel."""

from .completion import SQLModelCompletionRepository
from .store import SQLModelRecordStore

__all__ = ["SQLModelCompletionRepository", "SQLModelRecordStore"]
