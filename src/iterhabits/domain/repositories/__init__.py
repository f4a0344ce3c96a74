"""Repository protocol definitions for domain layer."""

from .completion import CompletionRepository
from .store import RecordFilter, RecordStore

__all__ = ["CompletionRepository", "RecordFilter", "RecordStore"]
