"""Error types surfaced by the habit completion engine."""

from __future__ import annotations


class IterHabitsError(Exception):
    """Base class for recoverable engine failures."""


class InvalidDateCalculation(IterHabitsError):
    """A calendar computation could not produce a boundary."""


class StorageError(IterHabitsError):
    """Wraps a failure raised by the underlying record store."""


class FilterEvaluationError(StorageError):
    """The store could not evaluate a predicate-filtered fetch.

    Callers holding an equivalent in-process predicate may recover by
    scanning the unfiltered collection instead.
    """


class ValidationError(IterHabitsError, ValueError):
    """Input rejected before reaching storage (e.g. an empty habit title)."""


__all__ = [
    "FilterEvaluationError",
    "InvalidDateCalculation",
    "IterHabitsError",
    "StorageError",
    "ValidationError",
]
