"""Service module exports."""

from . import date_ranges, navigation, statistics

__all__ = ["date_ranges", "navigation", "statistics"]
