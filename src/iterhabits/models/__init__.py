"""SQLModel table exports."""

from .habit import CompletionEntry, Habit, HabitType

__all__ = ["CompletionEntry", "Habit", "HabitType"]
