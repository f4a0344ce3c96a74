"""Habit tracking data structures."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import ClassVar

from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel


class HabitType(str, Enum):
    """Display category of a habit; affects colour only."""

    GOOD = "good"
    BAD = "bad"
    NEUTRAL = "neutral"

    @property
    def color(self) -> str:
        return {
            HabitType.GOOD: "green",
            HabitType.BAD: "red",
            HabitType.NEUTRAL: "gray",
        }[self]


class Habit(SQLModel, table=True):
    """A user-defined habit tracked once per calendar day."""

    __tablename__: ClassVar[str] = "habit"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    title: str = Field(nullable=False, max_length=80, index=True)
    habit_type: HabitType = Field(default=HabitType.NEUTRAL, nullable=False)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    entries: list["CompletionEntry"] = Relationship(
        back_populates="habit",
        sa_relationship=relationship(
            "CompletionEntry",
            back_populates="habit",
            cascade="all, delete-orphan",
        ),
    )


class CompletionEntry(SQLModel, table=True):
    """A habit was completed on ``day``.

    Presence of the row is the completion signal; un-completing a day deletes
    it. At most one row exists per (habit, day).
    """

    __tablename__: ClassVar[str] = "completion_entry"
    __table_args__ = (UniqueConstraint("habit_id", "day", name="uq_completion_habit_day"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    habit_id: uuid.UUID = Field(foreign_key="habit.id", nullable=False, index=True)
    day: date = Field(nullable=False, index=True)

    habit: "Habit" = Relationship(
        back_populates="entries",
        sa_relationship=relationship("Habit", back_populates="entries"),
    )
