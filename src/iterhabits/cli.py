"""Command-line interface for IterHabits."""

from __future__ import annotations

from datetime import date, datetime
from typing import Mapping, Optional, Sequence

import click

from .context import AppContext, create_app_context
from .errors import IterHabitsError
from .logging_config import setup_logging
from .models.habit import Habit, HabitType
from .services import navigation
from .services.date_ranges import Granularity
from .services.statistics import completion_summary

CELL_DONE = "#"
CELL_MISSED = "."
CELL_FUTURE = " "
CELL_PADDING = " "

GRANULARITY_CHOICE = click.Choice([g.value for g in Granularity], case_sensitive=False)
DATE_OPTION = click.DateTime(formats=["%Y-%m-%d"])


def render_grid(
    rows: Sequence[Sequence[Optional[date]]],
    completions: Mapping[date, bool],
    today: date,
) -> list[str]:
    """Render grid rows as text, one character per cell."""

    lines = []
    for row in rows:
        cells = []
        for cell in row:
            if cell is None:
                cells.append(CELL_PADDING)
            elif cell > today:
                cells.append(CELL_FUTURE)
            elif completions.get(cell):
                cells.append(CELL_DONE)
            else:
                cells.append(CELL_MISSED)
        lines.append("".join(cells).rstrip())
    return lines


def _app(ctx: click.Context) -> AppContext:
    return ctx.obj


def _require_habit(app: AppContext, key: str) -> Habit:
    habit = app.habit_service.find_habit(key)
    if habit is None:
        raise click.ClickException(f"No habit named {key!r}")
    return habit


def _anchor(app: AppContext, granularity: Granularity, requested: Optional[datetime]) -> date:
    today = app.today()
    if requested is None:
        return today
    return navigation.clamp(requested.date(), granularity, today, app.lookback)


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Track daily habits and view them by day, week, month or year."""

    if ctx.obj is None:
        app = create_app_context()
        setup_logging(app.config)
        ctx.obj = app


@cli.command("add")
@click.argument("title")
@click.option(
    "--type",
    "habit_type",
    type=click.Choice([t.value for t in HabitType], case_sensitive=False),
    default=HabitType.NEUTRAL.value,
    show_default=True,
)
@click.pass_context
def add_habit(ctx: click.Context, title: str, habit_type: str) -> None:
    """Create a habit."""

    app = _app(ctx)
    try:
        habit = app.habit_service.create_habit(title, habit_type)
    except IterHabitsError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Created {habit.title} ({habit.habit_type.value})")


@cli.command("list")
@click.pass_context
def list_habits(ctx: click.Context) -> None:
    """List habits with today's completion state."""

    app = _app(ctx)
    try:
        habits = app.habit_service.fetch_habits()
        today_maps = app.habit_service.fetch_completion_maps(Granularity.DAY, app.today(), habits)
    except IterHabitsError as exc:
        raise click.ClickException(str(exc)) from exc

    if not habits:
        click.echo("No habits yet. Add one with `iterhabits add TITLE`.")
        return
    for habit in habits:
        done = any(today_maps.get(habit.id, {}).values())
        mark = "x" if done else " "
        click.echo(f"[{mark}] {habit.title} ({habit.habit_type.value})")


@cli.command("toggle")
@click.argument("title")
@click.option("--date", "on", type=DATE_OPTION, default=None, help="Day to toggle (default today).")
@click.pass_context
def toggle_habit(ctx: click.Context, title: str, on: Optional[datetime]) -> None:
    """Mark a day complete, or un-mark it if already complete."""

    app = _app(ctx)
    today = app.today()
    day = on.date() if on is not None else today
    if day > today:
        raise click.ClickException("Cannot toggle a day in the future")
    try:
        habit = _require_habit(app, title)
        completed = app.habit_service.toggle_completion(habit, day)
    except IterHabitsError as exc:
        raise click.ClickException(str(exc)) from exc
    state = "completed" if completed else "not completed"
    click.echo(f"{habit.title} on {day.isoformat()}: {state}")


@cli.command("show")
@click.option("--granularity", "-g", type=GRANULARITY_CHOICE, default=Granularity.MONTH.value)
@click.option("--date", "on", type=DATE_OPTION, default=None, help="Anchor day (default today).")
@click.pass_context
def show(ctx: click.Context, granularity: str, on: Optional[datetime]) -> None:
    """Render a completion heatmap for every habit."""

    app = _app(ctx)
    gran = Granularity.parse(granularity)
    today = app.today()
    try:
        anchor = _anchor(app, gran, on)
        habits = app.habit_service.fetch_habits()
        maps = app.habit_service.fetch_completion_maps(gran, anchor, habits)
        rows = app.resolver.grid_rows(gran, anchor)
        cells = app.resolver.padded_grid(gran, anchor)
        label = app.resolver.label(gran, anchor)
    except IterHabitsError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(f"{gran.view_title}: {label}")
    for habit in habits:
        completions = maps.get(habit.id, {})
        summary = completion_summary(
            [cell for cell in cells if cell is None or cell <= today],
            lambda day: completions.get(day, False),
        )
        click.echo(f"\n{habit.title} [{summary}]")
        for line in render_grid(rows, completions, today):
            click.echo(f"  {line}")


@cli.command("stats")
@click.argument("title")
@click.option("--granularity", "-g", type=GRANULARITY_CHOICE, default=Granularity.YEAR.value)
@click.option("--date", "on", type=DATE_OPTION, default=None, help="Anchor day (default today).")
@click.pass_context
def stats(ctx: click.Context, title: str, granularity: str, on: Optional[datetime]) -> None:
    """Show streak and completion rate for one habit."""

    app = _app(ctx)
    gran = Granularity.parse(granularity)
    try:
        habit = _require_habit(app, title)
        anchor = _anchor(app, gran, on)
        result = app.habit_service.fetch_statistics(habit, gran, anchor)
    except IterHabitsError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(f"{habit.title} - {app.resolver.label(gran, anchor)}")
    click.echo(f"  current streak: {result.streak}")
    click.echo(f"  longest streak: {result.longest_streak}")
    click.echo(f"  completion:     {result.percentage}% ({result.band})")


@cli.command("delete")
@click.argument("title")
@click.option("--yes", is_flag=True, default=False, help="Skip the confirmation prompt.")
@click.pass_context
def delete_habit(ctx: click.Context, title: str, yes: bool) -> None:
    """Delete a habit and all of its history."""

    app = _app(ctx)
    try:
        habit = _require_habit(app, title)
        if not yes:
            click.confirm(f"Delete {habit.title} and all its completions?", abort=True)
        app.habit_service.delete_habit(habit)
    except IterHabitsError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Deleted {habit.title}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
