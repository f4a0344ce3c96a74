"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

if TYPE_CHECKING:  # pragma: no cover
    from .services.date_ranges import CalendarSettings, GridSettings
    from .services.navigation import LookbackPolicy

load_dotenv()

ENV_PREFIX = "ITERHABITS_"


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = _env(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, *, minimum: int = 0, maximum: int | None = None) -> int:
    """Read a bounded integer setting, rejecting junk instead of guessing."""

    raw = _env(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc
    if value < minimum or (maximum is not None and value > maximum):
        upper = "" if maximum is None else f"..{maximum}"
        raise ValueError(f"{ENV_PREFIX}{name} must be in {minimum}{upper}, got {value}")
    return value


def resolve_timezone(name: str | None) -> tzinfo:
    """Return a tzinfo for an IANA name; ``local``/empty means the host zone."""

    if name is None or not name.strip() or name.strip().lower() in {"local", "system"}:
        local = datetime.now().astimezone().tzinfo
        if local is None:
            raise ValueError("Cannot determine the host timezone; set ITERHABITS_TIMEZONE")
        return local
    key = name.strip()
    if key.upper() in {"UTC", "Z", "GMT"}:
        return timezone.utc
    try:
        return ZoneInfo(key)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {name!r}") from exc


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "IterHabits"
    DB_FILENAME = "iterhabits.db"
    SQLITE_PRAGMAS = {"journal_mode": "wal", "foreign_keys": "on"}

    # Heatmap grid geometry. The resolver pads with these and renderers
    # chunk rows with the same values.
    MONTH_CELLS_PER_ROW = 10
    WEEK_CELLS_PER_ROW = 7
    YEAR_CELLS_PER_ROW = 45
    YEAR_ROWS = 10

    def __init__(self) -> None:
        self.DATA_DIR = self._resolve_data_dir()
        self.DEV_MODE = _env_bool("DEV_MODE", default=True)
        self.DATABASE_URL = _env("DATABASE_URL", self._build_sqlite_url())
        self.FIRST_WEEKDAY = _env_int("FIRST_WEEKDAY", 0, minimum=0, maximum=6)
        self.TIMEZONE = _env("TIMEZONE", "local") or "local"
        self.MAX_DAYS_BACK = _env_int("MAX_DAYS_BACK", 7)
        self.MAX_WEEKS_BACK = _env_int("MAX_WEEKS_BACK", 4)
        self.MAX_MONTHS_BACK = _env_int("MAX_MONTHS_BACK", 12)
        self.MAX_YEARS_BACK = _env_int("MAX_YEARS_BACK", 1)
        # Fail at startup rather than on the first date calculation.
        resolve_timezone(self.TIMEZONE)

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = _env("DATA_DIR", "instance") or "instance"
        base_path = Path(data_root).expanduser()
        try:
            path = base_path.resolve()
            path.mkdir(parents=True, exist_ok=True)
            return path
        except PermissionError:
            fallback_path = Path.home() / f".{self.APP_NAME.lower()}"
            fallback_path.mkdir(parents=True, exist_ok=True)
            return fallback_path.resolve()

    def _build_sqlite_url(self) -> str:
        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        if self.DATABASE_URL.startswith("sqlite"):
            return {"connect_args": {"check_same_thread": False}}
        return {}

    def calendar_settings(self) -> "CalendarSettings":
        """Calendar conventions passed explicitly into date calculations."""

        from .services.date_ranges import CalendarSettings

        return CalendarSettings(
            first_weekday=self.FIRST_WEEKDAY,
            timezone=resolve_timezone(self.TIMEZONE),
        )

    def grid_settings(self) -> "GridSettings":
        from .services.date_ranges import GridSettings

        return GridSettings(
            month_columns=self.MONTH_CELLS_PER_ROW,
            week_columns=self.WEEK_CELLS_PER_ROW,
            year_columns=self.YEAR_CELLS_PER_ROW,
            year_rows=self.YEAR_ROWS,
        )

    def lookback_policy(self) -> "LookbackPolicy":
        from .services.navigation import LookbackPolicy

        return LookbackPolicy(
            days=self.MAX_DAYS_BACK,
            weeks=self.MAX_WEEKS_BACK,
            months=self.MAX_MONTHS_BACK,
            years=self.MAX_YEARS_BACK,
        )


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""

    DEBUG = True
    TESTING = False
