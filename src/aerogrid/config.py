# Aerogrid: ingest, index and serve air quality data
# Copyright (C) 2025 Ruaraidh Dobson, South London Scientific

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.

# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
Runtime configuration, read from the environment.

An optional .env file is loaded first; variables already set in the
environment win over it.

    AEROGRID_DATABASE_URL             SQLAlchemy URL (sqlite:///aerogrid.db)
    AEROGRID_PROVIDERS                comma-separated provider names (GENCAT)
    AEROGRID_IMPORT_INTERVAL_HOURS    hours between periodic imports (1)
    AEROGRID_BACKFILL_PACING_SECONDS  pause between backfill calls (0.5)
    AEROGRID_LOG_LEVEL                logging level (INFO)
    AEROGRID_RUN_SCHEDULER            run startup catch-up and the ticker (true)

Provider credentials (GENCAT_API_URL, GENCAT_API_TOKEN) are read by the
providers themselves when they make a request.
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_DATABASE_URL = "sqlite:///aerogrid.db"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    providers: tuple[str, ...] = ("GENCAT",)
    import_interval_hours: int = 1
    backfill_pacing_seconds: float = 0.5
    log_level: str = "INFO"
    run_scheduler: bool = True


def _read_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < 1:
        raise ValueError(f"{name} must be at least 1, got {value}")
    return value


def _read_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return value


def _read_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    normalized = raw.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def load_settings(env_file: str | None = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        env_file: Path to a .env file; by default python-dotenv
            searches for one

    Raises:
        ValueError: If a numeric or boolean variable can't be parsed
    """
    load_dotenv(env_file)

    providers = tuple(
        name.strip().upper()
        for name in os.getenv("AEROGRID_PROVIDERS", "GENCAT").split(",")
        if name.strip()
    )

    return Settings(
        database_url=os.getenv("AEROGRID_DATABASE_URL") or DEFAULT_DATABASE_URL,
        providers=providers,
        import_interval_hours=_read_int("AEROGRID_IMPORT_INTERVAL_HOURS", 1),
        backfill_pacing_seconds=_read_float("AEROGRID_BACKFILL_PACING_SECONDS", 0.5),
        log_level=(os.getenv("AEROGRID_LOG_LEVEL") or "INFO").upper(),
        run_scheduler=_read_bool("AEROGRID_RUN_SCHEDULER", True),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
