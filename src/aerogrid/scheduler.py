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
Ingestion scheduling: startup catch-up, the hourly import and manual backfill.

The scheduler keeps no state of its own beyond a run-once flag. Which days to
import is worked out from the latest measurement timestamp in the store, so a
crashed or restarted run just recomputes its range. Writes are idempotent, so
re-importing a day is harmless.

Every provider call is isolated: one provider (or one day) failing is logged
and the rest of the run carries on.
"""

import threading
import time
from datetime import date, datetime, timedelta
from logging import getLogger
from typing import Callable, Sequence

import schedule

from .database_operations import AirQualityStore
from .decorators import with_logging
from .ingestion import ImportSummary
from .types import DataImportProvider

logger = getLogger(__name__)

# How often the ticker thread checks for due jobs
POLL_INTERVAL_SECONDS = 60


def catch_up_dates(latest: date | None, today: date) -> list[date]:
    """
    Days to import at startup, oldest first.

    Example:
        >>> catch_up_dates(date(2026, 1, 27), date(2026, 1, 29))
        [datetime.date(2026, 1, 27), datetime.date(2026, 1, 28), datetime.date(2026, 1, 29)]
    """
    if latest is None or latest >= today:
        return [today]
    return [latest + timedelta(days=i) for i in range((today - latest).days + 1)]


def backfill_dates(start: date, days_back: int) -> list[date]:
    """Days to backfill, newest first: start, start - 1, ... (days_back days)."""
    return [start - timedelta(days=i) for i in range(days_back)]


class IngestionScheduler:
    """
    Drive the configured providers.

    Args:
        providers: Providers to import from, in order
        store: Persistent store, read for the latest measurement timestamp
        pacing_seconds: Delay after each provider call during a backfill
        clock: Returns "now"
        sleep: Blocking sleep used for pacing

    Example:
        >>> scheduler = IngestionScheduler(providers, store)
        >>> scheduler.run_startup_reconciliation()
        >>> scheduler.start(every_hours=1)
    """

    def __init__(
        self,
        providers: Sequence[DataImportProvider],
        store: AirQualityStore,
        pacing_seconds: float = 0.5,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.providers = list(providers)
        self.store = store
        self.pacing_seconds = pacing_seconds
        self.clock = clock
        self.sleep = sleep

        self._startup_done = False
        self._startup_lock = threading.Lock()

        self._schedule = schedule.Scheduler()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    @with_logging()
    def run_startup_reconciliation(self) -> ImportSummary:
        """
        Close any gap left by downtime.

        Imports every provider's station catalogue, then every day from the
        latest stored measurement through today, oldest first. Only runs once
        per scheduler; later calls log a warning and return an empty summary.
        """
        with self._startup_lock:
            if self._startup_done:
                logger.warning("Startup reconciliation already ran; ignoring")
                return ImportSummary()
            self._startup_done = True

        summary = self._import_all_stations()

        latest = self.store.find_latest_measurement_timestamp()
        today = self.clock().date()
        days = catch_up_dates(latest.date() if latest else None, today)

        if latest is None:
            logger.info("No measurements in the database. Importing today only.")
        elif len(days) > 1:
            logger.info(f"Gap detected. Catching up from {days[0]} to {today}")

        for day in days:
            for provider in self.providers:
                summary += self._import_day(provider, day)

        logger.info(f"Startup reconciliation finished: {summary.as_dict()}")
        return summary

    @with_logging()
    def run_periodic_import(self) -> ImportSummary:
        """Import station catalogues and the current window from every provider."""
        summary = ImportSummary()
        for provider in self.providers:
            logger.info(f"Starting ingestion for provider: {provider.name}")
            try:
                summary += provider.import_stations()
                summary += provider.import_measurements()
            except Exception as e:
                logger.error(f"Error processing provider {provider.name}: {e}")

        logger.info(f"Periodic import finished: {summary.as_dict()}")
        return summary

    @with_logging()
    def run_backfill(self, days_back: int) -> ImportSummary:
        """
        Re-import `days_back` days, walking backward from the latest stored
        measurement date (or today when the store is empty).

        Raises:
            ValueError: If days_back is less than 1
        """
        if days_back < 1:
            raise ValueError(f"days_back must be at least 1, got {days_back}")

        summary = self._import_all_stations()

        latest = self.store.find_latest_measurement_timestamp()
        start = latest.date() if latest else self.clock().date()
        logger.info(f"Starting backfill of {days_back} days from {start}")

        for day in backfill_dates(start, days_back):
            for provider in self.providers:
                summary += self._import_day(provider, day)
                self.sleep(self.pacing_seconds)

        logger.info(f"Backfill finished: {summary.as_dict()}")
        return summary

    # ------------------------------------------------------------------
    # Ticker
    # ------------------------------------------------------------------

    def start(self, every_hours: int = 1) -> None:
        """Run the periodic import every `every_hours` hours in a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Scheduler already running")
            return

        self._schedule.clear()
        self._schedule.every(every_hours).hours.do(self._run_job, self.run_periodic_import)
        self._stop_event.clear()

        self._thread = threading.Thread(
            target=self._run_continuously, name="aerogrid-scheduler", daemon=True
        )
        self._thread.start()
        logger.info(f"Scheduler started in background thread (every {every_hours}h)")

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Scheduler thread still busy; it will exit after the current job")
            else:
                self._thread = None
        self._schedule.clear()
        logger.info("Scheduler stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run_continuously(self) -> None:
        while not self._stop_event.is_set():
            self._schedule.run_pending()
            self._stop_event.wait(POLL_INTERVAL_SECONDS)

    @staticmethod
    def _run_job(job: Callable[[], object]) -> None:
        # An escaping exception would end the ticker thread
        try:
            job()
        except Exception as e:
            logger.error(f"Scheduled job failed: {e}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _import_all_stations(self) -> ImportSummary:
        summary = ImportSummary()
        for provider in self.providers:
            try:
                summary += provider.import_stations()
            except Exception as e:
                logger.error(f"Error importing stations for {provider.name}: {e}")
        return summary

    def _import_day(self, provider: DataImportProvider, day: date) -> ImportSummary:
        try:
            return provider.import_measurements(day)
        except Exception as e:
            logger.error(f"Failed to import {provider.name} data for {day}: {e}")
            return ImportSummary()
