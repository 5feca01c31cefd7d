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
Ingestion reconciler: the one place normalised data becomes persisted state.

Batch imports (provider feeds) are best-effort. A bad row is logged and
skipped, an unknown station is created on the fly, an unknown pollutant is
dropped, and duplicates are discarded by the store's uniqueness constraint.
Nothing in a batch raises to the caller.

The citizen path is the opposite: one reading, one caller waiting, so every
problem surfaces as a distinct exception (see `aerogrid.exceptions`).

The reconciler keeps no state between calls. Counters are returned as an
`ImportSummary` from each import, so concurrent runs cannot trip over each
other.
"""

from dataclasses import asdict, dataclass, fields
from datetime import datetime
from logging import getLogger
from typing import Callable, Iterable

from .cache import StationDirectory
from .database_operations import AirQualityStore, Station
from .exceptions import ServerError, ValidationError
from .metrics import classify
from .normalise import parse_float, to_measurement_shapes, to_station_shape
from .pollutants import PollutantKind, normalise_pollutant
from .types import CitizenReading, RawProviderRecord, SourceType, StationShape

logger = getLogger(__name__)


@dataclass
class ImportSummary:
    """Counts for one import call."""

    received: int = 0
    created_stations: int = 0
    existing: int = 0
    inserted: int = 0
    duplicates: int = 0
    skipped: int = 0
    failed: int = 0

    def __add__(self, other: "ImportSummary") -> "ImportSummary":
        return ImportSummary(
            **{f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)}
        )

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def build_station(shape: StationShape) -> Station:
    """
    Turn a normalised station shape into a Station row.

    Raises:
        ValueError: If the station has no code or no usable coordinates
    """
    if not shape.get("code"):
        raise ValueError("Station has no code")
    if shape.get("latitude") is None or shape.get("longitude") is None:
        raise ValueError(f"Station {shape['code']} has no usable coordinates")

    source_type = shape.get("source_type") or SourceType.OFFICIAL
    return Station(
        code=shape["code"],
        name=shape.get("name"),
        municipality=shape.get("municipality"),
        latitude=shape["latitude"],
        longitude=shape["longitude"],
        source_type=SourceType(source_type).value,
        is_active=True,
    )


class IngestionReconciler:
    """
    Reconcile raw provider and citizen readings against the store.

    Args:
        store: Persistent store
        clock: Returns "now"; used to timestamp citizen readings
    """

    def __init__(
        self, store: AirQualityStore, clock: Callable[[], datetime] = datetime.now
    ):
        self.store = store
        self.clock = clock

    # ------------------------------------------------------------------
    # Stations
    # ------------------------------------------------------------------

    def import_station_batch(self, stations: Iterable[StationShape]) -> ImportSummary:
        """
        Persist every station not already in the store.

        Existing codes are left untouched and counted as `existing`. A station
        that fails to save is logged and counted; the rest of the batch
        carries on.
        """
        summary = ImportSummary()
        for shape in stations:
            summary.received += 1
            self._import_station(shape, summary)
        return summary

    def _import_station(self, shape: StationShape, summary: ImportSummary) -> None:
        code = shape.get("code")
        try:
            if code and self.store.find_station_by_code(code) is not None:
                logger.debug(f"Station {code} already exists")
                summary.existing += 1
                return

            self.store.save_station(build_station(shape))
            summary.created_stations += 1
            logger.debug(f"New station added: {code}")
        except Exception as e:
            summary.failed += 1
            logger.error(f"Unexpected error saving station {code}: {e}")

    # ------------------------------------------------------------------
    # Measurements
    # ------------------------------------------------------------------

    def import_measurement_batch(
        self, raw_records: Iterable[RawProviderRecord]
    ) -> ImportSummary:
        """
        Persist the hourly readings of a batch of provider records.

        The station directory is loaded from the store once per call. A record
        whose station is unknown triggers creation of that station from the
        record's own metadata; if that fails the record is skipped. Records
        with an unrecognised pollutant are skipped. Each reading is written
        with an idempotent insert, so importing the same batch twice leaves
        the store unchanged the second time.
        """
        summary = ImportSummary()

        logger.debug("Loading station catalog into memory...")
        directory = StationDirectory.load(self.store.find_all_stations())

        for raw in raw_records:
            summary.received += 1

            station = self._resolve_station(raw, directory, summary)
            if station is None:
                summary.skipped += 1
                continue

            pollutant = normalise_pollutant(raw.get("pollutant"))
            if pollutant is None:
                logger.debug(
                    f"Skipping unrecognised pollutant {raw.get('pollutant')!r} "
                    f"for station {station.code}"
                )
                summary.skipped += 1
                continue

            try:
                for shape in to_measurement_shapes(raw):
                    self._persist(station, pollutant, shape["value"], shape["timestamp"], summary)
            except ValueError as e:
                summary.failed += 1
                logger.error(f"Malformed record for station {station.code}: {e}")

        return summary

    def _resolve_station(
        self,
        raw: RawProviderRecord,
        directory: StationDirectory,
        summary: ImportSummary,
    ) -> Station | None:
        code = raw.get("station_code")
        station = directory.get(code)
        if station is not None:
            return station

        if not code:
            logger.warning("Skipping record without a station code")
            return None

        logger.info(f"Unknown station detected: {code}. Attempting to create it...")
        try:
            created = ImportSummary()
            self._import_station(to_station_shape(raw), created)
            summary.created_stations += created.created_stations

            station = self.store.find_station_by_code(code)
        except Exception as e:
            logger.error(f"Error handling new station {code}: {e}")
            return None

        if station is None:
            logger.warning(f"Could not create station {code}; skipping its records")
            return None

        directory.put(code, station)
        return station

    def _persist(
        self,
        station: Station,
        pollutant: PollutantKind,
        value: float,
        timestamp: datetime,
        summary: ImportSummary,
    ) -> None:
        aqi = classify(pollutant, value)
        try:
            inserted = self.store.upsert_measurement(
                station.id, pollutant, value, timestamp, aqi
            )
        except Exception as e:
            summary.failed += 1
            logger.error(
                f"Error inserting measurement {station.code}/{pollutant}@{timestamp}: {e}"
            )
            return

        if inserted:
            summary.inserted += 1
        else:
            summary.duplicates += 1

    # ------------------------------------------------------------------
    # Citizen readings
    # ------------------------------------------------------------------

    def ingest_citizen_reading(
        self, station: Station, reading: CitizenReading
    ) -> dict:
        """
        Store a single reading from a citizen device, stamped with "now".

        Args:
            station: Station resolved from the device's API key
            reading: Pollutant name and value as submitted

        Returns:
            dict: The stored reading (station_code, pollutant, value,
                timestamp, aqi, inserted)

        Raises:
            ValidationError: Unknown pollutant, or a missing, non-numeric,
                negative or non-finite value
            ServerError: The store could not be written
        """
        pollutant = normalise_pollutant(reading.get("pollutant"))
        if pollutant is None:
            logger.warning(
                f"Unknown or null pollutant {reading.get('pollutant')!r} "
                f"from station {station.code}"
            )
            raise ValidationError(f"Unknown or null pollutant: {reading.get('pollutant')}")

        value = parse_float(reading.get("value"))
        if value is None or value < 0:
            raise ValidationError(
                f"Invalid value for {pollutant}: {reading.get('value')!r}"
            )

        aqi = classify(pollutant, value)
        timestamp = self.clock()
        try:
            inserted = self.store.upsert_measurement(
                station.id, pollutant, value, timestamp, aqi
            )
        except Exception as e:
            logger.error(f"Error saving citizen data for {station.code}: {e}")
            raise ServerError("Database error") from e

        logger.debug(
            f"Citizen data received [{station.code}]: {pollutant} = {value} (AQI: {aqi})"
        )
        return {
            "station_code": station.code,
            "pollutant": str(pollutant),
            "value": value,
            "timestamp": timestamp,
            "aqi": aqi,
            "inserted": inserted,
        }
