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
Core type definitions for Aerogrid.

This module defines the transient record shapes that flow through the
ingestion pipeline, and the interface every data provider implements.
Persisted rows live in `database_operations`.
"""

from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Protocol, TypedDict

if TYPE_CHECKING:
    from .ingestion import ImportSummary


class SourceType(str, Enum):
    """Who operates a station."""

    OFFICIAL = "OFFICIAL"  # Government or authority-operated
    CITIZEN = "CITIZEN"  # User-operated device

    def __str__(self) -> str:
        return self.value


# Standardised record shapes
class RawProviderRecord(TypedDict, total=False):
    """
    One provider row: a day of hourly values for one station and pollutant.

    Station fields are kept as text, exactly as the provider sent them.
    `hourly_values` maps hour-slot labels ("h01".."h24") to raw text values,
    in the order the provider sent them.
    """

    station_code: str
    station_name: str | None
    municipality: str | None
    latitude: str | None
    longitude: str | None
    station_type: str | None
    date: str | None
    pollutant: str | None
    units: str | None
    hourly_values: dict[str, str | None]


class StationShape(TypedDict):
    """
    Normalised station metadata, ready to be persisted.

    Coordinates are WGS84 decimal degrees, or None if the provider sent
    something unparseable.
    """

    code: str
    name: str | None
    municipality: str | None
    latitude: float | None
    longitude: float | None
    source_type: SourceType


class MeasurementShape(TypedDict):
    """A single normalised reading for one hour slot."""

    station_code: str
    pollutant: str | None
    value: float
    timestamp: datetime


class CitizenReading(TypedDict):
    """A reading pushed by a citizen device. Timestamped on arrival."""

    pollutant: str | None
    value: float | None


class DataImportProvider(Protocol):
    """
    Interface for an upstream data provider.

    A provider knows how to fetch its own station catalogue and measurement
    windows, and hands the raw records to the ingestion reconciler.
    """

    @property
    def name(self) -> str:
        """Provider name, as used in logs and configuration."""
        ...

    def import_stations(self) -> "ImportSummary":
        """Import the provider's station catalogue."""
        ...

    def import_measurements(self, day: date | None = None) -> "ImportSummary":
        """Import measurements since `day`, or the provider's current window."""
        ...
