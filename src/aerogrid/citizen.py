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
Citizen stations: registration and the ingestion gate.

Citizen devices push one reading at a time, authenticated by a per-station
API key. The gate checks the key and hands the reading to the same
reconciler the provider imports use.
"""

import secrets
from logging import getLogger

from .database_operations import AirQualityStore, Station
from .exceptions import AuthenticationError, ServerError
from .ingestion import IngestionReconciler
from .types import CitizenReading, SourceType

logger = getLogger(__name__)

CITIZEN_CODE_PREFIX = "AG-"


def generate_station_code() -> str:
    """Generate a citizen station code: "AG-" + 8 uppercase hex characters."""
    return CITIZEN_CODE_PREFIX + secrets.token_hex(4).upper()


def register_citizen_station(
    store: AirQualityStore,
    name: str,
    municipality: str | None,
    latitude: float,
    longitude: float,
    owner_id: int | None = None,
    code: str | None = None,
) -> tuple[Station, str]:
    """
    Create a citizen-operated station and an API key for its device.

    Args:
        store: Persistent store
        name: Display name of the station
        municipality: Municipality the station is in
        latitude: WGS84 latitude
        longitude: WGS84 longitude
        owner_id: User who owns the device
        code: Station code; generated when omitted

    Returns:
        tuple[Station, str]: The saved station and its new API key

    Raises:
        ValueError: If the code is already taken
    """
    code = code or generate_station_code()
    if store.find_station_by_code(code) is not None:
        raise ValueError(f"Station code {code} is already in use")

    station = store.save_station(
        Station(
            code=code,
            name=name,
            municipality=municipality,
            latitude=latitude,
            longitude=longitude,
            source_type=SourceType.CITIZEN.value,
            owner_id=owner_id,
        )
    )
    api_key = store.create_api_key(station.id)
    logger.info(f"Registered citizen station {code}")
    return station, api_key


class CitizenIngestionGate:
    """
    Authenticate a citizen device and forward its reading.

    Raises AuthenticationError for a missing, unknown or inactive key,
    ValidationError for a bad reading and ServerError when storage fails.
    """

    def __init__(self, store: AirQualityStore, reconciler: IngestionReconciler):
        self.store = store
        self.reconciler = reconciler

    def ingest(self, api_key: str | None, pollutant: str | None, value: float | None) -> dict:
        if not api_key or not api_key.strip():
            raise AuthenticationError("Missing API key")

        try:
            station = self.store.resolve_active_credential(api_key.strip())
        except Exception as e:
            logger.error(f"Error resolving API key: {e}")
            raise ServerError("Database error") from e

        if station is None:
            logger.warning("Rejected reading with an invalid or inactive API key")
            raise AuthenticationError("Invalid or inactive API key")

        reading = CitizenReading(pollutant=pollutant, value=value)
        return self.reconciler.ingest_citizen_reading(station, reading)
