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
Generalitat de Catalunya (GENCAT) Data Source.

This module fetches the official Catalan air quality network from the
Generalitat's open data portal, a Socrata dataset in which every row holds one
station, one pollutant and one day, with the day's readings in hour-slot
columns h01..h24.

Dataset: https://analisi.transparenciacatalunya.cat/d/tasf-thgu
API Documentation: https://dev.socrata.com/foundry/analisi.transparenciacatalunya.cat/tasf-thgu

An app token is optional but raises the rate limit; set GENCAT_API_TOKEN.
"""

import os
from datetime import date
from logging import getLogger
from typing import Callable

import pandas as pd
import requests

from ..decorators import retry_on_network_error
from ..ingestion import ImportSummary, IngestionReconciler
from ..normalise import parse_raw_record, to_station_shape
from ..registry import register_provider
from ..transforms import (
    compose,
    drop_duplicate_keys,
    filter_rows,
    frame_to_records,
    rename_columns,
    select_columns,
    strip_strings,
)
from ..types import RawProviderRecord, SourceType

logger = getLogger(__name__)

# Configuration
GENCAT_API_BASE = "https://analisi.transparenciacatalunya.cat/resource"
DATASET_ID = "tasf-thgu.json"

# Socrata caps a single response; one day of the whole network is well below this
MEASUREMENT_LIMIT = 50000

# Maps GENCAT field names to RawProviderRecord keys
STATION_FIELDS = {
    "codi_eoi": "station_code",
    "nom_estacio": "station_name",
    "municipi": "municipality",
    "latitud": "latitude",
    "longitud": "longitude",
    "tipus_estacio": "station_type",
}

RECORD_FIELDS = {
    **STATION_FIELDS,
    "data": "date",
    "contaminant": "pollutant",
    "unitats": "units",
}


# ============================================================================
# LOW-LEVEL API FUNCTIONS
# ============================================================================


def _get_api_base() -> str:
    # Read at call time for testability
    return os.getenv("GENCAT_API_URL", GENCAT_API_BASE).rstrip("/")


@retry_on_network_error
def _call_gencat_api(params: dict) -> list[dict]:
    """
    Low-level GENCAT API caller with error handling.

    Args:
        params: SoQL query parameters ($select, $where, $limit)

    Returns:
        list[dict]: Decoded rows; empty if the dataset has nothing to return

    Raises:
        requests.HTTPError: If API returns error status
        ValueError: If the response is not a JSON list
    """
    headers = {"Accept": "application/json"}

    token = os.getenv("GENCAT_API_TOKEN")
    if token:
        headers["X-App-Token"] = token

    url = f"{_get_api_base()}/{DATASET_ID}"

    response = requests.get(url, params=params, headers=headers, timeout=60)

    if response.status_code == 404:
        return []

    if response.status_code == 429:
        raise requests.HTTPError(
            "GENCAT rate limit exceeded. Set GENCAT_API_TOKEN or wait before retrying.",
            response=response,
        )

    response.raise_for_status()

    data = response.json()
    if not isinstance(data, list):
        raise ValueError(f"Unexpected GENCAT response: expected a list, got {type(data).__name__}")
    return data


# ============================================================================
# FETCHERS
# ============================================================================


def _create_station_normalizer():
    """
    Create normalization pipeline for the GENCAT station catalogue.

    The DISTINCT query can still return a code more than once when a
    station's metadata changed over time; the first row wins.
    """
    columns = list(STATION_FIELDS.values())
    return compose(
        rename_columns(STATION_FIELDS),
        select_columns(*columns),
        strip_strings(columns),
        filter_rows(lambda df: df["station_code"].notna()),
        drop_duplicate_keys(["station_code"]),
    )


def fetch_gencat_stations() -> list[RawProviderRecord]:
    """
    Fetch the station catalogue.

    Returns:
        list[RawProviderRecord]: Station fields only, one per station code
    """
    rows = _call_gencat_api(
        {"$select": "DISTINCT " + ", ".join(STATION_FIELDS)}
    )
    if not rows:
        return []

    normalizer = _create_station_normalizer()
    return frame_to_records(normalizer(pd.DataFrame(rows)))


def fetch_gencat_measurements(since: date) -> list[RawProviderRecord]:
    """
    Fetch every record dated on or after `since`.

    Returns:
        list[RawProviderRecord]: One record per station, pollutant and day
    """
    rows = _call_gencat_api(
        {
            "$where": f"data >= '{since.isoformat()}'",
            "$limit": MEASUREMENT_LIMIT,
        }
    )
    logger.debug(f"Retrieved {len(rows)} GENCAT records since {since}")
    return [parse_raw_record(row, RECORD_FIELDS) for row in rows]


# ============================================================================
# PROVIDER
# ============================================================================


class GencatProvider:
    """Imports the GENCAT network through the ingestion reconciler."""

    name = "GenCat"

    def __init__(
        self,
        reconciler: IngestionReconciler,
        today: Callable[[], date] = date.today,
    ):
        self.reconciler = reconciler
        self.today = today

    def import_stations(self) -> ImportSummary:
        logger.info(f"Starting station import for {self.name}")
        records = fetch_gencat_stations()

        summary = self.reconciler.import_station_batch(
            to_station_shape(record, SourceType.OFFICIAL) for record in records
        )
        logger.info(
            f"Station import completed for {self.name}. Added: {summary.created_stations}"
        )
        return summary

    def import_measurements(self, day: date | None = None) -> ImportSummary:
        target = day or self.today()
        logger.info(f"Ingesting {self.name} data for day: {target}")

        records = fetch_gencat_measurements(target)
        if not records:
            logger.warning(f"No data found for day {target}")
            return ImportSummary()

        summary = self.reconciler.import_measurement_batch(records)
        logger.info(
            f"Day {target} completed. {len(records)} records processed. "
            f"New data: {summary.inserted}"
        )
        return summary


register_provider("GENCAT", GencatProvider)
