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

"""Ingest, index and serve air quality data"""

__version__ = "0.1.0"

from .database_operations import AirQualityStore, Measurement, Station, StationApiKey
from .ingestion import ImportSummary, IngestionReconciler
from .metrics import classify, describe
from .pollutants import PollutantKind, normalise_pollutant
from .types import DataImportProvider, SourceType

__all__ = [
    "AirQualityStore",
    "DataImportProvider",
    "ImportSummary",
    "IngestionReconciler",
    "Measurement",
    "PollutantKind",
    "SourceType",
    "Station",
    "StationApiKey",
    "classify",
    "describe",
    "normalise_pollutant",
]
