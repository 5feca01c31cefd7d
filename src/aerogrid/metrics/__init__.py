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
Air quality index classification.

`classify` is the entry point used by the ingestion pipeline: a pure
function from (pollutant, concentration) to a 1-6 band, or None when the
reading cannot be classified.

Example:
    >>> from aerogrid.metrics import classify
    >>> from aerogrid.pollutants import PollutantKind
    >>> classify(PollutantKind.NO2, 40)
    1
    >>> classify(PollutantKind.NO2, 1000)
    6
"""

from ..pollutants import PollutantKind
from . import eaqi
from .base import AQIResult, Breakpoint

__all__ = [
    "AQIResult",
    "Breakpoint",
    "classify",
    "describe",
    "supported_pollutants",
]


def classify(pollutant: PollutantKind, value: float | None) -> int | None:
    """
    Classify a pollutant concentration into an AQI band.

    Args:
        pollutant: Catalogue pollutant
        value: Concentration in the pollutant's index units

    Returns:
        int | None: Band 1-6, or None if the value is missing or negative,
            or the pollutant has no breakpoint table (PM1, H2S, C6H6)
    """
    return eaqi.get_level(pollutant, value)


def describe(pollutant: PollutantKind, value: float | None) -> AQIResult:
    """Classify a concentration and attach category, color and health message."""
    return eaqi.calculate(value, pollutant)


def supported_pollutants() -> list[PollutantKind]:
    """List the pollutants that have a breakpoint table."""
    return list(eaqi.BREAKPOINTS)
