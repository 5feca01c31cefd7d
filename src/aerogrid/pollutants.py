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
Pollutant catalogue.

The closed set of pollutant species Aerogrid recognises, and the normaliser
that maps whatever string a provider or a citizen device sends us onto that
set. Anything outside the catalogue normalises to None, which callers treat
as "skip this record" (batch imports) or as a validation failure (the
synchronous citizen path).
"""

from enum import Enum


class PollutantKind(str, Enum):
    """Recognised pollutant species. Values are the canonical display names."""

    NO2 = "NO2"  # Nitrogen dioxide
    PM10 = "PM10"  # Particulate matter <= 10 µm
    PM25 = "PM2.5"  # Particulate matter <= 2.5 µm
    PM1 = "PM1"  # Particulate matter <= 1 µm
    O3 = "O3"  # Ozone
    CO = "CO"  # Carbon monoxide (mg/m³)
    SO2 = "SO2"  # Sulphur dioxide
    H2S = "H2S"  # Hydrogen sulphide
    C6H6 = "C6H6"  # Benzene

    def __str__(self) -> str:
        return self.value


# Exact-match table, keyed on the trimmed upper-case input
POLLUTANT_TABLE: dict[str, PollutantKind] = {
    "PM2.5": PollutantKind.PM25,
    "PM10": PollutantKind.PM10,
    "PM1": PollutantKind.PM1,
    "NO2": PollutantKind.NO2,
    "O3": PollutantKind.O3,
    "SO2": PollutantKind.SO2,
    "CO": PollutantKind.CO,
    "H2S": PollutantKind.H2S,
    "C6H6": PollutantKind.C6H6,
}


def normalise_pollutant(raw: str | None) -> PollutantKind | None:
    """
    Map a provider-supplied pollutant name onto the catalogue.

    Matching is case- and whitespace-insensitive but otherwise exact, so
    "pm2.5" and " PM10 " are recognised while "PM 2.5" or "ozone" are not.

    Args:
        raw: Pollutant name as received, possibly None

    Returns:
        PollutantKind | None: Catalogue entry, or None if not recognised

    Example:
        >>> normalise_pollutant(" pm2.5 ")
        <PollutantKind.PM25: 'PM2.5'>
        >>> normalise_pollutant("lead") is None
        True
    """
    if not isinstance(raw, str):
        return None
    return POLLUTANT_TABLE.get(raw.strip().upper())
