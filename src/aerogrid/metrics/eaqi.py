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
European Air Quality Index (EAQI) with the Spanish national CO table.

The index uses a 1-6 scale:
1 (Good), 2 (Fair), 3 (Moderate), 4 (Poor), 5 (Very Poor), 6 (Extremely Poor).

NO2, PM10, PM2.5, O3 and SO2 follow the EAQI bands in µg/m³. CO is not part
of the EAQI, so its bands come from the Spanish national index (ICA, MITECO)
and are expressed in mg/m³. PM1, H2S and C6H6 have no table and are never
classified.

Reference: https://airindex.eea.europa.eu/AQI/index.html
"""

from ..pollutants import PollutantKind
from .base import AQIResult, Breakpoint, classify_from_breakpoints, is_classifiable

# =============================================================================
# Index Metadata
# =============================================================================

CATEGORIES = {
    1: "Good",
    2: "Fair",
    3: "Moderate",
    4: "Poor",
    5: "Very Poor",
    6: "Extremely Poor",
}

COLORS = {
    1: "#50F0E6",  # Cyan/turquoise - Good
    2: "#50CCAA",  # Teal - Fair
    3: "#F0E641",  # Yellow - Moderate
    4: "#FF5050",  # Red - Poor
    5: "#960032",  # Dark red - Very Poor
    6: "#7D2181",  # Purple - Extremely Poor
}

HEALTH_MESSAGES = {
    "Good": "Air quality is good. Enjoy your usual outdoor activities.",
    "Fair": "Air quality is fair. Enjoy your usual outdoor activities.",
    "Moderate": (
        "Air quality is moderate. Consider reducing intense outdoor activities "
        "if you experience symptoms."
    ),
    "Poor": (
        "Air quality is poor. Consider reducing intense activities outdoors. "
        "Sensitive groups should reduce physical exertion."
    ),
    "Very Poor": (
        "Air quality is very poor. Reduce physical activities outdoors. "
        "Sensitive groups should avoid physical exertion outdoors."
    ),
    "Extremely Poor": (
        "Air quality is extremely poor. Avoid physical activities outdoors. "
        "Sensitive groups should stay indoors and keep activity levels low."
    ),
}

TOP_LEVEL = 6


# =============================================================================
# Breakpoints
# =============================================================================
#
# Each table lists the inclusive upper bound of bands 1-5. Band 6 is
# everything above the last bound.


def _make_breakpoints(upper_bounds: list[float]) -> list[Breakpoint]:
    """Create a breakpoint ladder from the upper bounds of bands 1-5."""
    return [
        Breakpoint(
            high_conc=high,
            level=level,
            category=CATEGORIES[level],
            color=COLORS[level],
        )
        for level, high in enumerate(upper_bounds, start=1)
    ]


# NO2 (µg/m³)
NO2_BREAKPOINTS = _make_breakpoints([40, 90, 120, 230, 340])

# PM10 (µg/m³)
PM10_BREAKPOINTS = _make_breakpoints([20, 40, 50, 100, 150])

# PM2.5 (µg/m³)
PM25_BREAKPOINTS = _make_breakpoints([10, 20, 25, 50, 75])

# O3 (µg/m³)
O3_BREAKPOINTS = _make_breakpoints([50, 100, 130, 240, 380])

# SO2 (µg/m³)
SO2_BREAKPOINTS = _make_breakpoints([100, 200, 350, 500, 750])

# CO (mg/m³), ICA bands
CO_BREAKPOINTS = _make_breakpoints([5, 10, 15, 25, 50])

BREAKPOINTS: dict[PollutantKind, list[Breakpoint]] = {
    PollutantKind.NO2: NO2_BREAKPOINTS,
    PollutantKind.PM10: PM10_BREAKPOINTS,
    PollutantKind.PM25: PM25_BREAKPOINTS,
    PollutantKind.O3: O3_BREAKPOINTS,
    PollutantKind.SO2: SO2_BREAKPOINTS,
    PollutantKind.CO: CO_BREAKPOINTS,
}

UNITS = {pollutant: "µg/m³" for pollutant in BREAKPOINTS}
UNITS[PollutantKind.CO] = "mg/m³"


# =============================================================================
# Calculation Functions
# =============================================================================


def get_level(pollutant: PollutantKind, concentration: float | None) -> int | None:
    """
    Classify a concentration into a 1-6 band.

    Returns None for a missing, negative or non-finite concentration, and for
    pollutants without a table.
    """
    if not is_classifiable(concentration):
        return None

    breakpoints = BREAKPOINTS.get(pollutant)
    if breakpoints is None:
        return None

    return classify_from_breakpoints(float(concentration), breakpoints, TOP_LEVEL)


def calculate(concentration: float | None, pollutant: PollutantKind) -> AQIResult:
    """
    Calculate the EAQI band for a single pollutant concentration.

    Args:
        concentration: Pollutant concentration (µg/m³, or mg/m³ for CO)
        pollutant: Catalogue pollutant

    Returns:
        AQIResult with index value (1-6), category, color and health message.
        `value` is None when the concentration cannot be classified.
    """
    level = get_level(pollutant, concentration)
    unit = UNITS.get(pollutant, "µg/m³")

    if level is None:
        return AQIResult(
            value=None,
            category=None,
            color=None,
            pollutant=str(pollutant),
            concentration=concentration,
            unit=unit,
        )

    category = CATEGORIES[level]
    return AQIResult(
        value=level,
        category=category,
        color=COLORS[level],
        pollutant=str(pollutant),
        concentration=concentration,
        unit=unit,
        message=HEALTH_MESSAGES[category],
    )
