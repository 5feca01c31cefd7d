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
Base types and utilities for AQI classification.

This module provides the foundation for the index tables in this package:
the breakpoint and result types, and the threshold ladder walk that turns a
concentration into a band.
"""

import math
from dataclasses import dataclass
from typing import TypedDict

# =============================================================================
# Types
# =============================================================================


class Breakpoint(TypedDict):
    """A single AQI band, defined by its inclusive upper bound."""

    high_conc: float  # Upper concentration bound (inclusive)
    level: int  # Band number
    category: str  # Category name (e.g., "Good", "Poor")
    color: str  # Hex color code for display


@dataclass
class AQIResult:
    """Result of classifying a single pollutant concentration."""

    value: int | None  # AQI band (None if cannot be classified)
    category: str | None  # Category name
    color: str | None  # Hex color code
    pollutant: str  # Pollutant name
    concentration: float | None  # Input concentration
    unit: str  # Unit of concentration
    message: str | None = None  # Optional health message


# =============================================================================
# Threshold ladder
# =============================================================================


def is_classifiable(concentration: float | None) -> bool:
    """
    Check that a concentration can be classified at all.

    None, negative, NaN and infinite values are never classified.
    """
    if concentration is None or isinstance(concentration, bool):
        return False
    try:
        concentration = float(concentration)
    except (TypeError, ValueError):
        return False
    return math.isfinite(concentration) and concentration >= 0


def classify_from_breakpoints(
    concentration: float,
    breakpoints: list[Breakpoint],
    top_level: int,
) -> int:
    """
    Walk an ascending ladder of inclusive upper bounds.

    The first band whose upper bound is >= the concentration wins. Anything
    above the last bound falls into `top_level`.

    Args:
        concentration: Pollutant concentration (must be in the table's units)
        breakpoints: Bands sorted by ascending `high_conc`
        top_level: Band returned when every bound is exceeded

    Returns:
        int: The band number
    """
    for bp in breakpoints:
        if concentration <= bp["high_conc"]:
            return bp["level"]
    return top_level
