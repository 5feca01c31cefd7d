# Aerogrid: ingest, index and serve air quality data
# Copyright (C) 2025 Ruaraidh Dobson, South London Scientific

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Tests for the aerogrid.metrics module.

Tests cover:
- The threshold ladder walk and its inclusive upper bounds
- EAQI bands for every tabled pollutant, including the CO (mg/m³) table
- Values that are never classified (None, negative, NaN, untabled pollutants)
- The describe() result with category, color and health message
"""

import math

import pytest

from aerogrid import metrics
from aerogrid.metrics import eaqi
from aerogrid.metrics.base import (
    Breakpoint,
    classify_from_breakpoints,
    is_classifiable,
)
from aerogrid.pollutants import PollutantKind

# =============================================================================
# Ladder Walk
# =============================================================================


class TestClassifyFromBreakpoints:
    """Tests for the generic ladder walk."""

    @pytest.fixture
    def ladder(self):
        return [
            Breakpoint(high_conc=10, level=1, category="Low", color="#000000"),
            Breakpoint(high_conc=20, level=2, category="High", color="#FFFFFF"),
        ]

    def test_upper_bound_is_inclusive(self, ladder):
        assert classify_from_breakpoints(10, ladder, top_level=3) == 1

    def test_just_above_bound(self, ladder):
        assert classify_from_breakpoints(10.01, ladder, top_level=3) == 2

    def test_above_last_bound(self, ladder):
        assert classify_from_breakpoints(1000, ladder, top_level=3) == 3

    def test_zero(self, ladder):
        assert classify_from_breakpoints(0, ladder, top_level=3) == 1


class TestIsClassifiable:
    @pytest.mark.parametrize("value", [0, 0.0, 12, 12.5, "3.5"])
    def test_accepts(self, value):
        assert is_classifiable(value)

    @pytest.mark.parametrize(
        "value", [None, -0.1, -5, math.nan, math.inf, -math.inf, True, "abc"]
    )
    def test_rejects(self, value):
        assert not is_classifiable(value)


# =============================================================================
# EAQI
# =============================================================================


class TestEAQI:
    """Tests for the EAQI band tables."""

    def test_no2_boundaries(self):
        assert metrics.classify(PollutantKind.NO2, 40) == 1
        assert metrics.classify(PollutantKind.NO2, 40.0001) == 2
        assert metrics.classify(PollutantKind.NO2, 1000) == 6

    @pytest.mark.parametrize(
        "pollutant,bounds",
        [
            (PollutantKind.NO2, [40, 90, 120, 230, 340]),
            (PollutantKind.PM10, [20, 40, 50, 100, 150]),
            (PollutantKind.PM25, [10, 20, 25, 50, 75]),
            (PollutantKind.O3, [50, 100, 130, 240, 380]),
            (PollutantKind.SO2, [100, 200, 350, 500, 750]),
            (PollutantKind.CO, [5, 10, 15, 25, 50]),
        ],
    )
    def test_every_band_edge(self, pollutant, bounds):
        for level, bound in enumerate(bounds, start=1):
            assert metrics.classify(pollutant, bound) == level
            assert metrics.classify(pollutant, bound + 0.001) == level + 1

    @pytest.mark.parametrize("pollutant", list(eaqi.BREAKPOINTS))
    def test_monotonic(self, pollutant):
        values = [x / 2 for x in range(0, 2000)]
        levels = [metrics.classify(pollutant, v) for v in values]
        assert levels == sorted(levels)
        assert levels[0] == 1
        assert levels[-1] == 6

    @pytest.mark.parametrize(
        "pollutant", [PollutantKind.PM1, PollutantKind.H2S, PollutantKind.C6H6]
    )
    @pytest.mark.parametrize("value", [0, 5, 1000])
    def test_untabled_pollutants(self, pollutant, value):
        assert metrics.classify(pollutant, value) is None

    @pytest.mark.parametrize("pollutant", list(PollutantKind))
    @pytest.mark.parametrize("value", [None, -1, -0.0001])
    def test_missing_or_negative(self, pollutant, value):
        assert metrics.classify(pollutant, value) is None

    def test_nan(self):
        assert metrics.classify(PollutantKind.PM25, math.nan) is None

    def test_supported_pollutants(self):
        supported = metrics.supported_pollutants()
        assert PollutantKind.CO in supported
        assert PollutantKind.PM1 not in supported
        assert len(supported) == 6


class TestDescribe:
    def test_includes_category_and_message(self):
        result = metrics.describe(PollutantKind.PM25, 30)

        assert result.value == 4
        assert result.category == "Poor"
        assert result.color == eaqi.COLORS[4]
        assert result.pollutant == "PM2.5"
        assert result.unit == "µg/m³"
        assert "Sensitive groups" in result.message

    def test_co_unit(self):
        assert metrics.describe(PollutantKind.CO, 1).unit == "mg/m³"

    def test_unclassifiable(self):
        result = metrics.describe(PollutantKind.H2S, 12)

        assert result.value is None
        assert result.category is None
        assert result.message is None
        assert result.concentration == 12
