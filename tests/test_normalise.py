"""
Tests for raw record normalisation.

Covers hour-slot extraction, the slot-to-timestamp rule, station shapes and
the handling of unparseable values.
"""

import logging
from datetime import datetime

import pytest

from aerogrid.normalise import (
    extract_hourly_values,
    parse_batch_date,
    parse_float,
    parse_raw_record,
    to_measurement_shapes,
    to_station_shape,
)
from aerogrid.types import SourceType


class TestParseFloat:
    @pytest.mark.parametrize(
        "text,expected", [("10", 10.0), (" 2.5 ", 2.5), (7, 7.0), ("0", 0.0), ("-3", -3.0)]
    )
    def test_numbers(self, text, expected):
        assert parse_float(text) == expected

    @pytest.mark.parametrize("text", [None, "", "  ", "bad", "nan", "inf", True])
    def test_unusable(self, text):
        assert parse_float(text) is None


class TestExtractHourlyValues:
    def test_keeps_only_hour_slots_in_order(self):
        row = {"h02": "2", "data": "2026-01-29", "h01": "1", "h1": "x", "h001": "y", "H03": "z"}

        assert list(extract_hourly_values(row).items()) == [("h02", "2"), ("h01", "1")]

    def test_no_slots(self):
        assert extract_hourly_values({"codi_eoi": "1"}) == {}


class TestParseRawRecord:
    def test_maps_fields_and_collects_slots(self):
        row = {"codi": "X1", "contaminant": "NO2", "h01": "5", "h02": None}
        record = parse_raw_record(row, {"codi": "station_code", "contaminant": "pollutant"})

        assert record["station_code"] == "X1"
        assert record["pollutant"] == "NO2"
        assert record["hourly_values"] == {"h01": "5", "h02": None}

    def test_missing_fields_become_none(self):
        record = parse_raw_record({}, {"codi": "station_code"})

        assert record["station_code"] is None
        assert record["hourly_values"] == {}


class TestToStationShape:
    def test_parses_coordinates(self, station_record):
        shape = to_station_shape(station_record)

        assert shape["code"] == "08019043"
        assert shape["name"] == "Barcelona (Eixample)"
        assert shape["municipality"] == "Barcelona"
        assert shape["latitude"] == pytest.approx(41.3853)
        assert shape["longitude"] == pytest.approx(2.1538)
        assert shape["source_type"] is SourceType.OFFICIAL

    def test_bad_coordinates(self, station_record):
        station_record["latitude"] = "n/a"

        assert to_station_shape(station_record)["latitude"] is None

    def test_citizen_source(self, station_record):
        shape = to_station_shape(station_record, SourceType.CITIZEN)

        assert shape["source_type"] is SourceType.CITIZEN


class TestParseBatchDate:
    def test_date_time(self):
        assert parse_batch_date("2026-01-29T00:00:00") == datetime(2026, 1, 29)

    def test_socrata_milliseconds(self):
        assert parse_batch_date("2026-01-29T00:00:00.000") == datetime(2026, 1, 29)

    def test_plain_date(self):
        assert parse_batch_date("2026-01-29") == datetime(2026, 1, 29)

    @pytest.mark.parametrize("text", [None, ""])
    def test_missing(self, text):
        with pytest.raises(ValueError):
            parse_batch_date(text)

    def test_garbage(self):
        with pytest.raises(ValueError):
            parse_batch_date("yesterday")


class TestToMeasurementShapes:
    def test_slot_expansion(self, raw_record, caplog):
        with caplog.at_level(logging.WARNING, logger="aerogrid.normalise"):
            shapes = list(to_measurement_shapes(raw_record))

        assert [(s["timestamp"], s["value"]) for s in shapes] == [
            (datetime(2026, 1, 29, 0, 0), 10.0),
            (datetime(2026, 1, 29, 23, 0), 20.0),
        ]
        assert all(s["station_code"] == "08019043" for s in shapes)
        assert all(s["pollutant"] == "NO2" for s in shapes)
        assert "h13" in caplog.text

    def test_full_day(self, raw_record):
        raw_record["hourly_values"] = {f"h{h:02d}": str(h) for h in range(1, 25)}
        shapes = list(to_measurement_shapes(raw_record))

        assert len(shapes) == 24
        assert shapes[0]["timestamp"].hour == 0
        assert shapes[-1]["timestamp"].hour == 23

    def test_empty_and_null_slots_are_skipped(self, raw_record):
        raw_record["hourly_values"] = {"h01": None, "h02": "", "h03": "4.5"}
        shapes = list(to_measurement_shapes(raw_record))

        assert [s["value"] for s in shapes] == [4.5]

    def test_no_slots(self, raw_record):
        raw_record["hourly_values"] = {}

        assert list(to_measurement_shapes(raw_record)) == []

    def test_bad_date_raises_on_iteration(self, raw_record):
        raw_record["date"] = "not a date"
        shapes = to_measurement_shapes(raw_record)

        with pytest.raises(ValueError):
            next(shapes)
