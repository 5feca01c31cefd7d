# Aerogrid: ingest, index and serve air quality data
# Copyright (C) 2025 Ruaraidh Dobson, South London Scientific

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Tests for the ingestion reconciler.

Covers station batches, measurement batches (idempotence, on-the-fly station
creation, skipping) and the synchronous citizen path.
"""

import math
from datetime import datetime

import pytest

from aerogrid.database_operations import Station
from aerogrid.exceptions import ServerError, ValidationError
from aerogrid.ingestion import ImportSummary, build_station
from aerogrid.normalise import to_station_shape
from aerogrid.types import CitizenReading, SourceType


def _history(store, code="08019043"):
    return store.get_measurement_history(
        code, datetime(2000, 1, 1), datetime(2100, 1, 1)
    )


# ============================================================================
# ImportSummary
# ============================================================================


class TestImportSummary:
    def test_addition(self):
        total = ImportSummary(received=2, inserted=1) + ImportSummary(received=3, failed=1)

        assert total == ImportSummary(received=5, inserted=1, failed=1)

    def test_as_dict(self):
        assert ImportSummary(skipped=4).as_dict() == {
            "received": 0,
            "created_stations": 0,
            "existing": 0,
            "inserted": 0,
            "duplicates": 0,
            "skipped": 4,
            "failed": 0,
        }


# ============================================================================
# Stations
# ============================================================================


class TestBuildStation:
    def test_official_default(self, station_record):
        station = build_station(to_station_shape(station_record))

        assert station.code == "08019043"
        assert station.source_type == "OFFICIAL"
        assert station.is_active is True

    def test_missing_code(self, station_record):
        station_record["station_code"] = None

        with pytest.raises(ValueError, match="no code"):
            build_station(to_station_shape(station_record))

    def test_missing_coordinates(self, station_record):
        station_record["longitude"] = ""

        with pytest.raises(ValueError, match="coordinates"):
            build_station(to_station_shape(station_record))


class TestImportStationBatch:
    def test_creates_new_and_counts_existing(self, reconciler, store, station_record):
        first = reconciler.import_station_batch([to_station_shape(station_record)])
        second = reconciler.import_station_batch([to_station_shape(station_record)])

        assert first.created_stations == 1
        assert second.created_stations == 0
        assert second.existing == 1
        assert second.skipped == 0
        assert len(store.find_all_stations()) == 1

    def test_bad_station_does_not_stop_batch(self, reconciler, store, station_record):
        broken = dict(station_record, station_code="BROKEN", latitude=None)
        other = dict(station_record, station_code="OTHER")

        summary = reconciler.import_station_batch(
            to_station_shape(r) for r in (broken, other)
        )

        assert summary.received == 2
        assert summary.failed == 1
        assert summary.created_stations == 1
        assert store.find_station_by_code("OTHER") is not None

    def test_existing_stations_are_not_counted_as_skipped(self, reconciler, station_record):
        reconciler.import_station_batch([to_station_shape(station_record)])
        nameless = dict(station_record, station_code=None)
        fresh = dict(station_record, station_code="FRESH")

        summary = reconciler.import_station_batch(
            to_station_shape(r) for r in (station_record, nameless, fresh)
        )

        assert summary.received == 3
        assert summary.existing == 1
        assert summary.created_stations == 1
        assert summary.failed == 1
        assert summary.skipped == 0


# ============================================================================
# Measurements
# ============================================================================


class TestImportMeasurementBatch:
    def test_persists_usable_slots_with_aqi(self, reconciler, store, raw_record):
        reconciler.import_station_batch([to_station_shape(raw_record)])

        summary = reconciler.import_measurement_batch([raw_record])

        assert summary.received == 1
        assert summary.inserted == 2
        history = _history(store)
        assert list(history["value"]) == [10.0, 20.0]
        assert list(history["aqi"]) == [1, 1]
        assert list(history["timestamp"].dt.hour) == [0, 23]

    def test_unknown_station_created_and_stored_with_naive_timestamps(
        self, reconciler, store, raw_record
    ):
        summary = reconciler.import_measurement_batch([raw_record])

        assert summary.created_stations == 1
        assert summary.inserted == 2
        assert summary.failed == 0
        history = _history(store)
        assert list(history["value"]) == [10.0, 20.0]
        assert list(history["timestamp"]) == [
            datetime(2026, 1, 29, 0, 0),
            datetime(2026, 1, 29, 23, 0),
        ]

    def test_idempotent(self, reconciler, store, raw_record):
        reconciler.import_measurement_batch([raw_record])
        before = _history(store)

        again = reconciler.import_measurement_batch([raw_record])
        after = _history(store)

        assert again.inserted == 0
        assert again.duplicates == 2
        assert after.equals(before)

    def test_colliding_slots_keep_first_write(self, reconciler, store, raw_record):
        # h00 of the next day lands on the same hour as h24 of this one
        raw_record["hourly_values"] = {"h24": "20"}
        next_day = dict(raw_record, date="2026-01-30T00:00:00", hourly_values={"h00": "99"})

        summary = reconciler.import_measurement_batch([raw_record, next_day])

        assert summary.inserted == 1
        assert summary.duplicates == 1
        history = _history(store)
        assert list(history["value"]) == [20.0]
        assert history.loc[0, "timestamp"] == datetime(2026, 1, 29, 23)

    def test_creates_unknown_station_once(self, reconciler, store, raw_record):
        pm10 = dict(raw_record, pollutant="PM10")

        summary = reconciler.import_measurement_batch([raw_record, pm10])

        assert summary.created_stations == 1
        assert [s.code for s in store.find_all_stations()] == ["08019043"]
        assert summary.inserted == 4
        assert set(_history(store)["pollutant"]) == {"NO2", "PM10"}

    def test_station_that_cannot_be_created_is_skipped(self, reconciler, store, raw_record):
        raw_record["latitude"] = None

        summary = reconciler.import_measurement_batch([raw_record])

        assert summary.skipped == 1
        assert summary.inserted == 0
        assert store.find_all_stations() == []

    def test_record_without_code_is_skipped(self, reconciler, raw_record):
        raw_record["station_code"] = None

        summary = reconciler.import_measurement_batch([raw_record])

        assert summary.skipped == 1

    def test_unknown_pollutant_is_skipped(self, reconciler, store, raw_record):
        raw_record["pollutant"] = "Hg"

        summary = reconciler.import_measurement_batch([raw_record])

        assert summary.skipped == 1
        assert _history(store).empty

    def test_pollutant_names_are_normalised(self, reconciler, store, raw_record):
        raw_record["pollutant"] = " pm2.5 "

        reconciler.import_measurement_batch([raw_record])

        assert set(_history(store)["pollutant"]) == {"PM2.5"}

    def test_untabled_pollutant_stored_without_aqi(self, reconciler, store, raw_record):
        raw_record["pollutant"] = "H2S"

        reconciler.import_measurement_batch([raw_record])

        assert _history(store)["aqi"].isna().all()

    def test_bad_date_counts_as_failed(self, reconciler, store, raw_record):
        bad = dict(raw_record, date="??")
        good = dict(raw_record, pollutant="O3")

        summary = reconciler.import_measurement_batch([bad, good])

        assert summary.failed == 1
        assert summary.inserted == 2

    def test_store_failure_counts_as_failed(self, reconciler, store, raw_record, monkeypatch):
        reconciler.import_station_batch([to_station_shape(raw_record)])

        def broken(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(store, "upsert_measurement", broken)

        summary = reconciler.import_measurement_batch([raw_record])

        assert summary.failed == 2
        assert summary.inserted == 0


# ============================================================================
# Citizen readings
# ============================================================================


@pytest.fixture
def citizen_station(store):
    return store.save_station(
        Station(
            code="AG-0000BEEF",
            name="Balcony",
            latitude=41.39,
            longitude=2.16,
            source_type=SourceType.CITIZEN.value,
        )
    )


class TestIngestCitizenReading:
    def test_valid_reading(self, reconciler, store, citizen_station, fixed_now):
        result = reconciler.ingest_citizen_reading(
            citizen_station, CitizenReading(pollutant="pm2.5", value=22.0)
        )

        assert result["station_code"] == "AG-0000BEEF"
        assert result["pollutant"] == "PM2.5"
        assert result["aqi"] == 3
        assert result["timestamp"] == fixed_now
        assert result["inserted"] is True

        history = _history(store, "AG-0000BEEF")
        assert len(history) == 1
        assert history.loc[0, "timestamp"] == fixed_now

    @pytest.mark.parametrize("pollutant", ["lead", None, ""])
    def test_unknown_pollutant(self, reconciler, store, citizen_station, pollutant):
        with pytest.raises(ValidationError, match="pollutant"):
            reconciler.ingest_citizen_reading(
                citizen_station, CitizenReading(pollutant=pollutant, value=1.0)
            )

        assert _history(store, "AG-0000BEEF").empty

    @pytest.mark.parametrize("value", [None, -1.0, math.nan, math.inf, "abc"])
    def test_invalid_value(self, reconciler, store, citizen_station, value):
        with pytest.raises(ValidationError):
            reconciler.ingest_citizen_reading(
                citizen_station, CitizenReading(pollutant="NO2", value=value)
            )

        assert _history(store, "AG-0000BEEF").empty

    def test_untabled_pollutant_has_no_aqi(self, reconciler, citizen_station):
        result = reconciler.ingest_citizen_reading(
            citizen_station, CitizenReading(pollutant="PM1", value=8.0)
        )

        assert result["aqi"] is None

    def test_store_failure(self, reconciler, store, citizen_station, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("connection lost")

        monkeypatch.setattr(store, "upsert_measurement", broken)

        with pytest.raises(ServerError):
            reconciler.ingest_citizen_reading(
                citizen_station, CitizenReading(pollutant="NO2", value=5.0)
            )
