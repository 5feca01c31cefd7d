"""
Pytest configuration and shared fixtures.

This module provides common fixtures and utilities used across all tests.
"""

from datetime import date, datetime

import pytest

from aerogrid.database_operations import AirQualityStore
from aerogrid.ingestion import ImportSummary, IngestionReconciler

# ============================================================================
# Store Fixtures
# ============================================================================


@pytest.fixture
def store(tmp_path):
    """Empty store backed by a SQLite file in the test's temp directory."""
    store = AirQualityStore(database_file=str(tmp_path / "aerogrid-test.db"))
    store.create_schema()
    return store


@pytest.fixture
def fixed_now():
    return datetime(2026, 1, 29, 12, 30)


@pytest.fixture
def reconciler(store, fixed_now):
    return IngestionReconciler(store, clock=lambda: fixed_now)


# ============================================================================
# Raw Provider Records
# ============================================================================


@pytest.fixture
def station_record():
    """Station-only record, as returned by a provider's station catalogue."""
    return {
        "station_code": "08019043",
        "station_name": "Barcelona (Eixample)",
        "municipality": "Barcelona",
        "latitude": "41.3853",
        "longitude": "2.1538",
        "station_type": "traffic",
    }


@pytest.fixture
def raw_record(station_record):
    """
    One station, one pollutant, one day, with a bad value in h13.

    Usable slots: h01 (10) and h24 (20).
    """
    return {
        **station_record,
        "date": "2026-01-29T00:00:00",
        "pollutant": "NO2",
        "units": "µg/m3",
        "hourly_values": {"h01": "10", "h13": "bad", "h24": "20"},
    }


@pytest.fixture
def gencat_row():
    """A decoded row from the GENCAT Socrata dataset."""
    row = {
        "codi_eoi": "08019043",
        "nom_estacio": "Barcelona (Eixample)",
        "data": "2026-01-29T00:00:00.000",
        "contaminant": "NO2",
        "unitats": "µg/m3",
        "tipus_estacio": "traffic",
        "municipi": "Barcelona",
        "latitud": "41.3853",
        "longitud": "2.1538",
    }
    row.update({f"h{hour:02d}": str(hour * 2) for hour in range(1, 25)})
    return row


# ============================================================================
# Fake Provider
# ============================================================================


class FakeProvider:
    """
    In-memory DataImportProvider that records every call.

    `fail_on` holds days (or "stations") whose import raises RuntimeError.
    """

    def __init__(self, name="FAKE", fail_on=()):
        self._name = name
        self.fail_on = set(fail_on)
        self.station_calls = 0
        self.measurement_calls = []

    @property
    def name(self):
        return self._name

    def import_stations(self):
        self.station_calls += 1
        if "stations" in self.fail_on:
            raise RuntimeError("station catalogue unavailable")
        return ImportSummary(received=1, existing=1)

    def import_measurements(self, day=None):
        self.measurement_calls.append(day)
        if day in self.fail_on:
            raise RuntimeError(f"no data for {day}")
        return ImportSummary(received=1, inserted=1)


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def today():
    return date(2026, 1, 29)
