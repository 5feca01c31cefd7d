"""Tests for the command-line entry point."""

import pytest

from aerogrid.cli import build_parser, main
from aerogrid.database_operations import AirQualityStore
from aerogrid.registry import _PROVIDERS


@pytest.fixture
def database_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("AEROGRID_DATABASE_URL", url)
    monkeypatch.setenv("AEROGRID_BACKFILL_PACING_SECONDS", "0")
    return url


@pytest.fixture
def no_env_file(tmp_path):
    return ["--env-file", str(tmp_path / "missing.env")]


@pytest.fixture
def fake_providers(monkeypatch, make_provider):
    created = []

    def factory(reconciler):
        provider = make_provider("FAKE")
        created.append(provider)
        return provider

    monkeypatch.setitem(_PROVIDERS, "FAKE", factory)
    monkeypatch.setenv("AEROGRID_PROVIDERS", "fake")
    return created


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_backfill_rejects_zero_days():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["backfill", "--days", "0"])


def test_register_station(database_url, no_env_file, capsys):
    exit_code = main(
        no_env_file
        + [
            "register-station",
            "--name", "Rooftop",
            "--municipality", "Lleida",
            "--lat", "41.61",
            "--lon", "0.62",
            "--owner-id", "5",
        ]
    )

    assert exit_code == 0
    output = capsys.readouterr().out
    assert "API key:      sk_" in output

    station = AirQualityStore(database_url=database_url).get_stations(owner_id=5)
    assert station["municipality"].tolist() == ["Lleida"]


def test_run_ingestion(database_url, no_env_file, fake_providers, capsys):
    assert main(no_env_file + ["run-ingestion"]) == 0

    provider = fake_providers[0]
    assert provider.station_calls == 1
    assert provider.measurement_calls == [None]
    assert "Ingestion finished" in capsys.readouterr().out


def test_backfill(database_url, no_env_file, fake_providers):
    assert main(no_env_file + ["backfill", "--days", "3"]) == 0

    assert len(fake_providers[0].measurement_calls) == 3


def test_bad_configuration(monkeypatch, no_env_file, capsys):
    monkeypatch.setenv("AEROGRID_IMPORT_INTERVAL_HOURS", "soon")

    assert main(no_env_file + ["run-ingestion"]) == 2
    assert "AEROGRID_IMPORT_INTERVAL_HOURS" in capsys.readouterr().err
