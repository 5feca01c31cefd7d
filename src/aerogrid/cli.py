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
Command-line entry point.

    aerogrid serve [--host HOST] [--port PORT]
    aerogrid run-ingestion
    aerogrid backfill [--days N]
    aerogrid register-station --name NAME --municipality M --lat LAT --lon LON [--owner-id ID]
"""

import argparse
import sys

from . import sources  # noqa: F401  registers the built-in providers
from .citizen import register_citizen_station
from .config import Settings, configure_logging, load_settings
from .database_operations import AirQualityStore
from .ingestion import IngestionReconciler
from .registry import build_providers
from .scheduler import IngestionScheduler


def _open_store(settings: Settings) -> AirQualityStore:
    store = AirQualityStore(database_url=settings.database_url)
    store.create_schema()
    return store


def _build_scheduler(settings: Settings, store: AirQualityStore) -> IngestionScheduler:
    reconciler = IngestionReconciler(store)
    providers = build_providers(settings.providers, reconciler)
    return IngestionScheduler(
        providers, store, pacing_seconds=settings.backfill_pacing_seconds
    )


def _serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    from .app import create_app

    uvicorn.run(create_app(settings), host=args.host, port=args.port)
    return 0


def _run_ingestion(args: argparse.Namespace, settings: Settings) -> int:
    scheduler = _build_scheduler(settings, _open_store(settings))
    summary = scheduler.run_periodic_import()
    print(f"Ingestion finished: {summary.as_dict()}")
    return 0


def _backfill(args: argparse.Namespace, settings: Settings) -> int:
    scheduler = _build_scheduler(settings, _open_store(settings))
    summary = scheduler.run_backfill(args.days)
    print(f"Backfill of {args.days} days finished: {summary.as_dict()}")
    return 0


def _register_station(args: argparse.Namespace, settings: Settings) -> int:
    store = _open_store(settings)
    station, api_key = register_citizen_station(
        store,
        name=args.name,
        municipality=args.municipality,
        latitude=args.lat,
        longitude=args.lon,
        owner_id=args.owner_id,
    )
    print(f"Station code: {station.code}")
    print(f"API key:      {api_key}")
    print("Keep the API key safe; it is not shown again.")
    return 0


def _positive_int(text: str) -> int:
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aerogrid",
        description="Ingest, index and serve air quality data",
    )
    parser.add_argument(
        "--env-file", default=None, help="Path to a .env file (default: search for one)"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the HTTP API and the hourly import")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    serve.set_defaults(handler=_serve)

    run = commands.add_parser("run-ingestion", help="Import stations and today's data once")
    run.set_defaults(handler=_run_ingestion)

    backfill = commands.add_parser("backfill", help="Re-import past days")
    backfill.add_argument(
        "--days", "-d", type=_positive_int, default=7, help="Days to walk back (default: 7)"
    )
    backfill.set_defaults(handler=_backfill)

    register = commands.add_parser("register-station", help="Register a citizen station")
    register.add_argument("--name", required=True)
    register.add_argument("--municipality", default=None)
    register.add_argument("--lat", type=float, required=True, help="WGS84 latitude")
    register.add_argument("--lon", type=float, required=True, help="WGS84 longitude")
    register.add_argument("--owner-id", type=int, default=None)
    register.set_defaults(handler=_register_station)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.env_file)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level)
    return args.handler(args, settings)


if __name__ == "__main__":
    sys.exit(main())
