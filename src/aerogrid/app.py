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
HTTP API for Aerogrid.

`create_app` wires the store, the reconciler, the providers and the scheduler
together and returns a FastAPI application. Everything can be injected, which
is how the tests run the API against a temporary SQLite database without
touching the network.

Example:
    >>> app = create_app()
    >>> uvicorn.run(app, host="0.0.0.0", port=8000)
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from logging import getLogger
from typing import Optional, Sequence

from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import __version__
from . import sources  # noqa: F401  registers the built-in providers
from .citizen import CitizenIngestionGate
from .config import Settings, configure_logging, load_settings
from .database_operations import AirQualityStore
from .exceptions import AuthenticationError, ServerError, ValidationError
from .ingestion import IngestionReconciler
from .models import (
    CitizenReadingIn,
    ErrorResponse,
    IngestAccepted,
    MeasurementOut,
    StationOut,
)
from .registry import build_providers
from .scheduler import IngestionScheduler
from .metrics import describe
from .pollutants import normalise_pollutant
from .transforms import frame_to_records
from .types import DataImportProvider

logger = getLogger(__name__)

# Default window for measurement history
DEFAULT_HISTORY = timedelta(hours=24)


def _as_local_naive(value: datetime | None) -> datetime | None:
    # Stored timestamps are naive local time
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def _describe_latest(record: dict) -> dict:
    """Add the EAQI category, colour and health message of a station's latest reading."""
    pollutant = normalise_pollutant(record.get("latest_pollutant"))
    if pollutant is None or record.get("latest_value") is None:
        return record

    result = describe(pollutant, record["latest_value"])
    return {
        **record,
        "latest_category": result.category,
        "latest_color": result.color,
        "health_message": result.message,
    }


def create_app(
    settings: Settings | None = None,
    store: AirQualityStore | None = None,
    providers: Sequence[DataImportProvider] | None = None,
    run_scheduler: bool | None = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Runtime configuration; loaded from the environment if omitted
        store: Persistent store; built from settings.database_url if omitted
        providers: Providers to schedule; built from settings.providers if omitted
        run_scheduler: Overrides settings.run_scheduler

    Returns:
        FastAPI: The configured application. The store, reconciler and
            scheduler are available on `app.state`.
    """
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    if store is None:
        store = AirQualityStore(database_url=settings.database_url)
    store.create_schema()

    reconciler = IngestionReconciler(store)
    if providers is None:
        providers = build_providers(settings.providers, reconciler)

    scheduler = IngestionScheduler(
        providers, store, pacing_seconds=settings.backfill_pacing_seconds
    )
    gate = CitizenIngestionGate(store, reconciler)

    if run_scheduler is None:
        run_scheduler = settings.run_scheduler

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Catch up on missed days and start the hourly import."""
        if run_scheduler:
            await run_in_threadpool(scheduler.run_startup_reconciliation)
            scheduler.start(every_hours=settings.import_interval_hours)
        yield
        if scheduler.running:
            scheduler.stop()

    app = FastAPI(
        title="Aerogrid",
        description="Air quality stations, measurements and citizen sensor ingestion.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.reconciler = reconciler
    app.state.scheduler = scheduler

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------

    @app.exception_handler(AuthenticationError)
    async def authentication_error(request: Request, exc: AuthenticationError):
        return JSONResponse(status_code=401, content={"detail": str(exc)})

    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    @app.exception_handler(ServerError)
    async def server_error(request: Request, exc: ServerError):
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    @app.get("/api/v1/stations", response_model=list[StationOut])
    def list_stations(
        min_lat: Optional[float] = Query(None, alias="minLat"),
        min_lon: Optional[float] = Query(None, alias="minLon"),
        max_lat: Optional[float] = Query(None, alias="maxLat"),
        max_lon: Optional[float] = Query(None, alias="maxLon"),
        user_id: Optional[int] = Query(None, alias="userId", description="Stations owned by this user"),
    ):
        """Stations with their latest AQI. The bounding box applies only when all four corners are given."""
        corners = (min_lat, min_lon, max_lat, max_lon)
        bbox = corners if None not in corners else None
        records = frame_to_records(store.get_stations(bbox=bbox, owner_id=user_id))
        return [_describe_latest(record) for record in records]

    @app.get(
        "/api/v1/stations/{code}",
        response_model=StationOut,
        responses={404: {"model": ErrorResponse}},
    )
    def station_detail(code: str):
        records = frame_to_records(store.get_stations(code=code))
        if not records:
            raise HTTPException(status_code=404, detail=f"Station {code} not found")
        return _describe_latest(records[0])

    @app.get(
        "/api/v1/measurements",
        response_model=list[MeasurementOut],
        responses={400: {"model": ErrorResponse}},
    )
    def measurement_history(
        station_code: str = Query(..., alias="stationCode"),
        start: Optional[datetime] = Query(None, alias="from"),
        end: Optional[datetime] = Query(None, alias="to"),
    ):
        """A station's readings between `from` and `to` (default: the last 24 hours)."""
        end = _as_local_naive(end) or datetime.now()
        start = _as_local_naive(start) or end - DEFAULT_HISTORY
        if start > end:
            raise ValidationError("'from' must not be after 'to'")
        return frame_to_records(store.get_measurement_history(station_code, start, end))

    @app.post(
        "/api/v1/ingest",
        response_model=IngestAccepted,
        responses={
            400: {"model": ErrorResponse},
            401: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
        },
    )
    def ingest_citizen_reading(
        reading: CitizenReadingIn,
        x_api_key: Optional[str] = Header(None, alias="X-API-KEY"),
    ):
        """Accept one reading from a citizen device, authenticated by its API key."""
        result = gate.ingest(x_api_key, reading.pollutant, reading.value)
        return IngestAccepted(**result)

    return app
