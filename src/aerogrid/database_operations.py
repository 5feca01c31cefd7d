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
Store stations, measurements and station API keys in a relational database.

Measurements are an append-only time series with at most one row per
(station, timestamp, pollutant). Writes go through a single
`INSERT ... ON CONFLICT DO NOTHING`, so re-importing an overlapping provider
window, or two import runs racing each other, silently drops the duplicate
instead of raising.

SQLite and PostgreSQL are supported.
"""

import secrets
import uuid
from datetime import datetime

import pandas as pd
from sqlalchemy import DateTime, Index, UniqueConstraint, and_, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel import Field, Session, SQLModel, col, create_engine, select

from .transforms import compose, drop_duplicate_keys, rename_columns
from .types import SourceType

# Timestamps are naive local time; the column type must not require tzinfo
NAIVE_TIMESTAMP = DateTime(timezone=False)


class Station(SQLModel, table=True):
    """
    Represents an air quality monitoring station.
    """

    __tablename__ = "stations"

    id: int | None = Field(default=None, primary_key=True)
    code: str = Field(index=True, unique=True)
    name: str | None = None
    municipality: str | None = None
    latitude: float
    longitude: float
    source_type: str = Field(default=SourceType.OFFICIAL.value)
    trust_score: int = Field(default=0)
    is_active: bool = Field(default=True)
    owner_id: int | None = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=datetime.now, sa_type=NAIVE_TIMESTAMP)
    updated_at: datetime = Field(default_factory=datetime.now, sa_type=NAIVE_TIMESTAMP)


class Measurement(SQLModel, table=True):
    """
    Represents a single pollutant reading at a station.
    """

    __tablename__ = "measurements"
    __table_args__ = (
        UniqueConstraint(
            "station_id", "timestamp", "pollutant", name="uq_measurement_reading"
        ),
        Index("idx_measurement_station_time", "station_id", "timestamp"),
    )

    id: int | None = Field(default=None, primary_key=True)
    station_id: int = Field(foreign_key="stations.id", ondelete="CASCADE")
    timestamp: datetime = Field(sa_type=NAIVE_TIMESTAMP)
    pollutant: str
    value: float
    aqi: int | None = None


class StationApiKey(SQLModel, table=True):
    """
    An API key that lets a citizen device push readings for its station.
    """

    __tablename__ = "station_api_keys"

    id: int | None = Field(default=None, primary_key=True)
    api_key: str = Field(index=True, unique=True)
    station_id: int = Field(foreign_key="stations.id", ondelete="CASCADE")
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.now, sa_type=NAIVE_TIMESTAMP)


MEASUREMENT_CONFLICT_COLUMNS = ["station_id", "timestamp", "pollutant"]

_INSERT_BY_DIALECT = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def generate_api_key() -> str:
    """Generate a random station API key: "sk_" + 32 hex chars + 10 more."""
    return "sk_" + uuid.uuid4().hex + secrets.token_hex(5)


def _resolve_engine_url(database_file: str | None, database_url: str | None) -> str:
    if database_file is None and database_url is None:
        raise ValueError("One of database_file or database_url must be provided")
    elif database_file is not None and database_url is not None:
        raise ValueError("Provide only one of database_file or database_url")
    if database_url is not None:
        return database_url
    return f"sqlite:///{database_file}"


class AirQualityStore:
    """
    Repository over the stations, measurements and station_api_keys tables.

    Every method opens its own short-lived session, so a store can be shared
    between the scheduler thread and request handlers.

    Example:
        >>> store = AirQualityStore(database_file="aerogrid.db")
        >>> store.create_schema()
        >>> store.find_latest_measurement_timestamp()
    """

    def __init__(
        self,
        database_url: str | None = None,
        database_file: str | None = None,
        echo: bool = False,
    ):
        engine_url = _resolve_engine_url(database_file, database_url)
        connect_args = {}
        if engine_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False

        self.engine = create_engine(engine_url, echo=echo, connect_args=connect_args)

        dialect = self.engine.dialect.name
        if dialect not in _INSERT_BY_DIALECT:
            raise ValueError(
                f"Unsupported database dialect '{dialect}'. "
                f"Supported: {sorted(_INSERT_BY_DIALECT)}"
            )
        self._insert = _INSERT_BY_DIALECT[dialect]

    def create_schema(self) -> None:
        SQLModel.metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Stations
    # ------------------------------------------------------------------

    def find_station_by_code(self, code: str) -> Station | None:
        with Session(self.engine) as session:
            return session.exec(select(Station).where(Station.code == code)).first()

    def find_all_stations(self) -> list[Station]:
        with Session(self.engine) as session:
            return list(session.exec(select(Station)).all())

    def save_station(self, station: Station) -> Station:
        """Insert a station and return it with its id populated."""
        with Session(self.engine) as session:
            session.add(station)
            session.commit()
            session.refresh(station)
            return station

    # ------------------------------------------------------------------
    # Measurements
    # ------------------------------------------------------------------

    def find_latest_measurement_timestamp(self) -> datetime | None:
        with Session(self.engine) as session:
            return session.exec(select(func.max(Measurement.timestamp))).one()

    def upsert_measurement(
        self,
        station_id: int,
        pollutant: str,
        value: float,
        timestamp: datetime,
        aqi: int | None,
    ) -> bool:
        """
        Insert a reading unless one already exists for the same
        (station, timestamp, pollutant).

        Returns:
            bool: True if a row was written, False if it was a duplicate
        """
        statement = (
            self._insert(Measurement.__table__)
            .values(
                station_id=station_id,
                pollutant=str(pollutant),
                value=value,
                timestamp=timestamp,
                aqi=aqi,
            )
            .on_conflict_do_nothing(index_elements=MEASUREMENT_CONFLICT_COLUMNS)
        )
        with self.engine.begin() as connection:
            result = connection.execute(statement)
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # API keys
    # ------------------------------------------------------------------

    def resolve_active_credential(self, api_key: str) -> Station | None:
        """Return the station an active API key belongs to, if any."""
        with Session(self.engine) as session:
            statement = (
                select(Station)
                .join(StationApiKey, col(StationApiKey.station_id) == col(Station.id))
                .where(
                    StationApiKey.api_key == api_key,
                    col(StationApiKey.is_active) == True,  # noqa: E712
                )
            )
            return session.exec(statement).first()

    def create_api_key(self, station_id: int, api_key: str | None = None) -> str:
        key = StationApiKey(api_key=api_key or generate_api_key(), station_id=station_id)
        with Session(self.engine) as session:
            session.add(key)
            session.commit()
            return key.api_key

    def deactivate_api_key(self, api_key: str) -> bool:
        with Session(self.engine) as session:
            key = session.exec(
                select(StationApiKey).where(StationApiKey.api_key == api_key)
            ).first()
            if key is None:
                return False
            key.is_active = False
            session.add(key)
            session.commit()
            return True

    # ------------------------------------------------------------------
    # Read queries
    # ------------------------------------------------------------------

    def get_stations(
        self,
        bbox: tuple[float, float, float, float] | None = None,
        owner_id: int | None = None,
        code: str | None = None,
    ) -> pd.DataFrame:
        """
        Returns stations with their latest AQI reading. Only one filter is
        applied, in this order of precedence: code, bounding box, owner_id.

        Args:
            bbox: (min_lat, min_lon, max_lat, max_lon); active stations only
            owner_id: Stations owned by this user
            code: A single station; only its measurements are aggregated

        Returns:
            pd.DataFrame: One row per station, with latest_aqi,
                latest_pollutant, latest_value and latest_timestamp (null if
                never measured)
        """
        statement = select(
            Station.id,
            Station.code,
            Station.name,
            Station.municipality,
            Station.latitude,
            Station.longitude,
            Station.source_type,
            Station.trust_score,
            Station.is_active,
            Station.created_at,
            Station.updated_at,
        )
        if code is not None:
            statement = statement.where(Station.code == code)
        elif bbox is not None:
            min_lat, min_lon, max_lat, max_lon = bbox
            statement = statement.where(
                col(Station.latitude).between(min_lat, max_lat),
                col(Station.longitude).between(min_lon, max_lon),
                col(Station.is_active) == True,  # noqa: E712
            )
        elif owner_id is not None:
            statement = statement.where(Station.owner_id == owner_id)

        stations = pd.read_sql_query(
            statement.order_by(Station.code),
            self.engine,
            parse_dates=["created_at", "updated_at"],
        )

        station_id = None
        if code is not None:
            if stations.empty:
                return stations
            station_id = int(stations["id"].iloc[0])

        latest = self._latest_readings(station_id).astype(
            {"station_id": stations["id"].dtype}
        )
        return stations.merge(
            latest, how="left", left_on="id", right_on="station_id"
        ).drop(columns=["station_id"])

    def _latest_readings(self, station_id: int | None = None) -> pd.DataFrame:
        """Worst-AQI reading at each station's most recent timestamp."""
        latest_times = select(
            Measurement.station_id,
            func.max(Measurement.timestamp).label("latest_timestamp"),
        )
        if station_id is not None:
            latest_times = latest_times.where(Measurement.station_id == station_id)
        latest_times = latest_times.group_by(Measurement.station_id).subquery()

        statement = select(
            Measurement.station_id,
            Measurement.aqi,
            Measurement.pollutant,
            Measurement.value,
            Measurement.timestamp,
        ).join(
            latest_times,
            and_(
                col(Measurement.station_id) == latest_times.c.station_id,
                col(Measurement.timestamp) == latest_times.c.latest_timestamp,
            ),
        )
        df = pd.read_sql_query(statement, self.engine, parse_dates=["timestamp"])

        select_worst = compose(
            lambda d: d.sort_values("aqi", ascending=False, na_position="last"),
            drop_duplicate_keys(["station_id"]),
            rename_columns(
                {
                    "aqi": "latest_aqi",
                    "pollutant": "latest_pollutant",
                    "value": "latest_value",
                    "timestamp": "latest_timestamp",
                }
            ),
        )
        return select_worst(df)

    def get_measurement_history(
        self, station_code: str, start: datetime, end: datetime
    ) -> pd.DataFrame:
        """
        Returns a station's readings between start and end (inclusive),
        ordered by timestamp.
        """
        statement = (
            select(
                col(Station.code).label("station_code"),
                Measurement.pollutant,
                Measurement.value,
                Measurement.aqi,
                Measurement.timestamp,
            )
            .join(Station, col(Station.id) == col(Measurement.station_id))
            .where(
                Station.code == station_code,
                col(Measurement.timestamp).between(start, end),
            )
            .order_by(Measurement.timestamp, Measurement.pollutant)
        )
        return pd.read_sql_query(statement, self.engine, parse_dates=["timestamp"])
