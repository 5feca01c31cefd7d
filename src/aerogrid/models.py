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

"""Request and response models for the HTTP API."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CitizenReadingIn(BaseModel):
    pollutant: Optional[str] = Field(None, description="Pollutant name, e.g. 'NO2' or 'pm2.5'")
    value: Optional[float] = Field(None, description="Concentration in the pollutant's unit")


class IngestAccepted(BaseModel):
    message: str = "Data accepted"
    station_code: str
    pollutant: str
    value: float
    aqi: Optional[int] = Field(None, ge=1, le=6, description="EAQI level, null if unclassifiable")
    timestamp: datetime
    inserted: bool = Field(..., description="False if an identical reading was already stored")


class StationOut(BaseModel):
    id: int
    code: str
    name: Optional[str] = None
    municipality: Optional[str] = None
    latitude: float
    longitude: float
    source_type: str = Field(..., description="OFFICIAL or CITIZEN")
    trust_score: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    latest_aqi: Optional[int] = Field(None, description="Worst EAQI level at the latest timestamp")
    latest_pollutant: Optional[str] = None
    latest_value: Optional[float] = None
    latest_timestamp: Optional[datetime] = None
    latest_category: Optional[str] = Field(None, description="EAQI category name, e.g. 'Moderate'")
    latest_color: Optional[str] = Field(None, description="Hex colour of the EAQI band")
    health_message: Optional[str] = None


class MeasurementOut(BaseModel):
    station_code: str
    pollutant: str
    value: float
    aqi: Optional[int] = None
    timestamp: datetime


class ErrorResponse(BaseModel):
    detail: str
