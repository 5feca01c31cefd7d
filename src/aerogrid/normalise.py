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
Raw record normalisation.

Provider rows arrive as one record per (station, pollutant, day) with the
station's metadata repeated on every row and the readings spread across
hour-slot columns "h01".."h24". The functions here turn that into the
common shapes the reconciler persists:

    raw row --parse_raw_record--> RawProviderRecord
        --to_station_shape-->      StationShape
        --to_measurement_shapes--> MeasurementShape, one per usable slot

A slot whose value can't be parsed is logged and skipped; it never aborts the
rest of the record.
"""

import math
import re
from datetime import datetime, timedelta
from logging import getLogger
from typing import Any, Iterator

from .types import MeasurementShape, RawProviderRecord, SourceType, StationShape

logger = getLogger(__name__)

# "h" followed by a two-digit hour, h01 being the first hour of the day
HOUR_SLOT_PATTERN = re.compile(r"^h(\d{2})$")


def parse_float(text: Any) -> float | None:
    """
    Parse a provider value as a finite float.

    Returns None for None, blanks, non-numeric text, NaN and infinities.
    """
    if text is None or isinstance(text, bool):
        return None
    try:
        value = float(str(text).strip())
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def extract_hourly_values(row: dict[str, Any]) -> dict[str, str | None]:
    """
    Collect the hour-slot columns of a provider row.

    Keeps every key matching `h` + two digits, in the row's own order.

    Example:
        >>> extract_hourly_values({"data": "2026-01-29", "h01": "10", "h02": "12"})
        {'h01': '10', 'h02': '12'}
    """
    return {
        key: value
        for key, value in row.items()
        if isinstance(key, str) and HOUR_SLOT_PATTERN.match(key)
    }


def parse_raw_record(
    row: dict[str, Any], field_map: dict[str, str]
) -> RawProviderRecord:
    """
    Build a RawProviderRecord from a decoded provider row.

    Args:
        row: One JSON object from the provider
        field_map: Maps the provider's field names to RawProviderRecord keys

    Returns:
        RawProviderRecord: Station and measurement fields plus the hour slots
    """
    record: RawProviderRecord = {
        target: row.get(source) for source, target in field_map.items()
    }
    record["hourly_values"] = extract_hourly_values(row)
    return record


def to_station_shape(
    raw: RawProviderRecord, source_type: SourceType = SourceType.OFFICIAL
) -> StationShape:
    """
    Extract station metadata from a provider record.

    Coordinates are parsed from text; anything unparseable becomes None.
    """
    return StationShape(
        code=raw.get("station_code"),
        name=raw.get("station_name"),
        municipality=raw.get("municipality"),
        latitude=parse_float(raw.get("latitude")),
        longitude=parse_float(raw.get("longitude")),
        source_type=source_type,
    )


def parse_batch_date(text: str | None) -> datetime:
    """
    Parse the ISO-8601 date or date-time a provider stamps on a record.

    Raises:
        ValueError: If the date is missing or not ISO-8601
    """
    if not text:
        raise ValueError("Record has no measurement date")
    return datetime.fromisoformat(str(text).strip())


def to_measurement_shapes(raw: RawProviderRecord) -> Iterator[MeasurementShape]:
    """
    Expand a provider record into one reading per usable hour slot.

    Slot "hNN" is stamped `batch date + (NN - 1) hours`, so "h01" is hour 0
    of the batch day and "h24" is hour 23. Slots are emitted in the order the
    provider sent them. Unparseable values are logged and skipped.

    This is a generator, so it can only be consumed once.

    Raises:
        ValueError: If the record's date can't be parsed. Raised on first
            iteration, before anything is emitted.

    Example:
        >>> raw = {"station_code": "08019043", "pollutant": "NO2",
        ...        "date": "2026-01-29T00:00:00",
        ...        "hourly_values": {"h01": "10", "h13": "bad", "h24": "20"}}
        >>> [(m["timestamp"].hour, m["value"]) for m in to_measurement_shapes(raw)]
        [(0, 10.0), (23, 20.0)]
    """
    base_date = parse_batch_date(raw.get("date"))
    station_code = raw.get("station_code")
    pollutant = raw.get("pollutant")

    for slot, text in (raw.get("hourly_values") or {}).items():
        match = HOUR_SLOT_PATTERN.match(slot)
        if match is None:
            logger.warning(f"Ignoring unexpected hour slot {slot!r} for {station_code}")
            continue

        value = parse_float(text)
        if value is None:
            logger.warning(
                f"Error parsing value for hour {slot} of {station_code} "
                f"({pollutant}): {text!r}"
            )
            continue

        hour_index = int(match.group(1))
        yield MeasurementShape(
            station_code=station_code,
            pollutant=pollutant,
            value=value,
            timestamp=base_date + timedelta(hours=hour_index - 1),
        )
