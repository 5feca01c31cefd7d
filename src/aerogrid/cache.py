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
Per-run snapshot of the station directory.

An import run loads every known station once, then resolves each raw record
against this snapshot instead of querying the store per row. When the
reconciler creates a station it has not seen before, it puts it here so the
rest of the run finds it. The snapshot is thrown away at the end of the run.
"""

from typing import Iterable, Iterator

from .database_operations import Station


class StationDirectory:
    """In-memory mapping of station code to Station for a single import run."""

    def __init__(self) -> None:
        self._stations: dict[str, Station] = {}

    @classmethod
    def load(cls, stations: Iterable[Station]) -> "StationDirectory":
        """Build a directory from the stations currently in the store."""
        directory = cls()
        for station in stations:
            directory.put(station.code, station)
        return directory

    def get(self, code: str | None) -> Station | None:
        if code is None:
            return None
        return self._stations.get(code)

    def put(self, code: str, station: Station) -> None:
        self._stations[code] = station

    def __contains__(self, code: object) -> bool:
        return code in self._stations

    def __len__(self) -> int:
        return len(self._stations)

    def __iter__(self) -> Iterator[str]:
        return iter(self._stations)
