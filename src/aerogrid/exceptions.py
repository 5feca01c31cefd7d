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
Exceptions raised by Aerogrid.

Batch imports never raise these for individual records; they log and move
on. The synchronous citizen path raises them so each failure reaches the
caller as a distinct signal.
"""


class AerogridError(Exception):
    """Base class for Aerogrid errors."""


class AuthenticationError(AerogridError):
    """The station API key is missing, unknown or inactive."""


class ValidationError(AerogridError, ValueError):
    """A submitted reading is invalid (unknown pollutant, bad value)."""


class ServerError(AerogridError):
    """The reading was valid but could not be stored."""
