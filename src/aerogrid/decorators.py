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
Function decorators for cross-cutting concerns.

Retry logic for provider HTTP calls, and entry/exit logging for the
scheduled jobs, kept out of the functions they wrap.
"""

import logging
from functools import wraps
from typing import Callable, TypeVar

import requests
from tenacity import (
    after_log,
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

F = TypeVar("F", bound=Callable)

logger = logging.getLogger(__name__)


def is_transient_network_error(exception: BaseException) -> bool:
    """
    Decide whether a provider call is worth retrying.

    Connection errors, timeouts and HTTP 5xx are transient. HTTP 4xx means
    the request itself is wrong, so retrying won't help.
    """
    if isinstance(exception, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
        return True
    if isinstance(exception, requests.exceptions.HTTPError):
        response = exception.response
        return response is not None and 500 <= response.status_code < 600
    return False


def with_retry(
    max_attempts: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 10.0,
    multiplier: float = 2.0,
) -> Callable[[F], F]:
    """
    Decorator to add exponential backoff retry logic to a provider call.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        min_wait: Minimum wait between retries in seconds (default: 1.0)
        max_wait: Maximum wait between retries in seconds (default: 10.0)
        multiplier: Multiplier for exponential backoff (default: 2.0)

    Returns:
        Callable: Decorated function that re-raises the last error once
            all attempts are used up

    Example:
        >>> @with_retry(max_attempts=5, min_wait=2.0)
        ... def fetch_catalogue(url):
        ...     response = requests.get(url, timeout=30)
        ...     response.raise_for_status()
        ...     return response.json()
    """

    def decorator(func: F) -> F:
        @retry(
            retry=retry_if_exception(is_transient_network_error),
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=multiplier, min=min_wait, max=max_wait),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            after=after_log(logger, logging.DEBUG),
            reraise=True,
        )
        @wraps(func)
        def wrapper(*args, **kwargs):
            return func(*args, **kwargs)

        return wrapper

    return decorator


def with_logging(logger_name: str | None = None) -> Callable[[F], F]:
    """
    Decorator to log a job's start, completion and failure.

    Errors are logged with traceback and re-raised.

    Example:
        >>> @with_logging("aerogrid.jobs")
        ... def run_periodic_import():
        ...     ...
    """

    def decorator(func: F) -> F:
        func_logger = logging.getLogger(logger_name or func.__module__)

        @wraps(func)
        def wrapper(*args, **kwargs):
            func_logger.info(f"Starting {func.__name__}")
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                func_logger.error(f"Error in {func.__name__}: {e}", exc_info=True)
                raise
            func_logger.info(f"Completed {func.__name__}")
            return result

        return wrapper

    return decorator


# Standard retry for provider calls
retry_on_network_error = with_retry(
    max_attempts=3, min_wait=1.0, max_wait=10.0, multiplier=2.0
)