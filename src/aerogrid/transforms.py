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
Composable DataFrame transformation functions.

Small, pure functions used to tidy provider catalogues and shape read-query
results. Each factory takes its configuration and returns a function from
DataFrame to DataFrame, so steps can be chained with `pipe()` or bundled
with `compose()`.

Example:
    >>> tidy = compose(
    ...     rename_columns({"codi_eoi": "station_code"}),
    ...     strip_strings(["station_code"]),
    ...     drop_duplicate_keys(["station_code"]),
    ... )
    >>> stations = tidy(raw_df)
"""

from functools import reduce
from typing import Any, Callable, TypeAlias

import pandas as pd

Transformer: TypeAlias = Callable[[pd.DataFrame], pd.DataFrame]


def pipe(df: pd.DataFrame, *functions: Transformer) -> pd.DataFrame:
    """
    Apply a series of transformation functions to a DataFrame in sequence.

    Args:
        df: Input DataFrame
        *functions: Transformer functions, applied left to right

    Returns:
        pd.DataFrame: Transformed DataFrame after all functions applied
    """
    return reduce(lambda data, func: func(data), functions, df)


def compose(*functions: Transformer) -> Transformer:
    """
    Compose multiple transformer functions into a single reusable one.

    Example:
        >>> normalise = compose(rename_columns({"municipi": "municipality"}))
        >>> df_normalised = normalise(df_raw)
    """

    def composed(df: pd.DataFrame) -> pd.DataFrame:
        return pipe(df, *functions)

    return composed


def rename_columns(mapping: dict[str, str]) -> Transformer:
    """Return a function that renames DataFrame columns."""

    def transform(df: pd.DataFrame) -> pd.DataFrame:
        return df.rename(columns=mapping)

    return transform


def select_columns(*columns: str) -> Transformer:
    """
    Return a function that keeps only the given columns, in the given order.

    Columns missing from the input are added as all-null columns, so the
    output always has the same shape.
    """

    def transform(df: pd.DataFrame) -> pd.DataFrame:
        return df.reindex(columns=list(columns))

    return transform


def strip_strings(columns: list[str]) -> Transformer:
    """
    Return a function that trims whitespace in text columns.

    Non-string cells are left alone; blank strings become null.
    """

    def transform(df: pd.DataFrame) -> pd.DataFrame:
        def strip(value: Any) -> Any:
            if isinstance(value, str):
                value = value.strip()
                return value or None
            return value

        return df.assign(
            **{column: df[column].map(strip) for column in columns if column in df}
        )

    return transform


def filter_rows(predicate: Callable[[pd.DataFrame], pd.Series]) -> Transformer:
    """
    Return a function that keeps rows where the predicate is True.

    Example:
        >>> has_code = filter_rows(lambda df: df["station_code"].notna())
    """

    def transform(df: pd.DataFrame) -> pd.DataFrame:
        return df[predicate(df)]

    return transform


def drop_duplicate_keys(keys: list[str]) -> Transformer:
    """Return a function that keeps the first row for each key combination."""

    def transform(df: pd.DataFrame) -> pd.DataFrame:
        return df.drop_duplicates(subset=keys, keep="first")

    return transform


def nulls_to_none(df: pd.DataFrame) -> pd.DataFrame:
    """Replace NaN/NaT with None so rows serialise cleanly."""
    return df.astype(object).where(df.notna(), None)


def frame_to_records(df: pd.DataFrame) -> list[dict[str, Any]]:
    """Convert a DataFrame to a list of dicts with None for missing values."""
    if df.empty:
        return []
    return nulls_to_none(df).to_dict(orient="records")
