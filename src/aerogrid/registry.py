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
Data provider registry for Aerogrid.

Each provider module registers a factory under a name when it is imported.
A factory takes the ingestion reconciler and returns an object implementing
`DataImportProvider`. Configuration then picks providers by name.

The registry is just a dictionary - no magic.

Example:
    >>> from aerogrid.registry import build_providers, register_provider
    >>>
    >>> register_provider("MY_PROVIDER", MyProvider)
    >>> providers = build_providers(["my_provider"], reconciler)
"""

import warnings
from typing import TYPE_CHECKING, Callable, Iterable

from .types import DataImportProvider

if TYPE_CHECKING:
    from .ingestion import IngestionReconciler

ProviderFactory = Callable[["IngestionReconciler"], DataImportProvider]

# The global registry - maps upper-case names to provider factories
_PROVIDERS: dict[str, ProviderFactory] = {}


def register_provider(name: str, factory: ProviderFactory) -> None:
    """
    Register a provider factory in the global registry.

    Names are case-insensitive. Registering a name twice replaces the
    earlier factory with a warning.
    """
    normalized_name = name.upper()

    if normalized_name in _PROVIDERS:
        warnings.warn(
            f"Provider '{normalized_name}' is already registered and will be replaced",
            UserWarning,
            stacklevel=2,
        )

    _PROVIDERS[normalized_name] = factory


def unregister_provider(name: str) -> bool:
    """Remove a provider. Returns False if it wasn't registered."""
    normalized_name = name.upper()

    if normalized_name in _PROVIDERS:
        del _PROVIDERS[normalized_name]
        return True
    return False


def get_provider(name: str) -> ProviderFactory | None:
    """Retrieve a registered provider factory by name (case-insensitive)."""
    return _PROVIDERS.get(name.upper())


def list_providers() -> list[str]:
    """Get a sorted list of all registered provider names."""
    return sorted(_PROVIDERS.keys())


def build_providers(
    names: Iterable[str], reconciler: "IngestionReconciler"
) -> list[DataImportProvider]:
    """
    Instantiate the named providers, in the order given.

    Raises:
        ValueError: If any name is not registered
    """
    providers = []
    for name in names:
        factory = get_provider(name)
        if factory is None:
            available = ", ".join(list_providers())
            raise ValueError(
                f"Provider '{name}' not found. Available providers: {available}"
            )
        providers.append(factory(reconciler))
    return providers
