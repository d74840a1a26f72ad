"""Catalog of available connections.

Purpose
-------
Merge the static connection map with the local override store into the full,
ordered map of connections a command may target. Connections that only exist
in the local store ("custom" connections) are synthesised from the override
data alone.

Contents
--------
* :data:`OVERRIDES_KEY` - root key of the connection overrides in the store.
* :class:`ConnectionCatalog` - builds and queries the merged map.

System Role
-----------
Feeds :class:`deploy_connections.application.resolver.ConnectionResolver` and
the active-connection validation in
:class:`deploy_connections.application.handler.ConnectionsHandler`. The map is
rebuilt on every query so it always reflects the latest store write.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Final

from ..domain.configuration import StaticConfiguration, servers_of
from ..domain.errors import InvalidFormat
from ..observability import log_debug, log_error
from .merge import fill_holes, merge_definition, override_servers
from .ports import KeyValueStore

OVERRIDES_KEY: Final[str] = "connections"


class ConnectionCatalog:
    """Compute the connections available from configuration plus local overrides.

    Examples
    --------
    >>> from deploy_connections.adapters.storage.default import MemoryStore
    >>> store = MemoryStore()
    >>> config = StaticConfiguration.from_mapping({"connections": {"production": {"host": "a.com"}}})
    >>> catalog = ConnectionCatalog(config, store)
    >>> store.set("connections.custom.username", "foobar")
    >>> catalog.names()
    ['production', 'custom']
    """

    def __init__(self, configuration: StaticConfiguration, store: KeyValueStore) -> None:
        self.configuration = configuration
        self.store = store

    def get_available_connections(self) -> dict[str, dict[str, Any]]:
        """Return ``{name: definition}`` in configuration order, custom connections last.

        Static connections are never dropped, whatever shape the stored
        overrides have; malformed override entries, or a store that cannot be
        read at all, are ignored.
        """

        overrides = self._overrides()
        available: dict[str, dict[str, Any]] = {}
        for name, definition in self.configuration.connections.items():
            available[name] = merge_definition(definition, _as_mapping(overrides.get(name)))

        for name, entry in overrides.items():
            if name in available or not isinstance(entry, Mapping):
                continue
            available[str(name)] = merge_definition({}, entry)

        log_debug("catalog_built", connections=list(available), custom=len(available) - len(self.configuration.connections))
        return available

    def names(self) -> list[str]:
        """Return connection names in catalog order."""

        return list(self.get_available_connections())

    def get(self, name: str) -> dict[str, Any] | None:
        """Return the merged definition of *name* or ``None``."""

        return self.get_available_connections().get(name)

    def servers(self, name: str) -> list[dict[str, Any]]:
        """Return the merged server entries of *name* (empty when unknown)."""

        definition = self.get(name)
        return servers_of(definition) if definition is not None else []

    def is_custom(self, name: str) -> bool:
        """Return ``True`` when *name* only exists in the local override store."""

        return name not in self.configuration.connections and name in self.names()

    def overrides_for(self, name: str, server: int) -> dict[str, Any]:
        """Return the flat local override fields that apply to *name*/*server*.

        Per-server entries win over the connection-wide fields.
        """

        entry = _as_mapping(self._overrides().get(name))
        return fill_holes(fill_holes({}, entry), override_servers(entry).get(server))

    def _overrides(self) -> Mapping[str, Any]:
        try:
            stored = self.store.get(OVERRIDES_KEY)
        except InvalidFormat as exc:
            log_error("local_overrides_ignored", key=OVERRIDES_KEY, error=str(exc))
            return {}
        return _as_mapping(stored)


def _as_mapping(value: object) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}
