"""Per-field credential resolution for one connection key.

Purpose
-------
Turn a :class:`~deploy_connections.domain.connection.ConnectionKey` into a fully
merged :class:`~deploy_connections.domain.connection.CredentialRecord` by
walking an ordered list of named lookup functions for every field, highest
priority first:

1. ``runtime`` - per-invocation overrides (command-line flags, environment);
2. ``local`` - local overrides for the connection and server index;
3. ``server`` - the selected server entry, or the flat definition;
4. ``defaults`` - the global default definition.

The first non-empty value wins, field by field. Path fields are expanded
against the home directory after the merge, whatever source supplied them.

System Role
-----------
Used by :class:`deploy_connections.application.handler.ConnectionsHandler` to
resolve the cursor, and by the CLI to print resolved credentials.
"""

from __future__ import annotations

import os
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Mapping, Sequence

from ..domain.configuration import servers_of
from ..domain.connection import (
    CREDENTIAL_FIELDS,
    PATH_FIELDS,
    ConnectionKey,
    CredentialRecord,
    ResolvedConnection,
    is_blank,
)
from ..domain.errors import InvalidCredentialsError, UnknownConnectionError
from ..observability import log_debug, make_event
from .catalog import ConnectionCatalog
from .ports import RuntimeOptionSource

Lookup = Callable[[str], Any]


class ConnectionResolver:
    """Resolve connection keys against the catalog and runtime options."""

    def __init__(
        self,
        catalog: ConnectionCatalog,
        options: RuntimeOptionSource | None = None,
        *,
        home: str | Path | None = None,
    ) -> None:
        """Store collaborators.

        Parameters
        ----------
        catalog:
            Source of merged connection definitions and local overrides.
        options:
            Runtime overrides; ``None`` disables that layer.
        home:
            Home directory used for ``~`` expansion. Defaults to the current
            user's home as reported by :meth:`pathlib.Path.home`. Either way only
            a leading ``~`` or ``~/`` is expanded; ``~user`` stays verbatim.
        """

        self.catalog = catalog
        self.options = options
        self._home = Path(home) if home is not None else None

    def resolve(self, key: ConnectionKey) -> ResolvedConnection:
        """Return the merged credentials of *key*.

        Raises
        ------
        UnknownConnectionError
            When ``key.name`` is not in the catalog or ``key.server`` is out of
            range for that connection.
        InvalidCredentialsError
            When no source supplied a host.
        """

        definition = self.catalog.get(key.name)
        if definition is None:
            raise UnknownConnectionError(key.name, key.server, key.stage)
        servers = servers_of(definition)
        if not 0 <= key.server < len(servers):
            raise UnknownConnectionError(
                key.name,
                key.server,
                key.stage,
                reason=f"Connection {key.name!r} has no server {key.server} ({len(servers)} configured)",
            )

        lookups = self._lookups(servers[key.server], self.catalog.overrides_for(key.name, key.server))
        fields, origins = merge_fields(lookups)
        record = CredentialRecord.from_fields(self.expand_paths(fields))
        if not record.is_valid:
            raise InvalidCredentialsError(key.name, key.server, key.stage)

        log_debug(
            "connection_resolved",
            **make_event(key.name, key.server, key.stage, {"host": record.host, "origins": dict(origins)}),
        )
        return ResolvedConnection(key, record, MappingProxyType(origins))

    def expand_paths(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Return *fields* with every path field ``~``-expanded."""

        expanded = dict(fields)
        for name in PATH_FIELDS:
            value = expanded.get(name)
            if isinstance(value, str) and value:
                expanded[name] = self.expand_path(value)
        return expanded

    def expand_path(self, value: str) -> str:
        """Expand a leading ``~`` in *value*; anything else is returned verbatim.

        Examples
        --------
        >>> resolver = ConnectionResolver(None, home="/home/deploy")  # type: ignore[arg-type]
        >>> resolver.expand_path("~/.ssh/id_rsa")
        '/home/deploy/.ssh/id_rsa'
        >>> resolver.expand_path("foobar")
        'foobar'
        """

        if not value.startswith("~"):
            return value
        home = self._home if self._home is not None else Path.home()
        if value == "~":
            return str(home)
        if value[1] in ("/", os.sep):
            return str(home / value[2:])
        return value

    def _lookups(self, server: Mapping[str, Any], local: Mapping[str, Any]) -> list[tuple[str, Lookup]]:
        """Return the named lookup functions in priority order."""

        defaults = self.catalog.configuration.defaults
        lookups: list[tuple[str, Lookup]] = []
        if self.options is not None:
            lookups.append(("runtime", self.options.get))
        lookups.append(("local", local.get))
        lookups.append(("server", server.get))
        lookups.append(("defaults", defaults.get))
        return lookups


def merge_fields(lookups: Sequence[tuple[str, Lookup]]) -> tuple[dict[str, Any], dict[str, str]]:
    """Evaluate *lookups* per credential field; the first non-empty value wins.

    Returns ``(fields, origins)`` where ``origins`` names the winning lookup of
    each field that some source supplied.

    Examples
    --------
    >>> fields, origins = merge_fields([
    ...     ("runtime", {"key": "foobar"}.get),
    ...     ("server", {"host": "foo.com", "key": "~/.ssh/id_rsa"}.get),
    ... ])
    >>> fields
    {'host': 'foo.com', 'key': 'foobar'}
    >>> origins
    {'host': 'server', 'key': 'runtime'}
    """

    fields: dict[str, Any] = {}
    origins: dict[str, str] = {}
    for name in CREDENTIAL_FIELDS:
        for source, lookup in lookups:
            value = lookup(name)
            if is_blank(value):
                continue
            fields[name] = value
            origins[name] = source
            break
    return fields, origins
