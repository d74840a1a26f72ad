"""Application-layer hole-filling merge policy.

Purpose
-------
Combine a statically configured connection definition with sparse local
overrides without ever erasing data: an override field wins only when it is
non-empty, and an empty or missing override field leaves the base untouched.
The module is free of I/O so both the catalog and the tests can drive it
directly.

Contents
    - ``fill_holes``: merge one flat credential mapping into another.
    - ``merge_definition``: apply overrides to a whole connection definition,
      server by server.
    - ``override_servers``: normalise the per-server override section (list or
      index-keyed mapping) to ``{index: fields}``.

System Role
-----------
Called by :class:`deploy_connections.application.catalog.ConnectionCatalog`
when it builds the map of available connections.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..domain.configuration import servers_of
from ..domain.connection import is_blank


def fill_holes(base: Mapping[str, Any], overrides: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return a copy of *base* with the non-empty scalar fields of *overrides* applied.

    Why
    ----
    Locally stored credentials are often partial (a password typed once, an
    empty key path); they must complete a definition, never truncate it.

    Examples
    --------
    >>> fill_holes({"host": "a.com", "username": "deploy"}, {"host": "", "password": "s3cret"})
    {'host': 'a.com', 'username': 'deploy', 'password': 's3cret'}
    >>> fill_holes({"host": "a.com"}, {"host": "b.com"})
    {'host': 'b.com'}
    """

    merged = dict(base)
    if not isinstance(overrides, Mapping):
        return merged
    for key, value in overrides.items():
        if key == "servers" or isinstance(value, (Mapping, list)):
            continue
        if is_blank(value):
            continue
        merged[key] = value
    return merged


def override_servers(overrides: Mapping[str, Any] | None) -> dict[int, Mapping[str, Any]]:
    """Return the per-server override section of *overrides* keyed by index.

    Accepts a list (``servers[0]``) or a mapping keyed by numeric strings
    (``servers.0``), which is what dotted writes to the local store produce.
    Entries that are not mappings or not addressed by an index are ignored.

    Examples
    --------
    >>> override_servers({"servers": {"1": {"host": "b.com"}, "x": {}}})
    {1: {'host': 'b.com'}}
    >>> override_servers({"servers": [{"host": "a.com"}, "junk"]})
    {0: {'host': 'a.com'}}
    """

    if not isinstance(overrides, Mapping):
        return {}
    section = overrides.get("servers")
    collected: dict[int, Mapping[str, Any]] = {}
    if isinstance(section, list):
        items = enumerate(section)
    elif isinstance(section, Mapping):
        items = ((_as_index(key), value) for key, value in section.items())
    else:
        return collected
    for index, value in items:
        if index is None or not isinstance(value, Mapping):
            continue
        collected[index] = value
    return collected


def merge_definition(definition: Mapping[str, Any], overrides: Mapping[str, Any] | None) -> dict[str, Any]:
    """Apply *overrides* to a connection *definition*, independently per server.

    Flat override fields fill holes in every server; ``servers.<i>`` overrides
    apply to server ``i`` on top of that. Override servers directly after the
    static list extend it; an index past a gap is ignored. The result keeps the
    ``servers`` form when the definition used it or when more than one server
    exists afterwards.

    Examples
    --------
    >>> merge_definition({"host": "a.com", "username": "deploy"}, {"username": ""})
    {'host': 'a.com', 'username': 'deploy'}
    >>> merged = merge_definition(
    ...     {"servers": [{"host": "a.com"}, {"host": "b.com"}]},
    ...     {"username": "ops", "servers": {"1": {"host": "c.com"}}},
    ... )
    >>> [(s["host"], s["username"]) for s in merged["servers"]]
    [('a.com', 'ops'), ('c.com', 'ops')]
    """

    static_servers = servers_of(definition)
    per_server = override_servers(overrides)
    count = len(static_servers)
    while count in per_server:
        count += 1

    servers: list[dict[str, Any]] = []
    for index in range(count):
        base = static_servers[index] if index < len(static_servers) else {}
        merged = fill_holes(base, overrides)
        servers.append(fill_holes(merged, per_server.get(index)))

    if "servers" in definition or len(servers) > 1:
        return {"servers": servers}
    return servers[0]


def _as_index(key: object) -> int | None:
    """Return *key* as a non-negative server index or ``None``."""

    if isinstance(key, int) and key >= 0:
        return key
    if isinstance(key, str) and key.isdigit():
        return int(key)
    return None
