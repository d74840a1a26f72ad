"""Static configuration value object.

Purpose
-------
Hold the read-only deployment configuration: the connection map, the global
default credentials, the default connection(s), and the default stage. The
object is built once from a parsed mapping (see
:func:`deploy_connections.core.load_configuration`) and never mutated.

Contents
--------
* :class:`StaticConfiguration` - the immutable value object.
* :func:`servers_of` - expand a connection definition into its server list.
"""

from __future__ import annotations

from collections.abc import Mapping
from copy import deepcopy
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Sequence

from .errors import InvalidFormat


@dataclass(frozen=True, slots=True)
class StaticConfiguration:
    """Immutable view of the deployment configuration.

    Attributes
    ----------
    connections:
        Ordered mapping of connection name to definition. A definition is either
        a flat credential mapping or ``{"servers": [flat, ...]}``.
    defaults:
        Global default credential fields, consulted last during resolution.
    default_connections:
        Connection names selected when no explicit active set was given.
    default_stage:
        Stage the handler cursor starts on, ``None`` for no stage.

    Examples
    --------
    >>> cfg = StaticConfiguration.from_mapping({
    ...     "default": "production",
    ...     "connections": {"production": {"host": "prod.example.com"}},
    ... })
    >>> cfg.default_connections, list(cfg.connections)
    (('production',), ['production'])
    """

    connections: Mapping[str, Mapping[str, Any]]
    defaults: Mapping[str, Any]
    default_connections: tuple[str, ...] = ()
    default_stage: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "connections", MappingProxyType(deepcopy(dict(self.connections))))
        object.__setattr__(self, "defaults", MappingProxyType(dict(self.defaults)))
        object.__setattr__(self, "default_connections", tuple(self.default_connections))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> StaticConfiguration:
        """Validate the top-level shape of *data* and build the value object.

        Raises
        ------
        InvalidFormat
            When ``connections`` or ``defaults`` is not a mapping, or a
            ``servers`` entry is not a list of mappings.
        """

        connections = data.get("connections") or {}
        defaults = data.get("defaults") or {}
        if not isinstance(connections, Mapping):
            raise InvalidFormat("'connections' must be a mapping of connection names")
        if not isinstance(defaults, Mapping):
            raise InvalidFormat("'defaults' must be a mapping of credential fields")
        for name, definition in connections.items():
            if not isinstance(definition, Mapping):
                raise InvalidFormat(f"Connection {name!r} must be a mapping")
            servers = definition.get("servers")
            if servers is not None and not (
                isinstance(servers, Sequence) and all(isinstance(entry, Mapping) for entry in servers)
            ):
                raise InvalidFormat(f"Connection {name!r} declares servers that are not a list of mappings")

        stage = data.get("stage")
        return cls(
            connections={str(name): definition for name, definition in connections.items()},
            defaults=defaults,
            default_connections=_as_names(data.get("default")) or tuple(str(name) for name in list(connections)[:1]),
            default_stage=str(stage) if stage else None,
        )


def servers_of(definition: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Return the server entries of *definition*.

    A definition without an explicit ``servers`` list has exactly one server
    equal to its flat fields.

    Examples
    --------
    >>> servers_of({"host": "a.com"})
    [{'host': 'a.com'}]
    >>> [s["host"] for s in servers_of({"servers": [{"host": "a.com"}, {"host": "b.com"}]})]
    ['a.com', 'b.com']
    """

    servers = definition.get("servers")
    if isinstance(servers, Sequence) and not isinstance(servers, str) and servers:
        return [dict(entry) for entry in servers if isinstance(entry, Mapping)]
    return [{key: value for key, value in definition.items() if key != "servers"}]


def _as_names(value: object) -> tuple[str, ...]:
    """Normalise a ``default`` entry (string, comma list, or sequence) to names."""

    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    if isinstance(value, Sequence):
        return tuple(str(part) for part in value if str(part).strip())
    raise InvalidFormat("'default' must be a connection name or a list of names")
