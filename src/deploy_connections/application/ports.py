"""Application-layer ports describing collaborator responsibilities.

Purpose
-------
Define the structural contracts the connection core depends on so the catalog,
resolver, and handler never import concrete adapters.

Contents
--------
* :class:`KeyValueStore` - local override storage addressed by dotted keys.
* :class:`RuntimeOptionSource` - per-invocation overrides looked up by field.
* :class:`EventNotifier` - fire-and-forget topic notifications.
* :class:`Bootstrapper` - one-time initialisation per connection identity.
* :class:`FileLoader` - parses structured configuration artifacts.

System Role
-----------
These protocols enforce dependency inversion: each adapter under
``deploy_connections.adapters`` implements one of them, and tests substitute
recording doubles.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, runtime_checkable

from ..domain.connection import ConnectionKey


@runtime_checkable
class KeyValueStore(Protocol):
    """Read and write locally persisted override data.

    Keys are dotted paths such as ``connections.staging.servers.1.host``. The
    store must return the latest completed write on every read.
    """

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under dotted *key* or *default*."""

    def set(self, key: str, value: Any) -> None:
        """Store *value* under dotted *key*, creating intermediate mappings."""


@runtime_checkable
class RuntimeOptionSource(Protocol):
    """Expose per-invocation overrides (command-line flags, environment)."""

    def get(self, field: str) -> str | None:
        """Return the override for configuration field *field* or ``None``."""


@runtime_checkable
class EventNotifier(Protocol):
    """Publish topic events without a payload contract."""

    def emit(self, topic: str) -> None:
        """Notify every listener subscribed to *topic*."""


@runtime_checkable
class Bootstrapper(Protocol):
    """Run one-time initialisation for a connection identity.

    Why
    ----
    User code (hooks, task registrations) depends on which connection and stage
    are current; the handler calls this once per distinct key.
    """

    def bootstrap_user_code(self, key: ConnectionKey) -> None:
        """Initialise user code for *key*; failures propagate to the caller."""


@runtime_checkable
class FileLoader(Protocol):
    """Parse a structured configuration file into a mapping."""

    def load(self, path: str) -> Mapping[str, object]:
        """Read *path* and return a mapping representation or raise ``InvalidFormat``."""
