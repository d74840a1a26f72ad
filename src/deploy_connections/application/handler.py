"""Connection cursor state machine.

Purpose
-------
Own the "current connection" cursor (name, server index, stage) and the set of
active connections for multi-connection runs, and gate the expensive
bootstrap call and the ``connected.<name>`` event on an actual identity change.

Contents
--------
* :class:`ConnectionsHandler` - the state machine consumed by the task runner.
* :class:`BootstrapLedger` - thread-safe record of keys whose bootstrap ran;
  shared between a handler and its forks.

System Role
-----------
Sits between the composition root (:mod:`deploy_connections.core`) and the
task queue (:mod:`deploy_connections.application.queue`). Cursor mutation and
resolution are serialised by a per-handler re-entrant lock; bootstrap is
serialised per key by the shared ledger so it runs at most once per key even when
forks connect in parallel.
"""

from __future__ import annotations

import threading
from typing import Callable, Final, Sequence

from ..domain.connection import ConnectionInstance, ConnectionKey, ResolvedConnection
from ..domain.errors import ConnectionError
from ..observability import log_debug, log_info, make_event
from .catalog import ConnectionCatalog
from .ports import Bootstrapper, EventNotifier
from .resolver import ConnectionResolver

CONNECTED_TOPIC: Final[str] = "connected."

_KEEP: Final = object()


class BootstrapLedger:
    """Remember which keys have been bootstrapped, comparing by value.

    Bootstraps of distinct keys run concurrently; a second thread asking for a
    key already in flight waits for that key only. A bootstrap that re-enters
    the ledger for its own key on the same thread is not run again.
    """

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._done: set[ConnectionKey] = set()
        self._running: dict[ConnectionKey, int] = {}

    def run_once(self, key: ConnectionKey, callback: Callable[[ConnectionKey], None]) -> bool:
        """Call ``callback(key)`` unless it already succeeded for an equal key.

        Returns ``True`` when the callback ran. A raising callback leaves the
        key unrecorded so a later call retries.
        """

        caller = threading.get_ident()
        with self._condition:
            while key not in self._done:
                owner = self._running.get(key)
                if owner is None:
                    break
                if owner == caller:
                    return False
                self._condition.wait()
            else:
                return False
            self._running[key] = caller

        succeeded = False
        try:
            callback(key)
            succeeded = True
        finally:
            with self._condition:
                del self._running[key]
                if succeeded:
                    self._done.add(key)
                self._condition.notify_all()
        return True

    def __contains__(self, key: object) -> bool:
        with self._condition:
            return key in self._done


class ConnectionsHandler:
    """Track the current connection and hand live connection instances to callers.

    The cursor starts on the configuration's first default connection, server
    ``0``, and default stage. Selecting the key the cursor already points at is
    a no-op; any other key resets the cursor to "not connected" and the next
    :meth:`get_current_connection` resolves, bootstraps, and notifies.
    """

    def __init__(
        self,
        catalog: ConnectionCatalog,
        resolver: ConnectionResolver,
        *,
        notifier: EventNotifier | None = None,
        bootstrapper: Bootstrapper | None = None,
        ledger: BootstrapLedger | None = None,
    ) -> None:
        self.catalog = catalog
        self.resolver = resolver
        self.notifier = notifier
        self.bootstrapper = bootstrapper
        self.ledger = ledger or BootstrapLedger()
        self._lock = threading.RLock()

        configuration = catalog.configuration
        self._current = ConnectionKey(self._default_name(), 0, configuration.default_stage)
        self._instance: ConnectionInstance | None = None
        self._active: list[str] | None = None

    # Cursor -----------------------------------------------------------------

    @property
    def current(self) -> ConnectionKey:
        """Return the cursor key without resolving it."""

        with self._lock:
            return self._current

    def set_current_connection(
        self,
        connection: str | ConnectionKey,
        server: int | None = None,
        stage: str | None | object = _KEEP,
    ) -> ConnectionKey:
        """Point the cursor at *connection*.

        *connection* is a name, combined with *server* and *stage* (both default
        to the cursor's current values), or a pre-built :class:`ConnectionKey`
        used as is. Returns the cursor key after the call.
        """

        with self._lock:
            if isinstance(connection, ConnectionKey):
                candidate = connection
            else:
                candidate = ConnectionKey(
                    connection,
                    self._current.server if server is None else server,
                    self._current.stage if stage is _KEEP else stage,  # type: ignore[arg-type]
                )
            if candidate == self._current:
                return self._current

            self._current = candidate
            self._instance = None
            log_info("connection_selected", **make_event(candidate.name, candidate.server, candidate.stage))
            return candidate

    def set_stage(self, stage: str | None) -> ConnectionKey:
        """Change the cursor stage, keeping connection name and server."""

        with self._lock:
            return self.set_current_connection(self._current.name, self._current.server, stage)

    def get_current_connection(self) -> ConnectionInstance:
        """Return the live instance for the cursor, connecting it first if needed.

        Connecting means: resolve credentials, run the bootstrapper (once per
        key over the ledger's lifetime), mark the instance connected, then emit
        ``connected.<name>``. Listeners and bootstrap hooks may query the
        handler; they get the same instance. Resolution and bootstrap errors
        propagate and leave the cursor unconnected, so the next call retries.
        """

        with self._lock:
            instance = self._instance
            if instance is not None and instance.connected:
                return instance

            key = self._current
            resolved = self.resolver.resolve(key)
            if instance is None:
                instance = ConnectionInstance(resolved)
                self._instance = instance
            else:
                instance.resolved = resolved

            if self.bootstrapper is not None and self.ledger.run_once(key, self.bootstrapper.bootstrap_user_code):
                log_debug("connection_bootstrapped", **make_event(key.name, key.server, key.stage))
            if instance.connected:
                # a bootstrap hook already connected this instance
                return instance

            instance.connected = True
            if self.notifier is not None:
                self.notifier.emit(CONNECTED_TOPIC + key.name)
            log_info(
                "connection_connected",
                **make_event(key.name, key.server, key.stage, {"host": instance.credentials.host}),
            )
            return instance

    def get_current_connection_key(self) -> ResolvedConnection:
        """Resolve the cursor (paths expanded) without bootstrapping or mutating state."""

        with self._lock:
            return self.resolver.resolve(self._current)

    def is_current(self, name: str, server: int | None = None) -> bool:
        """Return ``True`` when the cursor is on *name* (and *server*, when given)."""

        with self._lock:
            return self._current.name == name and (server is None or self._current.server == server)

    # Active connections -----------------------------------------------------

    def set_active_connections(self, connections: str | Sequence[str]) -> list[str]:
        """Select the connections a multi-connection run targets.

        Accepts a comma-separated string or a sequence of names. Duplicates are
        dropped (first occurrence wins) and names missing from the catalog are
        silently discarded, unless every name is invalid.

        Raises
        ------
        ConnectionError
            When no requested name exists in the catalog; the message lists the
            invalid names in input order.
        """

        if isinstance(connections, str):
            candidates = connections.split(",")
        else:
            candidates = [str(name) for name in connections]
        requested = list(dict.fromkeys(name.strip() for name in candidates if name.strip()))

        available = set(self.catalog.names())
        valid = [name for name in requested if name in available]
        if not valid:
            raise ConnectionError(name for name in requested if name not in available)

        with self._lock:
            self._active = valid
        log_info("active_connections_set", connections=valid, dropped=len(requested) - len(valid))
        return list(valid)

    def get_active_connections(self) -> list[str]:
        """Return the active connections, defaulting to the configured default(s)."""

        with self._lock:
            if self._active is not None:
                return list(self._active)
        available = set(self.catalog.names())
        return [name for name in self.catalog.configuration.default_connections if name in available]

    # Parallel runs ----------------------------------------------------------

    def fork(self) -> ConnectionsHandler:
        """Return a handler with its own cursor for one parallel execution path.

        The fork shares the catalog, resolver, collaborators, and bootstrap
        ledger, and starts from a copy of this handler's cursor and active set.
        """

        with self._lock:
            clone = ConnectionsHandler(
                self.catalog,
                self.resolver,
                notifier=self.notifier,
                bootstrapper=self.bootstrapper,
                ledger=self.ledger,
            )
            clone._current = self._current
            clone._active = list(self._active) if self._active is not None else None
            if self._instance is not None:
                clone._instance = ConnectionInstance(self._instance.resolved, self._instance.connected)
            return clone

    def _default_name(self) -> str:
        defaults = self.catalog.configuration.default_connections
        if defaults:
            return defaults[0]
        names = self.catalog.names()
        return names[0] if names else ""
