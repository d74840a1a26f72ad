"""In-process event dispatcher.

Implements :class:`deploy_connections.application.ports.EventNotifier` with a
plain topic -> listeners registry. Listeners take no arguments and are called in
subscription order; a raising listener propagates to the emitter.
"""

from __future__ import annotations

import threading
from typing import Callable

from ...observability import log_debug

Listener = Callable[[], None]


class EventDispatcher:
    """Publish/subscribe keyed by topic string.

    Examples
    --------
    >>> calls = []
    >>> dispatcher = EventDispatcher()
    >>> dispatcher.add_listener("connected.production", lambda: calls.append("connected"))
    >>> dispatcher.emit("connected.production")
    >>> dispatcher.emit("connected.staging")
    >>> calls
    ['connected']
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[str, list[Listener]] = {}

    def add_listener(self, topic: str, listener: Listener) -> None:
        with self._lock:
            self._listeners.setdefault(topic, []).append(listener)

    def remove_listener(self, topic: str, listener: Listener) -> None:
        with self._lock:
            listeners = self._listeners.get(topic, [])
            if listener in listeners:
                listeners.remove(listener)

    def has_listeners(self, topic: str) -> bool:
        with self._lock:
            return bool(self._listeners.get(topic))

    def emit(self, topic: str) -> None:
        with self._lock:
            listeners = list(self._listeners.get(topic, ()))
        log_debug("event_emitted", topic=topic, listeners=len(listeners))
        for listener in listeners:
            listener()
