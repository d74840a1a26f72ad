"""Bootstrap adapter running registered user hooks.

Implements :class:`deploy_connections.application.ports.Bootstrapper`. Host
applications register hooks (task definitions, event listeners, per-stage
settings) that must be loaded whenever the connection identity changes; the
handler decides *when*, this adapter only runs them in registration order.
"""

from __future__ import annotations

from typing import Callable, Iterable

from ...domain.connection import ConnectionKey
from ...observability import log_debug, make_event

Hook = Callable[[ConnectionKey], None]


class CallbackBootstrapper:
    """Call every registered hook with the key being bootstrapped."""

    def __init__(self, hooks: Iterable[Hook] = ()) -> None:
        self._hooks: list[Hook] = list(hooks)

    def register(self, hook: Hook) -> Hook:
        """Add *hook*; returns it so the method doubles as a decorator."""

        self._hooks.append(hook)
        return hook

    def bootstrap_user_code(self, key: ConnectionKey) -> None:
        log_debug("bootstrap_started", **make_event(key.name, key.server, key.stage, {"hooks": len(self._hooks)}))
        for hook in list(self._hooks):
            hook(key)
