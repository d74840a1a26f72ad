"""Shared test doubles and a small harness around :class:`ConnectionsHandler`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from deploy_connections.adapters.runtime.default import RuntimeOptions
from deploy_connections.adapters.storage.default import MemoryStore
from deploy_connections.application.catalog import ConnectionCatalog
from deploy_connections.application.handler import ConnectionsHandler
from deploy_connections.application.resolver import ConnectionResolver
from deploy_connections.domain.configuration import StaticConfiguration
from deploy_connections.domain.connection import ConnectionKey

HOME = Path("/home/deploy")

BASE_CONNECTIONS: dict[str, Any] = {
    "production": {
        "host": "prod.example.com",
        "username": "deploy",
        "password": "s3cret",
        "key": "",
        "keyphrase": "",
        "agent": False,
    },
    "staging": {
        "host": "staging.example.com",
        "username": "deploy",
        "password": "s3cret",
    },
}

TWO_SERVERS: dict[str, Any] = {
    "servers": [
        {"host": "foobar.com", "username": "foobar", "password": "foobar"},
        {"host": "barbaz.com", "username": "foobar", "password": "foobar"},
    ]
}


class RecordingBootstrapper:
    """Bootstrapper double remembering every key it was called with."""

    def __init__(self) -> None:
        self.calls: list[ConnectionKey] = []

    def bootstrap_user_code(self, key: ConnectionKey) -> None:
        self.calls.append(key)


class RecordingNotifier:
    """Event notifier double remembering emitted topics in order."""

    def __init__(self) -> None:
        self.topics: list[str] = []

    def emit(self, topic: str) -> None:
        self.topics.append(topic)


@dataclass
class Harness:
    handler: ConnectionsHandler
    store: MemoryStore
    bootstrapper: RecordingBootstrapper
    notifier: RecordingNotifier
    configuration: StaticConfiguration


def make_harness(
    connections: Mapping[str, Any] | None = None,
    *,
    default: str | list[str] | None = "production",
    stage: str | None = None,
    defaults: Mapping[str, Any] | None = None,
    options: Mapping[str, object] | None = None,
    store_data: Mapping[str, Any] | None = None,
    bootstrapper: Any = None,
) -> Harness:
    """Build a handler over in-memory collaborators."""

    payload: dict[str, Any] = {"connections": dict(connections or BASE_CONNECTIONS)}
    if default is not None:
        payload["default"] = default
    if stage is not None:
        payload["stage"] = stage
    if defaults is not None:
        payload["defaults"] = dict(defaults)
    configuration = StaticConfiguration.from_mapping(payload)
    store = MemoryStore(store_data)
    recorder = bootstrapper if bootstrapper is not None else RecordingBootstrapper()
    notifier = RecordingNotifier()
    catalog = ConnectionCatalog(configuration, store)
    resolver = ConnectionResolver(catalog, RuntimeOptions(options), home=HOME)
    handler = ConnectionsHandler(catalog, resolver, notifier=notifier, bootstrapper=recorder)
    return Harness(handler, store, recorder, notifier, configuration)
