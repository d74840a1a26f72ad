"""Composition root for ``deploy_connections``.

Purpose
-------
Provide the entry points that wire the static configuration, the local
override store, runtime options, and the event/bootstrap collaborators into a
ready :class:`~deploy_connections.application.handler.ConnectionsHandler`.

Contents
--------
* :class:`ConfigurationLoadError` - raised when the configuration file cannot
  be turned into a :class:`StaticConfiguration`.
* :data:`DEFAULT_CONFIG_NAME` / :data:`DEFAULT_STORAGE_NAME` - file names used
  when the caller gives none.
* :func:`load_configuration` - parse a configuration file.
* :func:`build_handler` - wire a handler from in-memory collaborators.
* :func:`open_handler` - the high-level API used by the CLI.

System Role
-----------
The only module that knows about concrete adapters; the application layer sees
ports only.
"""

from __future__ import annotations

from pathlib import Path
from typing import Final

from .adapters.bootstrap.default import CallbackBootstrapper
from .adapters.events.default import EventDispatcher
from .adapters.file_loaders.structured import loader_for
from .adapters.runtime.default import RuntimeOptions, default_env_prefix, options_from_env
from .adapters.storage.default import JSONFileStore, MemoryStore
from .application.catalog import ConnectionCatalog
from .application.handler import ConnectionsHandler
from .application.ports import Bootstrapper, EventNotifier, KeyValueStore, RuntimeOptionSource
from .application.resolver import ConnectionResolver
from .domain.configuration import StaticConfiguration
from .domain.errors import ConnectionsError, InvalidFormat
from .observability import bind_trace_id, log_debug, log_info

DEFAULT_CONFIG_NAME: Final[str] = "deploy.toml"
DEFAULT_STORAGE_NAME: Final[str] = ".deploy-connections.json"
ENV_PREFIX: Final[str] = default_env_prefix("deploy-connections")


class ConfigurationLoadError(ConnectionsError):
    """Raised when the configuration file is unreadable or malformed.

    Wraps :class:`InvalidFormat` with the offending path so callers can catch
    :class:`ConnectionsError` for every library failure.
    """


def load_configuration(path: str | Path) -> StaticConfiguration:
    """Parse the configuration file at *path*.

    Raises
    ------
    NotFound
        When *path* does not exist.
    ConfigurationLoadError
        When the file cannot be parsed or has the wrong shape.
    """

    try:
        configuration = StaticConfiguration.from_mapping(loader_for(path).load(str(path)))
    except InvalidFormat as exc:
        log_debug("configuration_error", path=str(path), error=str(exc))
        raise ConfigurationLoadError(f"Failed to load configuration {path}: {exc}") from exc
    log_info(
        "configuration_loaded",
        path=str(path),
        connections=list(configuration.connections),
        default=list(configuration.default_connections),
    )
    return configuration


def build_handler(
    configuration: StaticConfiguration,
    *,
    store: KeyValueStore | None = None,
    options: RuntimeOptionSource | None = None,
    notifier: EventNotifier | None = None,
    bootstrapper: Bootstrapper | None = None,
    home: str | Path | None = None,
) -> ConnectionsHandler:
    """Wire a :class:`ConnectionsHandler` around *configuration*.

    Missing collaborators default to an in-memory store, an
    :class:`EventDispatcher`, and a hook-less :class:`CallbackBootstrapper`.

    Examples
    --------
    >>> config = StaticConfiguration.from_mapping({"connections": {"production": {"host": "a.com"}}})
    >>> handler = build_handler(config)
    >>> handler.get_current_connection().credentials.host
    'a.com'
    """

    catalog = ConnectionCatalog(configuration, store if store is not None else MemoryStore())
    resolver = ConnectionResolver(catalog, options, home=home)
    return ConnectionsHandler(
        catalog,
        resolver,
        notifier=notifier if notifier is not None else EventDispatcher(),
        bootstrapper=bootstrapper if bootstrapper is not None else CallbackBootstrapper(),
    )


def open_handler(
    config_path: str | Path = DEFAULT_CONFIG_NAME,
    *,
    storage_path: str | Path | None = None,
    options: dict[str, object] | None = None,
    environ: dict[str, str] | None = None,
    notifier: EventNotifier | None = None,
    bootstrapper: Bootstrapper | None = None,
    trace_id: str | None = None,
) -> ConnectionsHandler:
    """Load configuration from disk and return a handler for one invocation.

    Parameters
    ----------
    config_path:
        Configuration file (TOML, JSON, or YAML).
    storage_path:
        JSON local override store; defaults to :data:`DEFAULT_STORAGE_NAME`
        next to the configuration file.
    options:
        Runtime overrides keyed by field name (command-line flags). They win
        over ``DEPLOY_CONNECTIONS_<FIELD>`` environment variables.
    environ:
        Environment mapping used for those variables; defaults to
        :data:`os.environ`.
    trace_id:
        Correlation id bound for every log event of this invocation.
    """

    bind_trace_id(trace_id)
    config_file = Path(config_path)
    configuration = load_configuration(config_file)
    store = JSONFileStore(storage_path if storage_path is not None else config_file.parent / DEFAULT_STORAGE_NAME)
    runtime = RuntimeOptions.layered(options_from_env(ENV_PREFIX, environ), options)
    return build_handler(
        configuration,
        store=store,
        options=runtime,
        notifier=notifier,
        bootstrapper=bootstrapper,
    )


__all__ = [
    "ConfigurationLoadError",
    "DEFAULT_CONFIG_NAME",
    "DEFAULT_STORAGE_NAME",
    "ENV_PREFIX",
    "build_handler",
    "load_configuration",
    "open_handler",
]
