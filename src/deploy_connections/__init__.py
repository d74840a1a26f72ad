"""Public package surface of ``deploy_connections``.

Re-exports the composition root, the connection state machine, its value
objects, the error taxonomy, and the observability hooks so consumers can write
``from deploy_connections import open_handler, ConnectionKey``.
"""

from __future__ import annotations

from .application.handler import ConnectionsHandler
from .application.queue import TaskResult, TasksQueue
from .core import ConfigurationLoadError, build_handler, load_configuration, open_handler
from .domain.configuration import StaticConfiguration
from .domain.connection import ConnectionInstance, ConnectionKey, CredentialRecord, ResolvedConnection
from .domain.errors import (
    ConnectionError,
    ConnectionsError,
    InvalidCredentialsError,
    InvalidFormat,
    NotFound,
    UnknownConnectionError,
)
from .observability import bind_trace_id, get_logger

__all__ = [
    "ConfigurationLoadError",
    "ConnectionError",
    "ConnectionInstance",
    "ConnectionKey",
    "ConnectionsError",
    "ConnectionsHandler",
    "CredentialRecord",
    "InvalidCredentialsError",
    "InvalidFormat",
    "NotFound",
    "ResolvedConnection",
    "StaticConfiguration",
    "TaskResult",
    "TasksQueue",
    "UnknownConnectionError",
    "bind_trace_id",
    "build_handler",
    "get_logger",
    "load_configuration",
    "open_handler",
]
