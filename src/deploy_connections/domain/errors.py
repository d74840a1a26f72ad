"""Domain-level exception hierarchy.

Purpose
-------
Expose the stable error taxonomy shared by the connection core, the adapters,
and the command line. The hierarchy lives in the domain layer so outer layers
may depend on it without the reverse being true.

Contents
--------
* :class:`ConnectionsError` - umbrella base class for every library failure.
* :class:`UnknownConnectionError` - requested connection (or server index) is
  not part of the catalog.
* :class:`InvalidCredentialsError` - the merged credentials carry no host.
* :class:`ConnectionError` - every name passed for an active selection was
  invalid.
* :class:`InvalidFormat` / :class:`NotFound` - configuration artifacts that are
  malformed or missing.

System Role
-----------
Nothing inside the core recovers from these errors; they travel up to the
invocation layer, where the CLI renders them through ``lib_cli_exit_tools``.
"""

from __future__ import annotations

from typing import Iterable


class ConnectionsError(Exception):
    """Base type for all exceptions emitted by ``deploy_connections``.

    Why
    ----
    Provide a single catch-all type for consumers that do not need fine-grained
    handling.
    """


class _TargetError(ConnectionsError):
    """Shared shape for errors that point at one connection/server/stage."""

    def __init__(self, message: str, *, name: str, server: int = 0, stage: str | None = None) -> None:
        self.name = name
        self.server = server
        self.stage = stage
        super().__init__(f"{message} ({_describe(name, server, stage)})")


class UnknownConnectionError(_TargetError):
    """Raised when a connection name or server index is absent from the catalog."""

    def __init__(self, name: str, server: int = 0, stage: str | None = None, *, reason: str | None = None) -> None:
        super().__init__(reason or f"Unknown connection {name!r}", name=name, server=server, stage=stage)


class InvalidCredentialsError(_TargetError):
    """Raised when the merged credential record has no usable host.

    The caller decides whether to prompt for the missing data or abort.
    """

    def __init__(self, name: str, server: int = 0, stage: str | None = None) -> None:
        super().__init__(f"No host configured for connection {name!r}", name=name, server=server, stage=stage)


class ConnectionError(ConnectionsError):  # noqa: A001 - public name of the selection failure
    """Raised when every requested active connection is invalid.

    Examples
    --------
    >>> str(ConnectionError(["foo", "bar"]))
    'Invalid connection(s): foo, bar'
    """

    def __init__(self, invalid: Iterable[str]) -> None:
        self.invalid = tuple(invalid)
        super().__init__("Invalid connection(s): " + ", ".join(self.invalid))


class InvalidFormat(ConnectionsError):
    """Raised when a configuration or storage artifact cannot be parsed.

    Typical Sources
    ---------------
    Structured file loaders (:mod:`tomllib`, :mod:`json`, :mod:`yaml`) and the
    JSON local store.
    """


class NotFound(ConnectionsError):
    """Represents a missing configuration resource (file, optional parser)."""


def _describe(name: str, server: int, stage: str | None) -> str:
    """Return ``connection=..., server=..., stage=...`` for error messages."""

    return f"connection={name}, server={server}, stage={stage or '-'}"
