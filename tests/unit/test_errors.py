"""Unit tests covering the domain error taxonomy."""

from __future__ import annotations

import builtins

import pytest

from deploy_connections.domain import errors


@pytest.mark.parametrize(
    "subclass",
    [
        errors.UnknownConnectionError,
        errors.InvalidCredentialsError,
        errors.ConnectionError,
        errors.InvalidFormat,
        errors.NotFound,
    ],
)
def test_error_hierarchy(subclass: type[Exception]) -> None:
    """Every public error should inherit from ``ConnectionsError``."""

    assert issubclass(subclass, errors.ConnectionsError)


def test_selection_error_is_not_the_builtin() -> None:
    assert errors.ConnectionError is not builtins.ConnectionError
    assert not issubclass(errors.ConnectionError, OSError)


def test_selection_error_lists_invalid_names_in_order() -> None:
    error = errors.ConnectionError(iter(["foo", "bar"]))
    assert str(error) == "Invalid connection(s): foo, bar"
    assert error.invalid == ("foo", "bar")


def test_unknown_connection_carries_target() -> None:
    error = errors.UnknownConnectionError("nope", 2, "qa")
    assert (error.name, error.server, error.stage) == ("nope", 2, "qa")
    assert str(error) == "Unknown connection 'nope' (connection=nope, server=2, stage=qa)"


def test_unknown_connection_custom_reason() -> None:
    error = errors.UnknownConnectionError("staging", 5, reason="out of range")
    assert str(error) == "out of range (connection=staging, server=5, stage=-)"


def test_invalid_credentials_message() -> None:
    error = errors.InvalidCredentialsError("production")
    assert str(error).startswith("No host configured for connection 'production'")
