"""Per-field credential resolution and home-directory expansion."""

from __future__ import annotations

from pathlib import Path

import pytest

from deploy_connections.adapters.runtime.default import RuntimeOptions
from deploy_connections.adapters.storage.default import MemoryStore
from deploy_connections.application.catalog import ConnectionCatalog
from deploy_connections.application.resolver import ConnectionResolver, merge_fields
from deploy_connections.domain.configuration import StaticConfiguration
from deploy_connections.domain.connection import ConnectionKey
from deploy_connections.domain.errors import InvalidCredentialsError, UnknownConnectionError
from tests.support import HOME, TWO_SERVERS


def _resolver(connections, *, defaults=None, options=None, store_data=None, home=HOME) -> ConnectionResolver:
    payload = {"connections": connections, "defaults": defaults or {}}
    catalog = ConnectionCatalog(StaticConfiguration.from_mapping(payload), MemoryStore(store_data))
    return ConnectionResolver(catalog, RuntimeOptions(options), home=home)


def test_priority_runtime_local_server_defaults() -> None:
    resolver = _resolver(
        {"production": {"host": "server.com", "username": "server-user"}},
        defaults={"username": "default-user", "password": "default-pw", "keyphrase": "default-phrase"},
        options={"host": "runtime.com"},
        store_data={"connections": {"production": {"password": "local-pw"}}},
    )

    resolved = resolver.resolve(ConnectionKey("production"))

    assert resolved.host == "runtime.com"
    assert resolved.username == "server-user"
    assert resolved.password == "local-pw"
    assert resolved.keyphrase == "default-phrase"
    assert dict(resolved.origins) == {
        "host": "runtime",
        "username": "server",
        "password": "local",
        "keyphrase": "defaults",
    }


def test_blank_values_fall_through_to_lower_layers() -> None:
    resolver = _resolver(
        {"production": {"host": "a.com", "username": "  ", "agent": False}},
        defaults={"username": "deploy", "agent": True},
    )
    resolved = resolver.resolve(ConnectionKey("production"))
    assert resolved.username == "deploy"
    assert resolved.use_agent is True


def test_selected_server_entry_is_used() -> None:
    resolver = _resolver({"staging": TWO_SERVERS})
    assert resolver.resolve(ConnectionKey("staging", 1)).host == "barbaz.com"
    assert resolver.resolve(ConnectionKey("staging", 0)).host == "foobar.com"


def test_key_path_is_expanded_from_any_layer() -> None:
    resolver = _resolver({"production": {"host": "a.com"}}, defaults={"key": "~/.ssh/id_rsa"})
    resolved = resolver.resolve(ConnectionKey("production"))
    assert resolved.key_path == str(HOME / ".ssh/id_rsa")
    assert resolved.origins["key"] == "defaults"


def test_runtime_key_wins_and_is_kept_verbatim() -> None:
    resolver = _resolver({"production": {"host": "a.com", "key": "~/.ssh/id_rsa"}}, options={"key": "foobar"})
    assert resolver.resolve(ConnectionKey("production")).key_path == "foobar"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("~", str(HOME)),
        ("~/deploy.pem", str(HOME / "deploy.pem")),
        ("/etc/ssh/key", "/etc/ssh/key"),
        ("keys/~/id", "keys/~/id"),
        ("~other/id", "~other/id"),
    ],
)
def test_expand_path_only_touches_leading_tilde(raw: str, expected: str) -> None:
    assert _resolver({"production": {"host": "a.com"}}).expand_path(raw) == expected


def test_expand_path_defaults_to_user_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    resolver = _resolver({"production": {"host": "a.com"}}, home=None)
    assert resolver.expand_path("~/id_rsa") == str(tmp_path / "id_rsa")


def test_expand_path_leaves_other_users_home_alone(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    resolver = _resolver({"production": {"host": "a.com"}}, home=None)
    assert resolver.expand_path("~root/id_rsa") == "~root/id_rsa"
    assert resolver.expand_path("~") == str(tmp_path)


def test_unknown_connection_raises() -> None:
    resolver = _resolver({"production": {"host": "a.com"}})
    with pytest.raises(UnknownConnectionError, match="Unknown connection 'nope'"):
        resolver.resolve(ConnectionKey("nope", 0, "qa"))


def test_server_out_of_range_raises() -> None:
    resolver = _resolver({"staging": TWO_SERVERS})
    with pytest.raises(UnknownConnectionError) as excinfo:
        resolver.resolve(ConnectionKey("staging", 2))
    assert excinfo.value.server == 2
    assert "no server 2 (2 configured)" in str(excinfo.value)


def test_missing_host_raises_invalid_credentials() -> None:
    resolver = _resolver({"production": {"username": "deploy"}})
    with pytest.raises(InvalidCredentialsError) as excinfo:
        resolver.resolve(ConnectionKey("production", 0, "qa"))
    assert excinfo.value.stage == "qa"


def test_custom_connection_resolves_from_store() -> None:
    resolver = _resolver(
        {"production": {"host": "a.com"}},
        store_data={"connections": {"custom": {"host": "custom.com", "username": "foobar"}}},
    )
    resolved = resolver.resolve(ConnectionKey("custom"))
    assert (resolved.host, resolved.username) == ("custom.com", "foobar")
    assert resolved.origins["host"] == "local"


def test_merge_fields_skips_unsupplied_fields() -> None:
    fields, origins = merge_fields([("runtime", {}.get), ("server", {"host": "a.com", "password": ""}.get)])
    assert fields == {"host": "a.com"}
    assert origins == {"host": "server"}
