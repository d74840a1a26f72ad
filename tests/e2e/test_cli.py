"""End-to-end CLI coverage for the public commands exposed by deploy_connections.

These tests write a real ``deploy.toml`` (plus, where needed, a local override
store) into a temporary directory and drive the commands through Click's test
runner, the same way an operator would from a shell.
"""

from __future__ import annotations

import json
from pathlib import Path

import lib_cli_exit_tools
from click.testing import CliRunner

from deploy_connections import cli
from deploy_connections.domain.errors import ConnectionError

DEPLOY_TOML = """\
default = "production"

[defaults]
username = "deploy"

[connections.production]
host = "prod.example.com"
password = "s3cret"

[[connections.staging.servers]]
host = "foobar.com"

[[connections.staging.servers]]
host = "barbaz.com"
key = "~/.ssh/staging"
"""


def _write_config(tmp_path: Path, body: str = DEPLOY_TOML) -> Path:
    """Write the configuration file the commands read."""

    path = tmp_path / "deploy.toml"
    path.write_text(body, encoding="utf-8")
    return path


def _runner() -> CliRunner:
    """Return a fresh CLI runner so each test starts from a clean state."""

    return CliRunner()


def test_cli_connections_lists_catalog(tmp_path: Path) -> None:
    """`connections` should list static connections with server counts and the active flag."""

    config = _write_config(tmp_path)
    result = _runner().invoke(cli.cli, ["connections", "--config", str(config)])
    assert result.exit_code == 0
    assert json.loads(result.output) == [
        {"name": "production", "servers": 1, "custom": False, "active": True},
        {"name": "staging", "servers": 2, "custom": False, "active": False},
    ]


def test_cli_connections_includes_custom_connection_from_store(tmp_path: Path) -> None:
    """A connection only present in the local store should be listed as custom."""

    config = _write_config(tmp_path)
    (tmp_path / ".deploy-connections.json").write_text(
        json.dumps({"connections": {"custom": {"host": "custom.example.com"}}}), encoding="utf-8"
    )
    result = _runner().invoke(cli.cli, ["connections", "--config", str(config), "--on", "custom"])
    assert result.exit_code == 0
    entries = {entry["name"]: entry for entry in json.loads(result.output)}
    assert entries["custom"] == {"name": "custom", "servers": 1, "custom": True, "active": True}
    assert entries["production"]["active"] is False


def test_cli_resolve_masks_password(tmp_path: Path) -> None:
    """`resolve` should merge defaults into each target and never print the password."""

    config = _write_config(tmp_path)
    result = _runner().invoke(cli.cli, ["resolve", "--config", str(config), "--indent", "2"])
    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload == [
        {
            "connection": "production",
            "server": 0,
            "stage": None,
            "credentials": {
                "host": "prod.example.com",
                "username": "deploy",
                "password": "********",
                "key": "",
                "keyphrase": "",
                "agent": False,
            },
        }
    ]


def test_cli_resolve_with_provenance_and_stage(tmp_path: Path) -> None:
    """`resolve --provenance` should name the layer behind every field."""

    config = _write_config(tmp_path)
    result = _runner().invoke(
        cli.cli,
        ["resolve", "--config", str(config), "-C", "staging", "-S", "qa", "--server", "1", "--provenance"],
    )
    assert result.exit_code == 0
    (entry,) = json.loads(result.output)
    assert (entry["connection"], entry["server"], entry["stage"]) == ("staging", 1, "qa")
    assert entry["credentials"]["host"] == "barbaz.com"
    assert entry["credentials"]["key"].endswith("/.ssh/staging")
    assert not entry["credentials"]["key"].startswith("~")
    assert entry["provenance"] == {"host": "server", "username": "defaults", "key": "server"}


def test_cli_flags_beat_environment(tmp_path: Path) -> None:
    """Credential flags should win over ``DEPLOY_CONNECTIONS_*`` variables, which win over the file."""

    config = _write_config(tmp_path)
    env = {"DEPLOY_CONNECTIONS_HOST": "env.example.com", "DEPLOY_CONNECTIONS_USERNAME": "env-user"}
    result = _runner().invoke(
        cli.cli,
        ["resolve", "--config", str(config), "--host", "flag.example.com", "--agent"],
        env=env,
    )
    assert result.exit_code == 0
    credentials = json.loads(result.output)[0]["credentials"]
    assert credentials["host"] == "flag.example.com"
    assert credentials["username"] == "env-user"
    assert credentials["agent"] is True


def test_cli_no_agent_overrides_configuration(tmp_path: Path) -> None:
    """`--no-agent` should switch agent use off even when the file turns it on."""

    config = _write_config(tmp_path, DEPLOY_TOML.replace('username = "deploy"', 'username = "deploy"\nagent = true'))
    result = _runner().invoke(cli.cli, ["resolve", "--config", str(config), "--no-agent"])
    assert result.exit_code == 0
    credentials = json.loads(result.output)[0]["credentials"]
    assert credentials["agent"] is False


def test_cli_check_connects_every_server(tmp_path: Path) -> None:
    """`check` should connect each active connection and server in order and report timing."""

    config = _write_config(tmp_path)
    result = _runner().invoke(cli.cli, ["check", "--config", str(config), "--on", "staging,production"])
    assert result.exit_code == 0
    lines = result.output.strip().splitlines()
    assert lines[:3] == [
        "connected staging#0 -> foobar.com",
        "connected staging#1 -> barbaz.com",
        "connected production#0 -> prod.example.com",
    ]
    assert lines[3].startswith("Execution time: ")
    assert lines[3].endswith("s")


def test_cli_check_pretend_lists_targets(tmp_path: Path) -> None:
    config = _write_config(tmp_path)
    result = _runner().invoke(cli.cli, ["check", "--config", str(config), "-C", "staging", "--pretend"])
    assert result.exit_code == 0
    assert result.output.splitlines()[:2] == [
        "would connect staging#0 -> foobar.com",
        "would connect staging#1 -> barbaz.com",
    ]


def test_cli_check_parallel(tmp_path: Path) -> None:
    config = _write_config(tmp_path)
    result = _runner().invoke(cli.cli, ["check", "--config", str(config), "-C", "staging", "--parallel"])
    assert result.exit_code == 0
    assert "connected staging#1 -> barbaz.com" in result.output


def test_cli_rejects_unknown_active_connections(tmp_path: Path) -> None:
    """Every invalid name in ``--on`` should surface as a ConnectionError."""

    config = _write_config(tmp_path)
    result = _runner().invoke(cli.cli, ["connections", "--config", str(config), "--on", "foo,bar"])
    assert result.exit_code != 0
    assert isinstance(result.exception, ConnectionError)
    assert str(result.exception) == "Invalid connection(s): foo, bar"


def test_cli_requires_existing_config(tmp_path: Path) -> None:
    result = _runner().invoke(cli.cli, ["connections", "--config", str(tmp_path / "missing.toml")])
    assert result.exit_code == 2


def test_cli_info_handles_missing_metadata(monkeypatch) -> None:
    """`cli info` must degrade gracefully when package metadata is unavailable."""

    def _raise_pkg_not_found(*_args, **_kwargs):
        raise cli.metadata.PackageNotFoundError()

    monkeypatch.setattr(cli.metadata, "metadata", _raise_pkg_not_found)
    result = _runner().invoke(cli.cli, ["info"])
    assert result.exit_code == 0
    assert "metadata unavailable" in result.output


def test_cli_main_restores_traceback_flag(tmp_path: Path) -> None:
    """`cli main` should restore lib_cli_exit_tools tracebacks after execution."""

    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)
    config = _write_config(tmp_path)
    exit_code = cli.main(["--traceback", "connections", "--config", str(config)], restore_traceback=True)
    assert exit_code == 0
    assert getattr(lib_cli_exit_tools.config, "traceback", False) == previous_traceback


def test_cli_main_reports_failures_with_non_zero_exit(tmp_path: Path) -> None:
    config = _write_config(tmp_path)
    exit_code = cli.main(["resolve", "--config", str(config), "-C", "staging", "--server", "7"])
    assert exit_code != 0
