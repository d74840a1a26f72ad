"""CLI adapter for ``deploy_connections`` built on ``lib_cli_exit_tools``.

Purpose
-------
Let operators inspect which connections a deployment would target, with which
credentials, and exercise the connect sequence (bootstrap plus ``connected``
event) without writing Python.

Contents
--------
* :data:`CLICK_CONTEXT_SETTINGS` - shared Click settings ensuring ``-h`` works.
* :func:`cli` - root command wiring traceback handling into
  ``lib_cli_exit_tools``.
* :func:`cli_info` - prints distribution metadata.
* :func:`cli_connections` - lists available connections.
* :func:`cli_resolve` - prints resolved credentials per connection/server.
* :func:`cli_check` - connects every target through the task queue.
* :func:`main` - entry point used by ``console_scripts`` registration.

System Role
-----------
Outermost layer: it calls :func:`deploy_connections.core.open_handler` and
never reaches into adapters directly. ``lib_cli_exit_tools`` owns the exit code
strategy so every command fails the same way.
"""

from __future__ import annotations

import json
import sys
import uuid
from functools import wraps
from importlib import metadata
from pathlib import Path
from typing import Any, Callable, Final, Optional, Sequence

import lib_cli_exit_tools
import rich_click as click

from .application.handler import ConnectionsHandler
from .application.queue import TasksQueue
from .core import DEFAULT_CONFIG_NAME, open_handler
from .domain.connection import ConnectionInstance, ConnectionKey
from .timing import time_operation

CLICK_CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
_TRACEBACK_SUMMARY_LIMIT: Final[int] = 500
_TRACEBACK_VERBOSE_LIMIT: Final[int] = 10_000
_DISTRIBUTION: Final[str] = "deploy_connections"


def _resolve_version() -> str:
    """Return the installed package version, ``"0.0.0"`` when not installed."""

    try:
        return metadata.version(_DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return "0.0.0"


@click.group(
    help="Resolve deployment connections and credentials",
    context_settings=CLICK_CONTEXT_SETTINGS,
    invoke_without_command=False,
)
@click.version_option(
    version=_resolve_version(),
    prog_name=_DISTRIBUTION,
    message="deploy_connections version %(version)s",
)
@click.option(
    "--traceback/--no-traceback",
    is_flag=True,
    default=False,
    help="Show full Python traceback on errors",
)
@click.pass_context
def cli(ctx: click.Context, traceback: bool) -> None:
    """Root command configuring traceback handling for all subcommands.

    Side Effects
        Mutates ``lib_cli_exit_tools.config.traceback`` and
        ``lib_cli_exit_tools.config.traceback_force_color``.
    """

    ctx.ensure_object(dict)
    ctx.obj["traceback"] = traceback
    lib_cli_exit_tools.config.traceback = traceback
    lib_cli_exit_tools.config.traceback_force_color = traceback


def connection_options(command: Callable[..., None]) -> Callable[..., None]:
    """Attach the shared target and credential override options to *command*.

    The wrapped command receives a ready :class:`ConnectionsHandler` as its
    ``handler`` keyword argument instead of the raw options.
    """

    @wraps(command)
    def wrapper(
        config: Path,
        storage: Optional[Path],
        on: Optional[str],
        stage: Optional[str],
        host: Optional[str],
        username: Optional[str],
        password: Optional[str],
        key: Optional[str],
        keyphrase: Optional[str],
        agent: Optional[bool],
        **kwargs: Any,
    ) -> None:
        overrides = {
            "host": host,
            "username": username,
            "password": password,
            "key": key,
            "keyphrase": keyphrase,
            "agent": agent,
        }
        handler = open_handler(
            config,
            storage_path=storage,
            options={name: value for name, value in overrides.items() if value is not None},
            trace_id=uuid.uuid4().hex,
        )
        if on:
            handler.set_active_connections(on)
        if stage is not None:
            handler.set_stage(stage)
        command(handler=handler, **kwargs)

    decorators = [
        click.option(
            "--config",
            type=click.Path(path_type=Path, exists=True, file_okay=True, dir_okay=False, readable=True),
            default=DEFAULT_CONFIG_NAME,
            show_default=True,
            help="Deployment configuration file (TOML, JSON, or YAML)",
        ),
        click.option(
            "--storage",
            type=click.Path(path_type=Path, dir_okay=False),
            default=None,
            help="Local override store (JSON); defaults to a file next to the configuration",
        ),
        click.option("--on", "-C", "on", default=None, help="The connection(s) to execute in (comma separated)"),
        click.option("--stage", "-S", default=None, help="The stage to execute in"),
        click.option("--host", default=None, help="Override the host of every target"),
        click.option("--username", default=None, help="Override the SSH username"),
        click.option("--password", default=None, help="Override the SSH password"),
        click.option("--key", default=None, help="Override the SSH key path"),
        click.option("--keyphrase", default=None, help="Override the SSH key passphrase"),
        click.option("--agent/--no-agent", default=None, help="Force SSH agent usage on or off"),
    ]
    for decorator in reversed(decorators):
        wrapper = decorator(wrapper)
    return wrapper


@cli.command("info", context_settings=CLICK_CONTEXT_SETTINGS)
def cli_info() -> None:
    """Print basic distribution metadata so users can confirm installation."""

    try:
        meta = metadata.metadata(_DISTRIBUTION)
    except metadata.PackageNotFoundError:
        click.echo(f"{_DISTRIBUTION} (metadata unavailable)")
        return
    click.echo(f"Info for {meta.get('Name', _DISTRIBUTION)}:")
    click.echo(f"  Version         : {meta.get('Version', _resolve_version())}")
    click.echo(f"  Requires-Python : {meta.get('Requires-Python', '>=3.10')}")
    summary = meta.get("Summary")
    if summary:
        click.echo(f"  Summary         : {summary}")


@cli.command("connections", context_settings=CLICK_CONTEXT_SETTINGS)
@connection_options
@click.option("--indent", type=int, default=None, help="Pretty-print JSON output with the provided indent size")
def cli_connections(handler: ConnectionsHandler, indent: Optional[int]) -> None:
    """List available connections, including custom ones from the local store."""

    active = set(handler.get_active_connections())
    payload = [
        {
            "name": name,
            "servers": len(handler.catalog.servers(name)),
            "custom": handler.catalog.is_custom(name),
            "active": name in active,
        }
        for name in handler.catalog.names()
    ]
    click.echo(json.dumps(payload, indent=indent))


@cli.command("resolve", context_settings=CLICK_CONTEXT_SETTINGS)
@connection_options
@click.option("--server", type=int, default=None, help="Only resolve this server index")
@click.option("--indent", type=int, default=None, help="Pretty-print JSON output with the provided indent size")
@click.option(
    "--provenance/--no-provenance",
    default=False,
    help="Include the source of every credential field",
)
def cli_resolve(handler: ConnectionsHandler, server: Optional[int], indent: Optional[int], provenance: bool) -> None:
    """Print the merged credentials of every active connection as JSON.

    Passwords are masked. ``--provenance`` adds which layer (runtime, local,
    server, defaults) supplied each field.
    """

    stage = handler.current.stage
    payload: list[dict[str, Any]] = []
    for name in handler.get_active_connections():
        indexes = range(len(handler.catalog.servers(name))) if server is None else [server]
        for index in indexes:
            resolved = handler.resolver.resolve(ConnectionKey(name, index, stage))
            entry: dict[str, Any] = {
                "connection": name,
                "server": index,
                "stage": stage,
                "credentials": resolved.credentials.as_fields(mask_password=True),
            }
            if provenance:
                entry["provenance"] = dict(resolved.origins)
            payload.append(entry)
    click.echo(json.dumps(payload, indent=indent))


@cli.command("check", context_settings=CLICK_CONTEXT_SETTINGS)
@connection_options
@click.option("--parallel", "-P", is_flag=True, default=False, help="Connect to targets concurrently")
@click.option(
    "--pretend",
    "-p",
    is_flag=True,
    default=False,
    help="Show which targets would be connected without connecting",
)
def cli_check(handler: ConnectionsHandler, parallel: bool, pretend: bool) -> None:
    """Connect to every active connection and server, then report timing."""

    def connect(instance: ConnectionInstance) -> str:
        return instance.credentials.host

    queue = TasksQueue(handler, parallel=parallel, pretend=pretend)
    results, elapsed = time_operation(lambda: queue.run(connect), label="check")
    verb = "would connect" if pretend else "connected"
    for result in results:
        click.echo(f"{verb} {result.key} -> {result.host}")
    click.echo(f"Execution time: {elapsed}s")


def main(argv: Optional[Sequence[str]] = None, *, restore_traceback: bool = True) -> int:
    """Execute the CLI with shared exit handling and return the exit code."""

    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)
    previous_force_color = getattr(lib_cli_exit_tools.config, "traceback_force_color", False)
    try:
        try:
            return lib_cli_exit_tools.run_cli(
                cli,
                argv=list(argv) if argv is not None else None,
                prog_name=_DISTRIBUTION,
            )
        except BaseException as exc:  # noqa: BLE001 - funnel through shared printers
            lib_cli_exit_tools.print_exception_message(
                trace_back=lib_cli_exit_tools.config.traceback,
                length_limit=(
                    _TRACEBACK_VERBOSE_LIMIT if lib_cli_exit_tools.config.traceback else _TRACEBACK_SUMMARY_LIMIT
                ),
            )
            return lib_cli_exit_tools.get_system_exit_code(exc)
    finally:
        if restore_traceback:
            lib_cli_exit_tools.config.traceback = previous_traceback
            lib_cli_exit_tools.config.traceback_force_color = previous_force_color


if __name__ == "__main__":  # pragma: no cover - exercised via console entry point
    raise SystemExit(main(sys.argv[1:]))
