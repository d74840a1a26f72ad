"""Runtime option adapters.

Purpose
-------
Implement the :class:`deploy_connections.application.ports.RuntimeOptionSource`
protocol for per-invocation overrides. Command-line flags and prefixed
environment variables both end up in one :class:`RuntimeOptions` mapping that
the resolver consults first.

Key behaviours
--------------
* Only credential fields (``host``, ``username``, ``password``, ``key``,
  ``keyphrase``, ``agent``) are exposed; anything else is ignored.
* Blank values count as "not supplied" so they never mask lower layers; an
  explicit boolean ``agent`` (``--no-agent``) is supplied even when ``False``.
* Environment variables use a configurable prefix (``default_env_prefix``),
  e.g. ``DEPLOY_CONNECTIONS_KEY``.
"""

from __future__ import annotations

import os
from typing import Mapping

from ...domain.connection import CREDENTIAL_FIELDS, is_blank
from ...observability import log_debug


def default_env_prefix(slug: str) -> str:
    """Return the canonical environment prefix for *slug*.

    Examples
    --------
    >>> default_env_prefix('deploy-connections')
    'DEPLOY_CONNECTIONS'
    """

    return slug.replace("-", "_").upper()


class RuntimeOptions:
    """Read-only lookup of runtime overrides by configuration field name.

    An explicit boolean ``agent`` is always kept, so ``False`` forces agent use
    off instead of deferring to lower layers.

    Examples
    --------
    >>> options = RuntimeOptions({"key": "foobar", "host": "", "verbose": "1", "agent": False})
    >>> options.get("key"), options.get("host"), options.get("verbose"), options.get("agent")
    ('foobar', None, None, 'false')
    """

    def __init__(self, values: Mapping[str, object] | None = None) -> None:
        self._values: dict[str, str] = {}
        for name, value in (values or {}).items():
            if name in CREDENTIAL_FIELDS and _is_supplied(name, value):
                self._values[name] = _as_text(value)

    def get(self, field: str) -> str | None:
        return self._values.get(field)

    def as_dict(self) -> dict[str, str]:
        return dict(self._values)

    def __bool__(self) -> bool:
        return bool(self._values)

    @classmethod
    def layered(cls, *sources: Mapping[str, object] | None) -> RuntimeOptions:
        """Combine *sources* ordered lowest to highest precedence.

        Blank values in a later source never erase an earlier value.
        """

        merged: dict[str, object] = {}
        for source in sources:
            for name, value in (source or {}).items():
                if _is_supplied(name, value):
                    merged[name] = value
        return cls(merged)


def options_from_env(prefix: str, environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return credential overrides found in *environ* under *prefix*.

    Examples
    --------
    >>> options_from_env("DEMO", {"DEMO_KEY": "~/.ssh/deploy", "DEMO_OTHER": "x", "HOME": "/root"})
    {'key': '~/.ssh/deploy'}
    """

    source = os.environ if environ is None else environ
    prefix = f"{prefix}_" if prefix and not prefix.endswith("_") else prefix
    collected: dict[str, str] = {}
    for name in CREDENTIAL_FIELDS:
        value = source.get(prefix + name.upper())
        if value is not None and value.strip():
            collected[name] = value
    log_debug("runtime_env_loaded", layer="env", prefix=prefix, keys=sorted(collected))
    return collected


def _as_text(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _is_supplied(name: str, value: object) -> bool:
    if name == "agent" and isinstance(value, bool):
        return True
    return not is_blank(value)
