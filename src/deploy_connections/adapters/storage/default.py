"""Local override store adapters.

Purpose
-------
Implement the :class:`deploy_connections.application.ports.KeyValueStore`
protocol: a nested mapping addressed by dotted keys
(``connections.staging.servers.1.host``). :class:`MemoryStore` keeps data in
process; :class:`JSONFileStore` persists every write to a JSON document.

Contents
--------
* :class:`MemoryStore` - in-memory store, also the base for the file store.
* :class:`JSONFileStore` - JSON-backed store re-read before every lookup.
* :func:`assign_dotted` / :func:`lookup_dotted` - nested access helpers.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from copy import deepcopy
from pathlib import Path
from typing import Any

from ...domain.errors import InvalidFormat
from ...observability import log_debug, log_error


class MemoryStore:
    """Keep local overrides in a nested ``dict``.

    Examples
    --------
    >>> store = MemoryStore()
    >>> store.set("connections.custom.username", "foobar")
    >>> store.get("connections.custom")
    {'username': 'foobar'}
    >>> store.get("connections.missing.host", "fallback")
    'fallback'
    """

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = deepcopy(dict(data or {}))

    def get(self, key: str, default: Any = None) -> Any:
        return deepcopy(lookup_dotted(self._read(), key, default))

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        assign_dotted(data, key, deepcopy(value))
        self._write(data)

    def as_dict(self) -> dict[str, Any]:
        """Return a deep copy of the whole store."""

        return deepcopy(self._read())

    def _read(self) -> dict[str, Any]:
        return self._data

    def _write(self, data: dict[str, Any]) -> None:
        self._data = data


class JSONFileStore(MemoryStore):
    """Persist local overrides to a JSON file.

    The file is read on every access so a read always reflects the latest
    completed write, including writes made by other tools. A missing file is an
    empty store.
    """

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path)

    def _read(self) -> dict[str, Any]:
        if not self.path.is_file():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            log_error("local_store_invalid", path=str(self.path), error=str(exc))
            raise InvalidFormat(f"Invalid JSON in local store {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise InvalidFormat(f"Local store {self.path} did not produce a mapping")
        log_debug("local_store_loaded", path=str(self.path), keys=sorted(data))
        return data

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        log_debug("local_store_saved", path=str(self.path), keys=sorted(data))


def lookup_dotted(source: Mapping[str, Any], key: str, default: Any = None) -> Any:
    """Resolve dotted *key* within *source*, returning *default* when missing.

    List segments are addressed by index (``servers.0``).
    """

    current: Any = source
    for part in key.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return default
    return current


def assign_dotted(target: dict[str, Any], key: str, value: Any) -> None:
    """Assign *value* inside *target* at dotted *key*, creating mappings on the way.

    Scalars sitting on the path are replaced by mappings.

    Examples
    --------
    >>> data: dict[str, Any] = {}
    >>> assign_dotted(data, "connections.staging.servers.1.host", "b.com")
    >>> data
    {'connections': {'staging': {'servers': {'1': {'host': 'b.com'}}}}}
    """

    parts = key.split(".")
    cursor: Any = target
    for part in parts[:-1]:
        child = _child(cursor, part)
        if not isinstance(child, (dict, list)):
            child = {}
            _store(cursor, part, child)
        cursor = child
    _store(cursor, parts[-1], value)


def _child(container: dict[str, Any] | list[Any], part: str) -> Any:
    if isinstance(container, list):
        index = _list_index(part)
        return container[index] if index < len(container) else None
    return container.get(part)


def _store(container: dict[str, Any] | list[Any], part: str, value: Any) -> None:
    if isinstance(container, list):
        index = _list_index(part)
        container.extend({} for _ in range(index + 1 - len(container)))
        container[index] = value
    else:
        container[part] = value


def _list_index(part: str) -> int:
    if not part.isdigit():
        raise ValueError(f"Cannot address list entry with non-numeric key {part!r}")
    return int(part)
