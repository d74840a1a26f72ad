"""Structured configuration file loaders.

Purpose
-------
Turn the deployment configuration file into a plain mapping for
:meth:`deploy_connections.domain.configuration.StaticConfiguration.from_mapping`.
Each loader wraps ``tomllib``, ``json``, or ``yaml.safe_load`` so error
handling and logging stay identical across formats.

Contents
--------
* :class:`BaseFileLoader` - shared reading and shape validation.
* :class:`TOMLFileLoader`, :class:`JSONFileLoader`, :class:`YAMLFileLoader`.
* :func:`loader_for` - pick a loader from a file suffix.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping

try:  # Python >= 3.11
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for <3.11
    import tomli as tomllib  # type: ignore[no-redef]

import yaml

from ...domain.errors import InvalidFormat, NotFound
from ...observability import log_debug, log_error


class BaseFileLoader:
    """Common utilities shared by the structured file loaders."""

    format = "unknown"

    def _read(self, path: str) -> bytes:
        """Read *path* as bytes, raising :class:`NotFound` when the file is missing."""

        file_path = Path(path)
        if not file_path.is_file():
            raise NotFound(f"Configuration file not found: {path}")
        return file_path.read_bytes()

    def _finish(self, data: object, *, path: str) -> Mapping[str, object]:
        """Validate that *data* is a mapping and log the successful load.

        Examples
        --------
        >>> BaseFileLoader()._finish(42, path="deploy.toml")
        Traceback (most recent call last):
        ...
        deploy_connections.domain.errors.InvalidFormat: File deploy.toml did not produce a mapping
        """

        if not isinstance(data, Mapping):
            raise InvalidFormat(f"File {path} did not produce a mapping")
        log_debug("config_file_loaded", path=path, format=self.format, keys=sorted(data))
        return data

    def _invalid(self, path: str, exc: Exception) -> InvalidFormat:
        log_error("config_file_invalid", path=path, format=self.format, error=str(exc))
        return InvalidFormat(f"Invalid {self.format.upper()} in {path}: {exc}")


class TOMLFileLoader(BaseFileLoader):
    """Load TOML documents, the documented configuration format."""

    format = "toml"

    def load(self, path: str) -> Mapping[str, object]:
        try:
            data = tomllib.loads(self._read(path).decode("utf-8"))
        except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
            raise self._invalid(path, exc) from exc
        return self._finish(data, path=path)


class JSONFileLoader(BaseFileLoader):
    """Load JSON documents."""

    format = "json"

    def load(self, path: str) -> Mapping[str, object]:
        try:
            data = json.loads(self._read(path))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise self._invalid(path, exc) from exc
        return self._finish(data, path=path)


class YAMLFileLoader(BaseFileLoader):
    """Load YAML documents; an empty document is an empty mapping."""

    format = "yaml"

    def load(self, path: str) -> Mapping[str, object]:
        try:
            data = yaml.safe_load(self._read(path))
        except yaml.YAMLError as exc:
            raise self._invalid(path, exc) from exc
        return self._finish({} if data is None else data, path=path)


_LOADERS: dict[str, BaseFileLoader] = {
    ".toml": TOMLFileLoader(),
    ".json": JSONFileLoader(),
    ".yaml": YAMLFileLoader(),
    ".yml": YAMLFileLoader(),
}


def loader_for(path: str | Path) -> BaseFileLoader:
    """Return the loader registered for the suffix of *path*.

    Raises
    ------
    InvalidFormat
        When the suffix is not one of ``.toml``, ``.json``, ``.yaml``, ``.yml``.
    """

    suffix = Path(path).suffix.lower()
    try:
        return _LOADERS[suffix]
    except KeyError as exc:
        raise InvalidFormat(f"Unsupported configuration format {suffix or '(none)'} for {path}") from exc
