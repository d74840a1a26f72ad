"""Connection identity and credential value objects.

Purpose
-------
Anchor the small set of types that flow through the connection core: the
immutable :class:`ConnectionKey` used for change detection, the resolved
:class:`CredentialRecord`, the :class:`ResolvedConnection` pairing both with
provenance, and the mutable :class:`ConnectionInstance` held by the handler
cursor. The module contains no I/O.

Contents
--------
* :data:`CREDENTIAL_FIELDS` - configuration field names, in display order.
* :data:`PATH_FIELDS` - fields subject to home-directory expansion.
* :class:`ConnectionKey`, :class:`CredentialRecord`,
  :class:`ResolvedConnection`, :class:`ConnectionInstance`.
* :func:`is_blank` - the shared "empty value" rule used by every merge step.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Final, Mapping

CREDENTIAL_FIELDS: Final[tuple[str, ...]] = ("host", "username", "password", "key", "keyphrase", "agent")
"""Field names as they appear in configuration, local storage, and runtime options."""

PATH_FIELDS: Final[frozenset[str]] = frozenset({"key"})

_ATTRIBUTES: Final[Mapping[str, str]] = MappingProxyType(
    {
        "host": "host",
        "username": "username",
        "password": "password",
        "key": "key_path",
        "keyphrase": "keyphrase",
        "agent": "use_agent",
    }
)

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})


def is_blank(value: object) -> bool:
    """Return ``True`` when *value* must not overwrite or satisfy a field.

    Examples
    --------
    >>> [is_blank(v) for v in (None, "", False, "deploy", True)]
    [True, True, True, False, False]
    """

    return value is None or value is False or (isinstance(value, str) and not value.strip())


@dataclass(frozen=True, slots=True)
class ConnectionKey:
    """Immutable identity of the cursor target.

    Two keys are equal when ``name``, ``server``, and ``stage`` all match; the
    handler relies on that value equality for change detection.

    Examples
    --------
    >>> ConnectionKey("staging", 1) == ConnectionKey("staging", 1, None)
    True
    >>> ConnectionKey("staging", 1) == ConnectionKey("staging", 1, "qa")
    False
    """

    name: str
    server: int = 0
    stage: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "server", int(self.server))
        if self.stage == "":
            object.__setattr__(self, "stage", None)

    def __str__(self) -> str:
        suffix = f"/{self.stage}" if self.stage else ""
        return f"{self.name}#{self.server}{suffix}"


@dataclass(frozen=True, slots=True)
class CredentialRecord:
    """Resolved credentials for one server.

    A record is valid only when ``host`` is non-empty; every other field may be
    empty or ``False``.
    """

    host: str = ""
    username: str = ""
    password: str = ""
    key_path: str = ""
    keyphrase: str = ""
    use_agent: bool = False

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any]) -> CredentialRecord:
        """Build a record from configuration field names (``key``, ``agent``, ...).

        Examples
        --------
        >>> CredentialRecord.from_fields({"host": "foo.com", "key": "id_rsa", "agent": "true"})
        CredentialRecord(host='foo.com', username='', password='', key_path='id_rsa', keyphrase='', use_agent=True)
        """

        values: dict[str, Any] = {}
        for name in CREDENTIAL_FIELDS:
            raw = fields.get(name)
            if name == "agent":
                values[_ATTRIBUTES[name]] = _as_bool(raw)
            else:
                values[_ATTRIBUTES[name]] = "" if raw is None else str(raw)
        return cls(**values)

    @property
    def is_valid(self) -> bool:
        return bool(self.host)

    def as_fields(self, *, mask_password: bool = False) -> dict[str, Any]:
        """Return the record keyed by configuration field names."""

        fields = {name: getattr(self, attribute) for name, attribute in _ATTRIBUTES.items()}
        if mask_password and fields["password"]:
            fields["password"] = "********"
        return fields


@dataclass(frozen=True, slots=True)
class ResolvedConnection:
    """A :class:`ConnectionKey` together with its merged credentials.

    ``origins`` maps each configuration field name to the source that supplied
    it (``runtime``, ``local``, ``server``, ``defaults``); fields no source
    supplied are absent.
    """

    key: ConnectionKey
    credentials: CredentialRecord
    origins: Mapping[str, str] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.key.name

    @property
    def server(self) -> int:
        return self.key.server

    @property
    def stage(self) -> str | None:
        return self.key.stage

    @property
    def host(self) -> str:
        return self.credentials.host

    @property
    def username(self) -> str:
        return self.credentials.username

    @property
    def password(self) -> str:
        return self.credentials.password

    @property
    def key_path(self) -> str:
        return self.credentials.key_path

    @property
    def keyphrase(self) -> str:
        return self.credentials.keyphrase

    @property
    def use_agent(self) -> bool:
        return self.credentials.use_agent


@dataclass(slots=True)
class ConnectionInstance:
    """Live handle returned to the task runner while the cursor points at one key.

    ``connected`` is ``False`` right after a cursor change and becomes ``True``
    once bootstrap and the connected event have run.
    """

    resolved: ResolvedConnection
    connected: bool = False

    @property
    def key(self) -> ConnectionKey:
        return self.resolved.key

    @property
    def credentials(self) -> CredentialRecord:
        return self.resolved.credentials

    def get_connection_key(self) -> ResolvedConnection:
        """Return the resolved key (identity plus credentials) of this instance."""

        return self.resolved


def _as_bool(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)
