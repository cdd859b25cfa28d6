"""Domain-level certificate value objects.

Purpose
-------
Anchor the immutable value objects that flow through certificate resolution:
the ordered certificate table, the tagged configuration source, the options
record, and the diagnostic skip records. This module contains no I/O.

Contents
--------
* :class:`CertificateEntry` – a ``cert``/``key`` path pair.
* :class:`CertificateTable` – insertion-ordered read-only mapping of
  environment keys to entries.
* :class:`ConfigPath` / :class:`ConfigRecord` – explicit configuration source
  variants (``ConfigSource``).
* :class:`SkipRecord` – why a candidate was rejected.
* :class:`TlsCredentials` – certificate and key contents read from disk.
* :class:`PortDecision` / :class:`Resolution` – results of the pure algorithm.
* :class:`ResolutionOptions` – caller supplied knobs.

System Role
-----------
Adapters build :class:`CertificateTable` instances from structured documents;
:mod:`lib_cert_resolver.application.resolve` consumes them and emits
:class:`Resolution` values for the composition root.
"""

from __future__ import annotations

import re
from collections.abc import Mapping as MappingABC
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Final, Iterator, Mapping, Union

from .errors import InvalidFormat

if TYPE_CHECKING:  # pragma: no cover - typing only
    from ..application.ports import ListenerFactory, SettingsProvider

DEFAULT_ENVIRONMENT: Final[str] = "development"
DEFAULT_PORT: Final[int] = 3443
ELEVATED_PORT: Final[int] = 443
DEFAULT_CONFIG_PATH: Final[str] = "pyproject.toml"
DEFAULT_HOSTNAME_TIMEOUT: Final[float] = 5.0

ENVIRONMENT_VARIABLE: Final[str] = "APP_ENV"
PORT_VARIABLES: Final[tuple[str, ...]] = ("SSL_PORT", "SSLPORT", "SECURE_PORT")
"""Port override settings in priority order; the first one present wins."""

SKIP_NO_MATCH: Final[str] = "environment key does not match"
SKIP_BAD_PATTERN: Final[str] = "environment key is not a valid pattern"
SKIP_CERT_MISSING: Final[str] = "cert file missing"
SKIP_KEY_MISSING: Final[str] = "key file missing"

PRODUCTION_PATTERN: Final[re.Pattern[str]] = re.compile(r"prod(uction)?", re.IGNORECASE)


def is_production(environment: str) -> bool:
    """Return ``True`` when *environment* looks like a production name.

    Examples
    --------
    >>> is_production("Production"), is_production("eu-prod-2"), is_production("staging")
    (True, True, False)
    """

    return PRODUCTION_PATTERN.search(environment) is not None


@dataclass(frozen=True, slots=True)
class CertificateEntry:
    """Filesystem locations of a certificate and its private key.

    Only existence of the files is ever checked; contents are passed through
    to the TLS layer untouched.
    """

    cert: str
    key: str

    def cert_path(self) -> Path:
        """Return the certificate path resolved against the working directory."""

        return Path(self.cert).resolve()

    def key_path(self) -> Path:
        """Return the key path resolved against the working directory."""

        return Path(self.key).resolve()


@dataclass(frozen=True, slots=True)
class CertificateTable(MappingABC[str, CertificateEntry]):
    """Insertion-ordered, read-only mapping of environment keys to entries.

    Why
    ----
    Iteration order decides which of several matching entries wins, so the
    table must preserve the order of the source document.

    Examples
    --------
    >>> table = CertificateTable.from_mapping({
    ...     "dev": {"cert": "dev.pem", "key": "dev.key"},
    ...     "prod": {"cert": "prod.pem", "key": "prod.key"},
    ... })
    >>> list(table)
    ['dev', 'prod']
    >>> table["prod"].cert
    'prod.pem'
    """

    _entries: Mapping[str, CertificateEntry]

    def __post_init__(self) -> None:
        object.__setattr__(self, "_entries", MappingProxyType(dict(self._entries)))

    @classmethod
    def from_mapping(cls, certs: object) -> CertificateTable:
        """Validate a raw ``certs`` mapping and wrap it in a table.

        Raises
        ------
        InvalidFormat
            When ``certs`` is not a mapping or an entry lacks string ``cert``
            and ``key`` fields.
        """

        if not isinstance(certs, MappingABC):
            raise InvalidFormat(f"'certs' must be a table, got {type(certs).__name__}")
        entries: dict[str, CertificateEntry] = {}
        for name, raw in certs.items():
            if not isinstance(raw, MappingABC):
                raise InvalidFormat(f"Entry {name!r} in 'certs' must be a table with 'cert' and 'key'")
            cert, key = raw.get("cert"), raw.get("key")
            if not isinstance(cert, str) or not isinstance(key, str):
                raise InvalidFormat(f"Entry {name!r} in 'certs' needs string 'cert' and 'key' paths")
            entries[str(name)] = CertificateEntry(cert=cert, key=key)
        return cls(entries)

    def __getitem__(self, key: str) -> CertificateEntry:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def as_dict(self) -> dict[str, dict[str, str]]:
        """Return a plain, JSON-friendly copy of the table."""

        return {name: {"cert": entry.cert, "key": entry.key} for name, entry in self._entries.items()}


@dataclass(frozen=True, slots=True)
class ConfigPath:
    """Configuration source read from a structured document on disk."""

    path: str

    def describe(self) -> str:
        return f"'{self.path}'"


@dataclass(frozen=True, slots=True)
class ConfigRecord:
    """Configuration source that has already been parsed into a mapping."""

    data: Mapping[str, Any]

    def describe(self) -> str:
        return "the supplied configuration record"


ConfigSource = Union[ConfigPath, ConfigRecord]


@dataclass(frozen=True, slots=True)
class SkipRecord:
    """Diagnostic record for a candidate rejected during resolution."""

    environment: str
    reason: str
    cert: str
    key: str

    def describe(self) -> str:
        """Render the record the way diagnostic output lists it.

        Examples
        --------
        >>> SkipRecord("dev", "cert file missing", "a.pem", "a.key").describe()
        "Reason: cert file missing ('dev')  Cert: a.pem  Key: a.key"
        """

        return f"Reason: {self.reason} ({self.environment!r})  Cert: {self.cert}  Key: {self.key}"

    def as_dict(self) -> dict[str, str]:
        return {"environment": self.environment, "reason": self.reason, "cert": self.cert, "key": self.key}


@dataclass(frozen=True, slots=True)
class TlsCredentials:
    """Certificate and private key material for the selected entry."""

    environment: str
    cert_path: Path
    key_path: Path
    cert: bytes = field(repr=False)
    key: bytes = field(repr=False)


@dataclass(frozen=True, slots=True)
class PortDecision:
    """Resolved listening port and where it came from.

    ``source`` is ``"option"``, the name of the port override setting, or
    ``"default"``. ``elevated`` is true when the production rule raised the
    default port to :data:`ELEVATED_PORT`.
    """

    port: int
    source: str
    elevated: bool = False


@dataclass(frozen=True, slots=True)
class Resolution:
    """Outcome of the pure resolution algorithm (no files read, nothing bound)."""

    environment: str
    port: PortDecision
    selected: tuple[str, CertificateEntry] | None
    skipped: tuple[SkipRecord, ...]

    @property
    def production(self) -> bool:
        return is_production(self.environment)

    def as_dict(self) -> dict[str, Any]:
        selected = None
        if self.selected is not None:
            name, entry = self.selected
            selected = {"environment": name, "cert": entry.cert, "key": entry.key}
        return {
            "environment": self.environment,
            "production": self.production,
            "port": self.port.port,
            "port_source": self.port.source,
            "elevated": self.port.elevated,
            "selected": selected,
            "skipped": [record.as_dict() for record in self.skipped],
        }


@dataclass(frozen=True, slots=True)
class ResolutionOptions:
    """Caller supplied options for :func:`lib_cert_resolver.core.serve_secure`.

    Attributes
    ----------
    debug:
        Emit human-readable diagnostic lines through ``sink``.
    port:
        Explicit port; wins over process settings and is never elevated.
    environment:
        Explicit environment name; wins over ``APP_ENV``.
    certificate_config:
        Where the ``certs`` table comes from; defaults to
        ``ConfigPath("pyproject.toml")``.
    host:
        Bind address; ``None`` listens on all interfaces.
    sink:
        Receives diagnostic lines when ``debug`` is set; defaults to the
        package logger.
    on_settle:
        Called once with ``(log, result)`` as soon as the outcome settles.
    hostname_timeout:
        Seconds to wait for the informational FQDN lookup.
    settings / listener_factory / hostname_lookup:
        Adapter overrides, mainly for tests.
    """

    debug: bool = False
    port: int | None = None
    environment: str | None = None
    certificate_config: ConfigSource | None = None
    host: str | None = None
    sink: Callable[[str], None] | None = None
    on_settle: Callable[[Callable[[str], None], Any], None] | None = None
    hostname_timeout: float = DEFAULT_HOSTNAME_TIMEOUT
    settings: SettingsProvider | None = None
    listener_factory: ListenerFactory | None = None
    hostname_lookup: Callable[[], Awaitable[Any]] | None = None

    def config_source(self) -> ConfigSource:
        return self.certificate_config or ConfigPath(DEFAULT_CONFIG_PATH)
