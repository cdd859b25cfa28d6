"""Application-layer certificate resolution policy.

Purpose
-------
Decide which certificate entry a process should use and which port it should
listen on. The module is free of network I/O; the only filesystem access is
the existence check, injected as a callable so alternative composition roots
(and tests) can replace it.

Contents
    - ``effective_environment``: override → ``APP_ENV`` → ``"development"``.
    - ``resolve_port``: option → first present override setting → default,
      followed by the production elevation rule.
    - ``select_certificate``: ordered candidate loop producing skip records.
    - ``resolve``: convenience wrapper combining the three.

System Role
-----------
Called by :mod:`lib_cert_resolver.core`; results are plain
:class:`lib_cert_resolver.domain.certs.Resolution` values.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Callable

from ..domain.certs import (
    DEFAULT_ENVIRONMENT,
    DEFAULT_PORT,
    ELEVATED_PORT,
    ENVIRONMENT_VARIABLE,
    PORT_VARIABLES,
    SKIP_BAD_PATTERN,
    SKIP_CERT_MISSING,
    SKIP_KEY_MISSING,
    SKIP_NO_MATCH,
    CertificateEntry,
    CertificateTable,
    PortDecision,
    Resolution,
    SkipRecord,
    is_production,
)
from ..domain.errors import InvalidFormat
from .ports import SettingsProvider

PathExists = Callable[[Path], bool]


def effective_environment(override: str | None, settings: SettingsProvider) -> str:
    """Return the environment name used for matching.

    Examples
    --------
    >>> class Settings:
    ...     def get(self, name):
    ...         return {"APP_ENV": "staging"}.get(name)
    >>> effective_environment(None, Settings())
    'staging'
    >>> effective_environment("qa", Settings())
    'qa'
    """

    if override:
        return override
    return settings.get(ENVIRONMENT_VARIABLE) or DEFAULT_ENVIRONMENT


def resolve_port(explicit: int | None, settings: SettingsProvider, environment: str) -> PortDecision:
    """Return the listening port for *environment*.

    Why
    ----
    Deployments commonly pin the port through one of several historical
    variable names; production hosts expect the standard HTTPS port.

    What
    ----
    An explicit port wins. Otherwise the first present setting among
    :data:`PORT_VARIABLES` wins. Only when neither applies does the default
    3443 get used, and a production-like environment elevates it to 443.

    Raises
    ------
    InvalidFormat
        When the winning override setting is not an integer.

    Examples
    --------
    >>> class Settings:
    ...     def get(self, name):
    ...         return None
    >>> resolve_port(None, Settings(), "production")
    PortDecision(port=443, source='default', elevated=True)
    >>> resolve_port(None, Settings(), "staging")
    PortDecision(port=3443, source='default', elevated=False)
    >>> resolve_port(8443, Settings(), "production")
    PortDecision(port=8443, source='option', elevated=False)
    """

    if explicit is not None:
        return PortDecision(port=int(explicit), source="option")

    for name in PORT_VARIABLES:
        raw = settings.get(name)
        if raw is None:
            continue
        try:
            return PortDecision(port=int(raw.strip()), source=name)
        except ValueError as exc:
            raise InvalidFormat(f"Setting {name}={raw!r} is not a valid port number") from exc

    if is_production(environment):
        return PortDecision(port=ELEVATED_PORT, source="default", elevated=True)
    return PortDecision(port=DEFAULT_PORT, source="default")


def select_certificate(
    table: CertificateTable,
    environment: str,
    *,
    exists: PathExists | None = None,
) -> tuple[tuple[str, CertificateEntry] | None, tuple[SkipRecord, ...]]:
    """Return the first usable entry for *environment* and every skip recorded.

    Each table key is compiled as a case-insensitive pattern and searched in
    the environment name, so the key ``"prod"`` matches ``"production"`` but the
    key ``"production-east"`` does not match ``"production"``. Entries whose
    files are missing are skipped rather than failing the resolution.

    Examples
    --------
    >>> table = CertificateTable.from_mapping({
    ...     "dev": {"cert": "d.pem", "key": "d.key"},
    ...     "prod": {"cert": "p.pem", "key": "p.key"},
    ... })
    >>> selected, skipped = select_certificate(table, "Production", exists=lambda path: True)
    >>> selected[0], [record.reason for record in skipped]
    ('prod', ['environment key does not match'])
    """

    check = exists or _path_exists
    skipped: list[SkipRecord] = []
    for name, entry in table.items():
        reason = _rejection(name, entry, environment, check)
        if reason is not None:
            skipped.append(SkipRecord(environment=name, reason=reason, cert=entry.cert, key=entry.key))
            continue
        return (name, entry), tuple(skipped)
    return None, tuple(skipped)


def resolve(
    table: CertificateTable,
    settings: SettingsProvider,
    *,
    environment: str | None = None,
    port: int | None = None,
    exists: PathExists | None = None,
) -> Resolution:
    """Run the full decision procedure without reading certificates or binding."""

    name = effective_environment(environment, settings)
    decision = resolve_port(port, settings, name)
    selected, skipped = select_certificate(table, name, exists=exists)
    return Resolution(environment=name, port=decision, selected=selected, skipped=skipped)


def _rejection(name: str, entry: CertificateEntry, environment: str, exists: PathExists) -> str | None:
    """Return the skip reason for a candidate or ``None`` when it is usable."""

    try:
        pattern = re.compile(name, re.IGNORECASE)
    except re.error:
        return SKIP_BAD_PATTERN
    if pattern.search(environment) is None:
        return SKIP_NO_MATCH
    if not exists(entry.cert_path()):
        return SKIP_CERT_MISSING
    if not exists(entry.key_path()):
        return SKIP_KEY_MISSING
    return None


def _path_exists(path: Path) -> bool:
    try:
        return path.exists()
    except OSError:
        return False
