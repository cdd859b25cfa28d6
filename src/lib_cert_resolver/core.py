"""Composition root for ``lib_cert_resolver``.

Purpose
-------
Provide the entry points that orchestrate configuration loading, the
certificate resolution policy, credential reading, and the TLS bind, while
emitting structured observability signals.

Contents
--------
* :func:`load_certificate_table` – turn a configuration source into a table.
* :func:`resolve_certificate` – dry run: pick an entry and a port, bind nothing.
* :func:`read_credentials` – read the selected certificate and key.
* :func:`serve_secure` – full bootstrap returning a one-shot future.

System Role
-----------
This module connects adapters (settings, structured files, aiohttp listener,
hostname lookup) with the pure policy in
:mod:`lib_cert_resolver.application.resolve`. It is the canonical place for
adjusting how failures are reported to callers.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .adapters.env.default import DefaultSettingsProvider
from .adapters.file_loaders.structured import extract_certs, loader_for
from .adapters.hostname.default import HostIdentity, fallback_identity, lookup_fqdn
from .adapters.listener.aiohttp_site import AiohttpListenerFactory
from .application.ports import ListenerFactory, SecureListener, SettingsProvider
from .application.resolve import effective_environment, resolve
from .deferred import Deferred
from .domain.certs import (
    CertificateEntry,
    CertificateTable,
    ConfigPath,
    ConfigRecord,
    ConfigSource,
    PortDecision,
    Resolution,
    ResolutionOptions,
    SkipRecord,
    TlsCredentials,
    is_production,
)
from .domain.errors import BindError, CertResolverError, ConfigMissing, FileAccessError, InvalidFormat, NotFound
from .observability import Sink, log_debug, log_error, log_info, make_diagnostic, make_event

_BACKGROUND: set[asyncio.Task[Any]] = set()
"""Strong references to fire-and-forget tasks until they finish."""


def load_certificate_table(source: ConfigSource) -> CertificateTable:
    """Return the ``certs`` table described by *source*.

    Why
    ----
    Callers may keep the table in ``pyproject.toml``, a dedicated JSON/YAML
    file, or hand over a mapping they already parsed; all three must produce
    the same ordered table.

    Raises
    ------
    NotFound
        When a :class:`ConfigPath` does not exist.
    InvalidFormat
        When the document cannot be parsed, has no ``certs`` table, or an entry
        is malformed.

    Examples
    --------
    >>> table = load_certificate_table(ConfigRecord({"certs": {"dev": {"cert": "a", "key": "b"}}}))
    >>> list(table)
    ['dev']
    """

    if isinstance(source, ConfigRecord):
        if not isinstance(source.data, Mapping):
            raise InvalidFormat(f"Configuration record must be a mapping, got {type(source.data).__name__}")
        document = source.data
        path = None
    else:
        path = str(Path(source.path).resolve())
        document = loader_for(source.path).load(path)
    table = CertificateTable.from_mapping(extract_certs(document))
    log_debug("certificate_table_loaded", **make_event("certs", path, {"entries": len(table)}))
    return table


def resolve_certificate(
    options: ResolutionOptions | None = None,
    *,
    settings: SettingsProvider | None = None,
) -> Resolution:
    """Choose the environment, port, and certificate entry without binding.

    Raises
    ------
    ConfigMissing
        When no usable ``certs`` table can be obtained.
    InvalidFormat
        When a port override setting is not an integer.

    Examples
    --------
    >>> opts = ResolutionOptions(
    ...     environment="staging",
    ...     certificate_config=ConfigRecord({"certs": {"production": {"cert": "a.pem", "key": "a.key"}}}),
    ...     settings=DefaultSettingsProvider(environ={}),
    ... )
    >>> result = resolve_certificate(opts)
    >>> result.selected is None, result.port.port
    (True, 3443)
    """

    opts = options or ResolutionOptions()
    provider = settings or opts.settings or DefaultSettingsProvider()
    source = opts.config_source()
    try:
        table = load_certificate_table(source)
    except (InvalidFormat, NotFound) as exc:
        log_error("certificate_table_missing", layer="certs", path=_source_path(source), error=str(exc))
        raise ConfigMissing(source.describe(), detail=str(exc)) from exc

    resolution = resolve(table, provider, environment=opts.environment, port=opts.port)
    for record in resolution.skipped:
        log_debug("candidate_skipped", layer="certs", path=record.cert, environment=record.environment, reason=record.reason)
    if resolution.selected is not None:
        name, entry = resolution.selected
        log_info("certificate_selected", layer="certs", path=entry.cert, environment=name, port=resolution.port.port)
    return resolution


def read_credentials(name: str, entry: CertificateEntry) -> TlsCredentials:
    """Read the certificate and key of the selected entry.

    Raises
    ------
    FileAccessError
        When either file vanished or is unreadable after the existence check.
    """

    cert_path, key_path = entry.cert_path(), entry.key_path()
    try:
        cert = cert_path.read_bytes()
        key = key_path.read_bytes()
    except OSError as exc:
        raise FileAccessError(f"Cannot read certificate files for {name!r}: {exc}") from exc
    return TlsCredentials(environment=name, cert_path=cert_path, key_path=key_path, cert=cert, key=key)


def serve_secure(app: Any, options: ResolutionOptions | None = None) -> asyncio.Future[SecureListener | None]:
    """Resolve a certificate for the current environment and serve *app* over TLS.

    Why
    ----
    Applications want one call at startup that picks the right certificate
    for ``development``/``staging``/``production`` and listens on the
    conventional port.

    What
    ----
    Runs the resolution synchronously, then binds in a background task. The
    returned future settles exactly once with the running listener, ``None``
    when no certificate matched, or a :class:`CertResolverError`. A hostname
    lookup runs alongside purely to print the listening URL; it never affects
    the outcome.

    Parameters
    ----------
    app:
        An ``aiohttp.web.Application`` or a request handler coroutine (for the
        default listener factory).
    options:
        See :class:`ResolutionOptions`.

    Side Effects
    ------------
    Must be called from a running event loop. Reads certificate files, binds
    one port, and writes diagnostic lines when ``options.debug`` is set.
    """

    opts = options or ResolutionOptions()
    loop = asyncio.get_running_loop()
    log = make_diagnostic(opts.debug, opts.sink)
    outcome: Deferred[SecureListener | None] = Deferred(loop)
    lookup = opts.hostname_lookup or lookup_fqdn
    identity = Deferred.wrap(lookup(), timeout=opts.hostname_timeout)
    if opts.on_settle is not None:
        callback = opts.on_settle
        outcome.future.add_done_callback(lambda future: callback(log, _settled_value(future)))

    settings = opts.settings or DefaultSettingsProvider()
    environment = effective_environment(opts.environment, settings)
    port: PortDecision | None = None
    try:
        resolution = resolve_certificate(opts, settings=settings)
    except CertResolverError as exc:
        outcome.reject(exc)
    else:
        port = resolution.port
        if resolution.selected is None:
            _report_skipped(log, resolution.skipped)
            log_info("certificate_unmatched", layer="certs", path=None, environment=environment, skipped=len(resolution.skipped))
            outcome.resolve(None)
        else:
            try:
                credentials = read_credentials(*resolution.selected)
            except FileAccessError as exc:
                log_error("certificate_unreadable", layer="certs", path=resolution.selected[1].cert, error=str(exc))
                outcome.reject(exc)
            else:
                factory = opts.listener_factory or AiohttpListenerFactory()
                _spawn(loop, _bind(factory, app, credentials, resolution.port.port, opts.host, outcome, log), "bind")

    log("")
    log(f"[Environment ] {environment}")
    log(f"[Production  ] {is_production(environment)}")
    _spawn(loop, _announce(outcome.future, identity.future, port, log), "announce")
    return outcome.future


async def _bind(
    factory: ListenerFactory,
    app: Any,
    credentials: TlsCredentials,
    port: int,
    host: str | None,
    outcome: Deferred[SecureListener | None],
    log: Sink,
) -> None:
    """Start the listener and settle *outcome* with the handle or a :class:`BindError`."""

    try:
        listener = await factory.start(app, credentials, port=port, host=host)
    except asyncio.CancelledError:
        outcome.reject(BindError(f"Binding port {port} was cancelled", port=port))
        raise
    except Exception as exc:  # noqa: BLE001 - every bind failure becomes the outcome
        log("The secure server failed to start")
        log(str(exc))
        log_error("listener_failed", layer="listener", path=str(credentials.cert_path), port=port, error=str(exc))
        error = BindError(f"Cannot listen on port {port} with certificate {credentials.cert_path}: {exc}", port=port)
        error.__cause__ = exc
        outcome.reject(error)
        return
    log_info("listener_bound", layer="listener", path=str(credentials.cert_path), port=listener.port)
    if not outcome.resolve(listener):
        await listener.close()


async def _announce(
    outcome: asyncio.Future[SecureListener | None],
    identity: asyncio.Future[HostIdentity],
    port: PortDecision | None,
    log: Sink,
) -> None:
    """Print the final disposition once both the outcome and hostname lookup settle."""

    await asyncio.wait([outcome, identity])
    host = _identity_or_fallback(identity)
    if outcome.cancelled():
        log("[HTTPS       ] cancelled")
        return
    error = outcome.exception()
    if error is not None:
        log("[HTTPS       ] error occurred")
        log(f"[Error       ] {error}")
        return
    listener = outcome.result()
    if listener is None:
        shown = port.port if port is not None else "unresolved"
        log(f"[HTTPS       ] disabled (port {shown})")
        return
    log(f"[HTTPS Port  ] https://{host.fqdn}:{listener.port}")


def _report_skipped(log: Sink, skipped: tuple[SkipRecord, ...]) -> None:
    log("Tried the following and skipped them")
    for record in skipped:
        log(f"  Reason: {record.reason} ({record.environment!r})")
        log(f"  Cert  : {record.cert}")
        log(f"  Key   : {record.key}")


def _identity_or_fallback(identity: asyncio.Future[HostIdentity]) -> HostIdentity:
    if identity.cancelled() or identity.exception() is not None:
        return fallback_identity()
    return identity.result()


def _settled_value(future: asyncio.Future[Any]) -> Any:
    if future.cancelled():
        return asyncio.CancelledError()
    return future.exception() or future.result()


def _source_path(source: ConfigSource) -> str | None:
    return source.path if isinstance(source, ConfigPath) else None


def _spawn(loop: asyncio.AbstractEventLoop, coro: Any, label: str) -> None:
    task = loop.create_task(coro, name=f"lib_cert_resolver-{label}")
    _BACKGROUND.add(task)
    task.add_done_callback(_BACKGROUND.discard)


__all__ = [
    "ConfigMissing",
    "load_certificate_table",
    "read_credentials",
    "resolve_certificate",
    "serve_secure",
]
