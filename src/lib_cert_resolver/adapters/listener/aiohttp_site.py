"""aiohttp listener adapter.

Purpose
-------
Implement :class:`lib_cert_resolver.application.ports.ListenerFactory` with
``aiohttp``'s runner/site API and an :class:`ssl.SSLContext` built from the
selected credentials.

Contents
--------
* :func:`build_ssl_context` – server-side TLS context for a credential pair.
* :class:`TCPSite` – site that records the port actually bound (port ``0``).
* :class:`AiohttpSecureListener` – handle returned to callers.
* :class:`AiohttpListenerFactory` – the default factory.
"""

from __future__ import annotations

import asyncio
import os
import ssl
import tempfile
from pathlib import Path
from typing import Any, Awaitable, Callable

from aiohttp import web

from ...domain.certs import TlsCredentials
from ...observability import log_debug

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def build_ssl_context(credentials: TlsCredentials) -> ssl.SSLContext:
    """Return a server TLS context loaded from the bytes in *credentials*.

    :meth:`ssl.SSLContext.load_cert_chain` only accepts file names, so the
    material already read by :func:`lib_cert_resolver.core.read_credentials`
    is written to a private temporary directory (mode ``0700``, files
    ``0600``) that is removed once the chain is loaded. The configured paths
    are never read a second time.

    Raises
    ------
    ssl.SSLError
        When the certificate or key cannot be parsed, or they do not match.
    """

    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    with tempfile.TemporaryDirectory(prefix="lib_cert_resolver-") as folder:
        cert_file = _write_private(Path(folder, "cert.pem"), credentials.cert)
        key_file = _write_private(Path(folder, "key.pem"), credentials.key)
        context.load_cert_chain(certfile=str(cert_file), keyfile=str(key_file))
    context.set_alpn_protocols(["http/1.1"])
    return context


def _write_private(path: Path, material: bytes) -> Path:
    descriptor = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(descriptor, "wb") as handle:
        handle.write(material)
    return path


class TCPSite(web.TCPSite):
    async def start(self) -> None:
        await super().start()
        if isinstance(self._server, asyncio.Server) and self._server.sockets:
            self._port = self._server.sockets[0].getsockname()[1]

    @property
    def port(self) -> int:
        return self._port


class AiohttpSecureListener:
    """Running TLS listener backed by an aiohttp runner."""

    def __init__(self, runner: web.AppRunner, site: TCPSite, host: str | None) -> None:
        self._runner = runner
        self._site = site
        self._host = host

    @property
    def port(self) -> int:
        return self._site.port

    @property
    def host(self) -> str | None:
        return self._host

    @property
    def url(self) -> str:
        return f"https://{self._host or 'localhost'}:{self.port}"

    async def close(self) -> None:
        await self._site.stop()
        await self._runner.cleanup()
        log_debug("listener_closed", layer="listener", path=None, port=self.port)

    def __repr__(self) -> str:
        return f"AiohttpSecureListener(url={self.url!r})"


class AiohttpListenerFactory:
    """Bind aiohttp applications behind TLS."""

    def __init__(self, *, access_log: bool = False) -> None:
        self._access_log = access_log

    async def start(
        self,
        app: Any,
        credentials: TlsCredentials,
        *,
        port: int,
        host: str | None = None,
    ) -> AiohttpSecureListener:
        """Serve *app* (an application or a request handler) on *port* over TLS."""

        context = build_ssl_context(credentials)
        runner_kwargs: dict[str, Any] = {} if self._access_log else {"access_log": None}
        runner = web.AppRunner(_as_application(app), **runner_kwargs)
        await runner.setup()
        site = TCPSite(runner, host=host, port=port, ssl_context=context)
        try:
            await site.start()
        except BaseException:
            await runner.cleanup()
            raise
        log_debug("listener_started", layer="listener", path=str(credentials.cert_path), port=site.port)
        return AiohttpSecureListener(runner, site, host)


def _as_application(app: web.Application | Handler) -> web.Application:
    """Wrap a bare request handler in an application that routes everything to it."""

    if isinstance(app, web.Application):
        return app
    if not callable(app):
        raise TypeError(f"Expected an aiohttp Application or request handler, got {type(app).__name__}")
    wrapped = web.Application()
    wrapped.router.add_route("*", "/{tail:.*}", app)
    return wrapped
