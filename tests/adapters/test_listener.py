"""aiohttp listener adapter tests using real sockets on an ephemeral port."""

from __future__ import annotations

import asyncio
import logging
import ssl
from pathlib import Path

import aiohttp
import pytest
from aiohttp import web

from lib_cert_resolver.adapters.listener.aiohttp_site import AiohttpListenerFactory, build_ssl_context
from lib_cert_resolver.core import read_credentials
from lib_cert_resolver.domain.certs import CertificateEntry, TlsCredentials


def _credentials(cert: Path, key: Path) -> TlsCredentials:
    return read_credentials("development", CertificateEntry(cert=str(cert), key=str(key)))


async def _fetch(url: str) -> tuple[int, str]:
    async with aiohttp.ClientSession() as session:
        async with session.get(url, ssl=False) as response:
            return response.status, await response.text()


def test_build_ssl_context_loads_pair(certificate_pair) -> None:
    context = build_ssl_context(_credentials(*certificate_pair))
    assert isinstance(context, ssl.SSLContext)


def test_build_ssl_context_rejects_garbage(tmp_path: Path) -> None:
    cert = tmp_path / "bad.pem"
    key = tmp_path / "bad.key"
    cert.write_text("not a certificate", encoding="utf-8")
    key.write_text("not a key", encoding="utf-8")
    with pytest.raises(ssl.SSLError):
        build_ssl_context(_credentials(cert, key))


def test_serves_application_over_tls(certificate_pair) -> None:
    async def hello(_: web.Request) -> web.Response:
        return web.Response(text="hello")

    app = web.Application()
    app.router.add_route("GET", "/", hello)

    async def scenario() -> tuple[int, str, str]:
        listener = await AiohttpListenerFactory().start(app, _credentials(*certificate_pair), port=0, host="127.0.0.1")
        try:
            status, body = await _fetch(f"https://127.0.0.1:{listener.port}/")
        finally:
            await listener.close()
        return status, body, listener.url

    status, body, url = asyncio.run(scenario())
    assert (status, body) == (200, "hello")
    assert url.startswith("https://127.0.0.1:")


def test_wraps_bare_handler(certificate_pair) -> None:
    async def handler(request: web.Request) -> web.Response:
        return web.Response(text=request.path)

    async def scenario() -> tuple[int, str]:
        listener = await AiohttpListenerFactory().start(handler, _credentials(*certificate_pair), port=0, host="127.0.0.1")
        try:
            return await _fetch(f"https://127.0.0.1:{listener.port}/any/path")
        finally:
            await listener.close()

    assert asyncio.run(scenario()) == (200, "/any/path")


def test_port_in_use_raises_oserror(certificate_pair) -> None:
    credentials = _credentials(*certificate_pair)
    factory = AiohttpListenerFactory()

    async def scenario() -> None:
        first = await factory.start(web.Application(), credentials, port=0, host="127.0.0.1")
        try:
            with pytest.raises(OSError):
                await factory.start(web.Application(), credentials, port=first.port, host="127.0.0.1")
        finally:
            await first.close()

    asyncio.run(scenario())


def test_context_is_built_from_bytes_already_read(tmp_path: Path, certificate_pair) -> None:
    """Only the credential bytes are used; the configured paths are not read again."""

    cert, key = certificate_pair
    credentials = TlsCredentials(
        environment="development",
        cert_path=tmp_path / "removed.pem",
        key_path=tmp_path / "removed.key",
        cert=cert.read_bytes(),
        key=key.read_bytes(),
    )
    assert isinstance(build_ssl_context(credentials), ssl.SSLContext)


def test_context_uses_read_bytes_even_when_files_changed(tmp_path: Path, certificate_pair) -> None:
    cert, key = certificate_pair
    replaced_cert, replaced_key = tmp_path / "cert.pem", tmp_path / "key.pem"
    replaced_cert.write_text("rotated away", encoding="utf-8")
    replaced_key.write_text("rotated away", encoding="utf-8")
    credentials = TlsCredentials(
        environment="development",
        cert_path=replaced_cert,
        key_path=replaced_key,
        cert=cert.read_bytes(),
        key=key.read_bytes(),
    )
    assert isinstance(build_ssl_context(credentials), ssl.SSLContext)


def test_access_log_records_requests_when_enabled(certificate_pair, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="aiohttp.access")

    async def scenario(factory: AiohttpListenerFactory) -> None:
        listener = await factory.start(web.Application(), _credentials(*certificate_pair), port=0, host="127.0.0.1")
        try:
            await _fetch(f"https://127.0.0.1:{listener.port}/missing")
        finally:
            await listener.close()

    asyncio.run(scenario(AiohttpListenerFactory()))
    assert not [record for record in caplog.records if record.name == "aiohttp.access"]

    asyncio.run(scenario(AiohttpListenerFactory(access_log=True)))
    assert [record for record in caplog.records if record.name == "aiohttp.access"]
