"""Shared helpers for the test-suite: throwaway certificates and fake adapters."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from lib_cert_resolver.adapters.env.default import DefaultSettingsProvider
from lib_cert_resolver.adapters.hostname.default import HostIdentity
from lib_cert_resolver.domain.certs import TlsCredentials


def write_self_signed(directory: Path, stem: str = "server") -> tuple[Path, Path]:
    """Write a self-signed ``localhost`` certificate and key into *directory*."""

    directory.mkdir(parents=True, exist_ok=True)
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "localhost")])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=1))
        .add_extension(x509.SubjectAlternativeName([x509.DNSName("localhost")]), critical=False)
        .sign(key, hashes.SHA256())
    )
    cert_path = directory / f"{stem}.pem"
    key_path = directory / f"{stem}.key"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return cert_path, key_path


def touch_pair(directory: Path, stem: str) -> tuple[str, str]:
    """Create empty cert/key placeholders; resolution only checks existence."""

    directory.mkdir(parents=True, exist_ok=True)
    cert, key = directory / f"{stem}.pem", directory / f"{stem}.key"
    cert.write_text("cert", encoding="utf-8")
    key.write_text("key", encoding="utf-8")
    return str(cert), str(key)


def settings(**values: str) -> DefaultSettingsProvider:
    """Settings provider backed by exactly *values* (no process environment)."""

    return DefaultSettingsProvider(environ=dict(values))


async def fixed_identity() -> HostIdentity:
    return HostIdentity(hostname="test.example", service="0", fqdn="test.example", uqdn="test")


async def failing_identity() -> HostIdentity:
    raise OSError("resolver unavailable")


@dataclass
class FakeListener:
    port: int
    host: str | None = None
    closed: bool = False

    @property
    def url(self) -> str:
        return f"https://{self.host or 'localhost'}:{self.port}"

    async def close(self) -> None:
        self.closed = True


@dataclass
class FakeListenerFactory:
    """Records bind attempts instead of opening sockets."""

    error: BaseException | None = None
    calls: list[dict[str, Any]] = field(default_factory=list)

    async def start(
        self,
        app: Any,
        credentials: TlsCredentials,
        *,
        port: int,
        host: str | None = None,
    ) -> FakeListener:
        self.calls.append({"app": app, "credentials": credentials, "port": port, "host": host})
        if self.error is not None:
            raise self.error
        return FakeListener(port=port, host=host)
