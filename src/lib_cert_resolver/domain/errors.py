"""Domain-level exception hierarchy.

Purpose
-------
Expose the stable error taxonomy shared by adapters, the composition root, and
consuming applications. The hierarchy lives in the domain layer so outer layers
may depend on it without creating cycles.

Contents
--------
* :class:`CertResolverError` – umbrella base class for every failure.
* :class:`InvalidFormat` – parsing problems or malformed certificate tables.
* :class:`NotFound` – a configuration document does not exist.
* :class:`ConfigMissing` – no usable ``certs`` table could be obtained.
* :class:`FileAccessError` – a selected certificate could not be read.
* :class:`BindError` – the secure listener failed to bind.

System Role
-----------
Adapters raise :class:`InvalidFormat` and :class:`NotFound`; the composition
root wraps them in :class:`ConfigMissing` before rejecting the deferred result.
A table in which nothing matched is *not* an error and never appears here.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .certs import SkipRecord


class CertResolverError(Exception):
    """Base type for all exceptions emitted by ``lib_cert_resolver``.

    Why
    ----
    Provide a single catch-all type for consumers that do not need fine-grained
    handling.
    """


class InvalidFormat(CertResolverError):
    """Raised when an input artifact cannot be turned into the expected shape.

    Typical Sources
    ---------------
    Structured file loaders (:mod:`tomllib`, :mod:`json`, :mod:`yaml`), the
    ``certs`` table builder, and port override parsing.
    """


class NotFound(CertResolverError):
    """Raised when a configuration document does not exist on disk."""


class ConfigMissing(CertResolverError):
    """No ``certs`` table could be read from the configuration source.

    Why
    ----
    A missing table is a hard failure, distinct from "nothing matched". The
    message explains the expected document shape and itemises every candidate
    that was attempted before the failure (usually none).

    Attributes
    ----------
    source:
        Human-readable description of the configuration source.
    skipped:
        Skip records gathered before the failure.
    """

    def __init__(self, source: str, skipped: Sequence[SkipRecord] = (), detail: str | None = None) -> None:
        self.source = source
        self.skipped = tuple(skipped)
        self.detail = detail
        super().__init__(_config_missing_message(source, self.skipped, detail))


class FileAccessError(CertResolverError):
    """A selected certificate or key passed the existence check but could not be read."""


class BindError(CertResolverError):
    """The secure listener could not be started on the resolved port.

    Attributes
    ----------
    port:
        Port the bind was attempted on.
    """

    def __init__(self, message: str, *, port: int) -> None:
        self.port = port
        super().__init__(message)


_EXAMPLE_DOCUMENT = """\
    [certs.development]
    cert = "/path/to/ssl-cert.pem"
    key = "/path/to/ssl-cert.key"

    [certs.production]
    cert = "..."
    key = "..."
"""


def _config_missing_message(source: str, skipped: Sequence[SkipRecord], detail: str | None) -> str:
    """Explain what a usable configuration looks like and what was attempted."""

    lines = [f"No usable certificate table found in {source}."]
    if detail:
        lines.append(f"Cause: {detail}")
    lines.extend(
        [
            "Provide a document with a 'certs' table mapping environment names to",
            "'cert' and 'key' paths (relative to the working directory or absolute).",
            "When no environment is configured, 'development' is assumed.",
            "",
            "Example:",
            _EXAMPLE_DOCUMENT,
        ]
    )
    if skipped:
        lines.append("The following candidates were attempted and skipped:")
        lines.extend(f"  {record.describe()}" for record in skipped)
    else:
        lines.append("No candidates were attempted.")
    return "\n".join(lines)
