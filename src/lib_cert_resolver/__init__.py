"""Public package surface for environment-based TLS certificate resolution.

``serve_secure`` is the one call applications make at startup; the remaining
exports let callers dry-run the decision, supply their own configuration
records, and hook into logging.
"""

from __future__ import annotations

from .adapters.env.default import DefaultSettingsProvider
from .core import load_certificate_table, read_credentials, resolve_certificate, serve_secure
from .deferred import Deferred, DeferredTimeout
from .domain.certs import (
    CertificateEntry,
    CertificateTable,
    ConfigPath,
    ConfigRecord,
    PortDecision,
    Resolution,
    ResolutionOptions,
    SkipRecord,
    TlsCredentials,
)
from .domain.errors import BindError, CertResolverError, ConfigMissing, FileAccessError, InvalidFormat, NotFound
from .observability import bind_trace_id, get_logger

__all__ = [
    "BindError",
    "CertResolverError",
    "CertificateEntry",
    "CertificateTable",
    "ConfigMissing",
    "ConfigPath",
    "ConfigRecord",
    "DefaultSettingsProvider",
    "Deferred",
    "DeferredTimeout",
    "FileAccessError",
    "InvalidFormat",
    "NotFound",
    "PortDecision",
    "Resolution",
    "ResolutionOptions",
    "SkipRecord",
    "TlsCredentials",
    "bind_trace_id",
    "get_logger",
    "load_certificate_table",
    "read_credentials",
    "resolve_certificate",
    "serve_secure",
]
