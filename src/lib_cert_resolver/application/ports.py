"""Application-layer ports describing adapter responsibilities.

Purpose
-------
Define the structural contracts that adapters must satisfy so the composition
root can orchestrate behaviour without depending on concrete implementations.

Contents
--------
* :class:`SettingsProvider` – reads process-level settings (``APP_ENV`` etc.).
* :class:`FileLoader` – parses structured configuration documents.
* :class:`SecureListener` – handle for a running TLS listener.
* :class:`ListenerFactory` – binds a secure listener for an application.

System Role
-----------
These protocols keep process state, parsing, and networking out of the
resolution algorithm. Tests substitute in-memory settings and fake listener
factories through :class:`lib_cert_resolver.domain.certs.ResolutionOptions`.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, runtime_checkable

from ..domain.certs import TlsCredentials


@runtime_checkable
class SettingsProvider(Protocol):
    """Look up named process settings.

    Why
    ----
    Reading :data:`os.environ` directly would force tests to mutate real
    process state.
    """

    def get(self, name: str) -> str | None:
        """Return the value of setting *name* or ``None`` when unset or empty."""


@runtime_checkable
class FileLoader(Protocol):
    """Parse a structured configuration file into a mapping."""

    def load(self, path: str) -> Mapping[str, object]:
        """Read *path* and return a mapping or raise ``InvalidFormat``/``NotFound``."""


@runtime_checkable
class SecureListener(Protocol):
    """Handle for a listener that is accepting TLS connections."""

    @property
    def port(self) -> int:
        """Port the listener is actually bound to."""

    @property
    def url(self) -> str:
        """Base ``https://`` URL for the listener."""

    async def close(self) -> None:
        """Stop accepting connections and release the port."""


@runtime_checkable
class ListenerFactory(Protocol):
    """Start a TLS listener serving *app*.

    Why
    ----
    Binding is delegated to an HTTP server library; the resolver only needs a
    coroutine that either returns a handle or raises.
    """

    async def start(
        self,
        app: Any,
        credentials: TlsCredentials,
        *,
        port: int,
        host: str | None = None,
    ) -> SecureListener:
        """Bind and return the running listener or raise :class:`OSError`/``ssl.SSLError``."""
