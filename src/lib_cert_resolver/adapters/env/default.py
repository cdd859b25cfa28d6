"""Process environment adapter.

Purpose
-------
Implement :class:`lib_cert_resolver.application.ports.SettingsProvider` on top
of a mapping of environment variables so the resolver never touches
:data:`os.environ` directly.

Key behaviours
--------------
* Empty and whitespace-only values count as unset.
* Lookups are exact-case; ``APP_ENV`` and ``app_env`` are different settings.
* Emits structured logging via :mod:`lib_cert_resolver.observability`.
"""

from __future__ import annotations

import os
from typing import Mapping

from ...domain.certs import ENVIRONMENT_VARIABLE, PORT_VARIABLES
from ...observability import log_debug


class DefaultSettingsProvider:
    """Read settings from the process environment (or an injected mapping)."""

    def __init__(self, *, environ: Mapping[str, str] | None = None) -> None:
        """Initialise the provider with a specific ``environ`` mapping for testability.

        Parameters
        ----------
        environ:
            Mapping to read from. Defaults to :data:`os.environ`.
        """

        self._environ = os.environ if environ is None else environ

    def get(self, name: str) -> str | None:
        """Return the value of *name*, or ``None`` when it is unset or blank.

        Examples
        --------
        >>> provider = DefaultSettingsProvider(environ={"SSL_PORT": "8443", "APP_ENV": " "})
        >>> provider.get("SSL_PORT")
        '8443'
        >>> provider.get("APP_ENV") is None
        True
        """

        value = self._environ.get(name)
        if value is None or not value.strip():
            return None
        return value

    def snapshot(self) -> dict[str, str | None]:
        """Return every setting the resolver consults, in lookup order."""

        names = (ENVIRONMENT_VARIABLE, *PORT_VARIABLES)
        snapshot = {name: self.get(name) for name in names}
        log_debug("settings_read", layer="env", path=None, keys=[k for k, v in snapshot.items() if v is not None])
        return snapshot
