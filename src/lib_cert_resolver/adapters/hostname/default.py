"""Machine identity lookup used for display purposes only.

The resolver prints ``https://<fqdn>:<port>`` once the listener is up. The
lookup may be slow or hang on misconfigured resolvers, so callers always wrap
it in a timeout and fall back to :func:`socket.gethostname`.
"""

from __future__ import annotations

import asyncio
import socket
from dataclasses import dataclass

from ...observability import log_debug


@dataclass(frozen=True, slots=True)
class HostIdentity:
    """Names under which this machine is reachable."""

    hostname: str
    service: str
    fqdn: str
    uqdn: str


async def lookup_fqdn(uqdn: str | None = None) -> HostIdentity:
    """Resolve the fully qualified domain name of this machine.

    Resolves the short hostname to an address, then reverse-resolves that
    address. Raises :class:`OSError` (``socket.gaierror``) when either step fails.
    """

    loop = asyncio.get_running_loop()
    short = uqdn or socket.gethostname()
    infos = await loop.getaddrinfo(short, None, flags=socket.AI_ADDRCONFIG, type=socket.SOCK_STREAM)
    if not infos:
        raise OSError(f"No address found for host {short!r}")
    hostname, service = await loop.getnameinfo(infos[0][4])
    log_debug("hostname_resolved", layer="hostname", path=None, uqdn=short, fqdn=hostname)
    return HostIdentity(hostname=hostname, service=service, fqdn=hostname, uqdn=short)


def fallback_identity() -> HostIdentity:
    """Identity built from the short hostname when the lookup fails."""

    short = socket.gethostname()
    return HostIdentity(hostname=short, service="", fqdn=short, uqdn=short)
