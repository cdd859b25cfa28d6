"""Logging for the resolver: structured events and the ``debug`` line sink.

Purpose
    Two audiences read what the resolver does. Log handlers receive structured
    records (``extra={"context": {...}}``) for every lifecycle event; humans
    running with ``debug=True`` receive plain lines such as
    ``[Environment ] production`` through a sink.

Contents
    - ``TRACE_ID``: context variable carrying the identifier of the current
      startup (the CLI binds a fresh one per ``serve``).
    - ``get_logger`` / ``bind_trace_id``: logger access and trace binding.
    - ``log_debug`` / ``log_info`` / ``log_error``: structured emitters.
    - ``make_event``: payload builder keyed by ``layer`` and ``path``.
    - ``make_diagnostic``: the ``debug``-gated sink wrapper.

System Integration
    Adapters log file reads, binds, and hostname lookups; :mod:`core` logs the
    selection outcome. Nothing is printed unless the host application attaches
    a handler or enables ``debug``.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from functools import partial
from typing import Any, Callable, Final, Mapping

TRACE_ID: ContextVar[str | None] = ContextVar("lib_cert_resolver_trace_id", default=None)
"""Identifier attached to every structured record emitted during one startup."""

_LOGGER: Final[logging.Logger] = logging.getLogger("lib_cert_resolver")
_LOGGER.addHandler(logging.NullHandler())

Sink = Callable[[str], None]


def get_logger() -> logging.Logger:
    """Return the ``lib_cert_resolver`` logger (silent until a handler is attached)."""

    return _LOGGER


def bind_trace_id(trace_id: str | None) -> None:
    """Set the trace identifier for records emitted in the current context.

    Examples
    --------
    >>> bind_trace_id('startup-1')
    >>> TRACE_ID.get()
    'startup-1'
    >>> bind_trace_id(None)
    >>> TRACE_ID.get() is None
    True
    """

    TRACE_ID.set(trace_id)


def _emit(level: int, message: str, **fields: Any) -> None:
    if not _LOGGER.isEnabledFor(level):
        return
    context: dict[str, Any] = {"trace_id": TRACE_ID.get(), **fields}
    _LOGGER.log(level, message, extra={"context": context})


log_debug = partial(_emit, logging.DEBUG)
log_info = partial(_emit, logging.INFO)
log_error = partial(_emit, logging.ERROR)


def make_event(layer: str, path: str | None, payload: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Build the keyword fields for a structured record.

    ``layer`` names the stage (``certs``, ``listener``, ``hostname``...) and
    ``path`` the file involved, if any.

    Examples
    --------
    >>> make_event('certs', 'pyproject.toml', {'entries': 2})
    {'layer': 'certs', 'path': 'pyproject.toml', 'entries': 2}
    """

    return {"layer": layer, "path": path, **(payload or {})}


def make_diagnostic(enabled: bool, sink: Sink | None = None) -> Sink:
    """Return a line logger that forwards to *sink* only when *enabled*.

    The resolver and ``on_settle`` callbacks call the returned function
    unconditionally; ``sink`` defaults to ``get_logger().info``.

    Examples
    --------
    >>> lines = []
    >>> make_diagnostic(True, lines.append)("[Environment ] production")
    >>> make_diagnostic(False, lines.append)("dropped")
    >>> lines
    ['[Environment ] production']
    """

    target = sink or _LOGGER.info

    def diagnostic(line: str) -> None:
        if enabled:
            target(line)

    return diagnostic
