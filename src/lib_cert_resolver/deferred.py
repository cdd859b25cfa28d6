"""One-shot deferred results on top of :class:`asyncio.Future`.

Purpose
    Give producers explicit ``resolve``/``reject`` handles for a future that
    settles exactly once, and optionally bound an awaitable with a timeout.

Contents
    - ``Deferred``: settle-once wrapper; extra settle calls are ignored.
    - ``DeferredTimeout``: the error used when a bounded deferred expires.

System Integration
    :func:`lib_cert_resolver.core.serve_secure` returns ``Deferred.future`` as
    its authoritative outcome and bounds the informational hostname lookup
    with :meth:`Deferred.wrap`.
"""

from __future__ import annotations

import asyncio
import math
from typing import Any, Awaitable, Generic, TypeVar

T = TypeVar("T")


class DeferredTimeout(TimeoutError):
    """Raised (or resolved with) when a bounded deferred runs out of time."""

    def __init__(self, timeout: float, action: str) -> None:
        self.timeout = timeout
        self.action = action
        super().__init__(f"The deferred was given a time out of {timeout:g}s; it elapsed and {action}() was called.")


class Deferred(Generic[T]):
    """A future with producer-side ``resolve``/``reject`` that settles once.

    Examples
    --------
    >>> async def demo():
    ...     deferred = Deferred()
    ...     first = deferred.resolve(1)
    ...     second = deferred.reject(RuntimeError("late"))
    ...     return first, second, await deferred.future
    >>> asyncio.run(demo())
    (True, False, 1)
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._future: asyncio.Future[T] = self._loop.create_future()
        self._timer: asyncio.TimerHandle | None = None

    @classmethod
    def wrap(
        cls,
        awaitable: Awaitable[T],
        *,
        timeout: float | None = None,
        resolve_after_timeout: bool = False,
    ) -> Deferred[T]:
        """Return a deferred that mirrors *awaitable*.

        When *timeout* (seconds) is given and elapses first, the deferred is
        rejected with :class:`DeferredTimeout` (or resolved with it when
        ``resolve_after_timeout`` is set) and the awaitable is cancelled.
        """

        deferred: Deferred[T] = cls()
        task = asyncio.ensure_future(awaitable)
        task.add_done_callback(deferred._settle_from)
        if timeout is not None and not math.isnan(timeout):
            deferred._timer = deferred._loop.call_later(timeout, deferred._expire, timeout, resolve_after_timeout, task)
        return deferred

    @property
    def future(self) -> asyncio.Future[T]:
        return self._future

    def resolve(self, value: T) -> bool:
        """Settle with *value*; return ``False`` if already settled."""

        if self._future.done():
            return False
        self._future.set_result(value)
        self._cancel_timer()
        return True

    def reject(self, error: BaseException) -> bool:
        """Settle with *error*; return ``False`` if already settled."""

        if self._future.done():
            return False
        self._future.set_exception(error)
        self._cancel_timer()
        return True

    def cancel(self) -> bool:
        """Cancel the underlying future; return ``False`` if already settled."""

        if self._future.done():
            return False
        self._future.cancel()
        self._cancel_timer()
        return True

    def _settle_from(self, task: asyncio.Future[Any]) -> None:
        if task.cancelled():
            self.cancel()
            return
        error = task.exception()
        if error is not None:
            self.reject(error)
        else:
            self.resolve(task.result())

    def _expire(self, timeout: float, resolve_after_timeout: bool, task: asyncio.Future[Any]) -> None:
        if resolve_after_timeout:
            self.resolve(DeferredTimeout(timeout, "resolve"))  # type: ignore[arg-type]
        else:
            self.reject(DeferredTimeout(timeout, "reject"))
        task.cancel()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
