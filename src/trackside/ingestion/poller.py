"""Single-flight polling loop.

A :class:`PollSource` repeatedly calls a fetch coroutine on a fixed
interval and hands results to ``on_data`` and failures to ``on_error``.

Guarantees:

* at most one fetch per source is in flight; starting a new cycle cancels
  the previous one and its late result is dropped
* a result is delivered only if its cycle is still the current one
* after :meth:`PollSource.stop` returns, neither callback fires again
* cancellations and read timeouts never reach ``on_error``
* unusable responses are logged and dropped; they count as the current
  error but never reach ``on_error``

Cycle lifecycle: ``IDLE -> SCHEDULED -> FETCHING -> (delivered | failed)
-> SCHEDULED -> ...``; :meth:`PollSource.stop` returns to ``IDLE`` from
any state. Everything runs on the event loop, so no locking is needed.
"""

from __future__ import annotations

import asyncio
import enum
import itertools
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from trackside._constants import TRANSIENT_LOG_COOLDOWN
from trackside.exceptions import RequestTimeoutError, ServiceUnavailableError

_logger = logging.getLogger(__name__)

T = TypeVar("T")

FetchFn = Callable[[], Awaitable[T]]
DataCallback = Callable[[T], None]
ErrorCallback = Callable[[Exception], None]


class PollState(enum.StrEnum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    FETCHING = "fetching"


def is_transient(exc: BaseException) -> bool:
    """Backend is up but not ready yet; the next cycle will likely succeed."""
    return isinstance(exc, ServiceUnavailableError)


def is_cancellation(exc: BaseException) -> bool:
    """Timeouts follow the cancellation path: dropped, never reported."""
    return isinstance(exc, RequestTimeoutError | TimeoutError)


class LogThrottle:
    """Allows one event per cooldown window."""

    def __init__(self, cooldown: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._cooldown = cooldown
        self._clock = clock
        self._last: float | None = None

    def allow(self) -> bool:
        now = self._clock()
        if self._last is not None and now - self._last < self._cooldown:
            return False
        self._last = now
        return True


@dataclass(slots=True)
class PollCycle:
    """One fetch attempt, identified by a token unique within its source."""

    token: int
    started_at: float
    task: asyncio.Task[None] | None = field(default=None, repr=False)

    @property
    def in_flight(self) -> bool:
        return self.task is not None and not self.task.done()

    def cancel(self) -> asyncio.Task[None] | None:
        """Cancel the fetch if it is still running; returns the cancelled task."""
        task = self.task
        if task is None or task.done():
            return None
        task.cancel()
        return task


class PollSource(Generic[T]):
    """An independently-cadenced fetch loop.

    Usage::

        source = PollSource("telemetry")
        controller = source.start(fetch, 0.1, on_data=apply, on_error=report)
        ...
        controller.stop()
    """

    def __init__(
        self,
        name: str,
        *,
        transient_log_cooldown: float = TRANSIENT_LOG_COOLDOWN,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self._clock = clock
        self._throttle = LogThrottle(transient_log_cooldown, clock=clock)
        self._tokens = itertools.count(1)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._fetch_fn: FetchFn[T] | None = None
        self._interval: float = 0.0
        self._timeout: float | None = None
        self._on_data: DataCallback[T] | None = None
        self._on_error: ErrorCallback | None = None
        self._unusable: tuple[type[Exception], ...] = ()
        self._running = False
        self._state = PollState.IDLE
        self._cycle: PollCycle | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._controller: PollController[T] | None = None
        self._has_received_data = False
        self._last_error: Exception | None = None
        self._orphans: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def has_received_data(self) -> bool:
        return self._has_received_data

    @property
    def last_error(self) -> Exception | None:
        """Most recent non-transient failure; cleared by the next delivery."""
        return self._last_error

    @property
    def is_connected(self) -> bool:
        """Data has arrived at least once and the latest cycle did not fail."""
        return self._has_received_data and self._last_error is None

    @property
    def current_cycle(self) -> PollCycle | None:
        return self._cycle

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(
        self,
        fetch_fn: FetchFn[T],
        interval: float,
        *,
        immediate: bool = True,
        on_data: DataCallback[T] | None = None,
        on_error: ErrorCallback | None = None,
        timeout: float | None = None,
        unusable: tuple[type[Exception], ...] = (),
    ) -> PollController[T]:
        """Begin polling; must be called from within a running event loop.

        Parameters
        ----------
        fetch_fn
            Coroutine function producing one result per call.
        interval
            Seconds between the starts of two consecutive cycles. A tick
            that lands while a cycle is still in flight is deferred until
            that cycle finishes.
        immediate
            Fire the first fetch right away instead of after one interval.
        timeout
            Optional per-cycle timeout; an expired cycle is dropped like a
            cancelled one.
        unusable
            Exception types meaning the response arrived but cannot be used.
            They are logged and kept as the current error, so the source does
            not count as connected, but are never forwarded to ``on_error``.

        Calling ``start`` on a running source returns its controller
        unchanged.
        """
        if self._running and self._controller is not None:
            _logger.debug("%s: start() ignored, already running", self.name)
            return self._controller
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")

        self._loop = asyncio.get_running_loop()
        self._fetch_fn = fetch_fn
        self._interval = interval
        self._timeout = timeout
        self._on_data = on_data
        self._on_error = on_error
        self._unusable = unusable
        self._running = True
        self._controller = PollController(self)
        _logger.debug("%s: polling every %.3fs (immediate=%s)", self.name, interval, immediate)

        if immediate:
            self._begin_cycle()
        else:
            self._schedule(interval)
        return self._controller

    def stop(self) -> None:
        """Cancel the in-flight cycle and the pending tick. Idempotent."""
        if not self._running and self._cycle is None and self._timer is None:
            return
        self._running = False
        self._cancel_timer()
        cycle = self._cycle
        self._cycle = None
        if cycle is not None:
            self._orphan(cycle)
        self._state = PollState.IDLE
        _logger.debug("%s: polling stopped", self.name)

    async def aclose(self) -> None:
        """Stop, then wait until every cancelled fetch has unwound."""
        self.stop()
        pending = [task for task in self._orphans if not task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def refetch_now(self) -> None:
        """Start a cycle right away, superseding any in-flight one.

        No-op while the source is stopped.
        """
        if not self._running:
            _logger.debug("%s: refetch_now() ignored, source is stopped", self.name)
            return
        self._begin_cycle()

    # ------------------------------------------------------------------
    # Cycle machinery
    # ------------------------------------------------------------------

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _require_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise RuntimeError(f"Poll source {self.name!r} has not been started")
        return self._loop

    def _orphan(self, cycle: PollCycle) -> None:
        task = cycle.cancel()
        if task is not None:
            self._orphans.add(task)
            task.add_done_callback(self._orphans.discard)

    def _schedule(self, delay: float) -> None:
        loop = self._require_loop()
        self._cancel_timer()
        self._state = PollState.SCHEDULED
        self._timer = loop.call_later(max(0.0, delay), self._on_tick)

    def _on_tick(self) -> None:
        self._timer = None
        if self._running:
            self._begin_cycle()

    def _begin_cycle(self) -> None:
        loop = self._require_loop()
        self._cancel_timer()

        previous = self._cycle
        if previous is not None and previous.in_flight:
            _logger.debug("%s: cycle %d superseded", self.name, previous.token)
            self._orphan(previous)

        cycle = PollCycle(token=next(self._tokens), started_at=self._clock())
        self._cycle = cycle
        self._state = PollState.FETCHING
        cycle.task = loop.create_task(self._run_cycle(cycle), name=f"poll-{self.name}-{cycle.token}")

    def _is_current(self, cycle: PollCycle) -> bool:
        return self._running and self._cycle is cycle

    async def _fetch(self) -> T:
        fetch_fn = self._fetch_fn
        if fetch_fn is None:
            raise RuntimeError(f"Poll source {self.name!r} has no fetch function")
        if self._timeout is None:
            return await fetch_fn()
        return await asyncio.wait_for(fetch_fn(), self._timeout)

    async def _run_cycle(self, cycle: PollCycle) -> None:
        try:
            result = await self._fetch()
        except asyncio.CancelledError:
            _logger.debug("%s: cycle %d cancelled", self.name, cycle.token)
            raise
        except Exception as exc:
            if not self._is_current(cycle):
                _logger.debug("%s: dropping failure of stale cycle %d", self.name, cycle.token)
                return
            self._handle_error(cycle, exc)
        else:
            if not self._is_current(cycle):
                _logger.debug("%s: dropping result of stale cycle %d", self.name, cycle.token)
                return
            self._deliver(result)

        if self._is_current(cycle):
            self._cycle = None
            elapsed = self._clock() - cycle.started_at
            self._schedule(self._interval - elapsed)

    def _deliver(self, result: T) -> None:
        self._has_received_data = True
        self._last_error = None
        if self._on_data is None:
            return
        try:
            self._on_data(result)
        except Exception:
            _logger.error("%s: on_data callback failed", self.name, exc_info=True)

    def _handle_error(self, cycle: PollCycle, exc: Exception) -> None:
        if is_cancellation(exc):
            _logger.debug("%s: cycle %d timed out, dropped", self.name, cycle.token)
            return

        if isinstance(exc, self._unusable):
            self._last_error = exc
            _logger.error("%s: dropping unusable response: %s", self.name, exc)
            return

        if is_transient(exc):
            if self._throttle.allow():
                _logger.warning(
                    "%s endpoint unavailable (%s) - will keep retrying; expected while the backend has no race data",
                    self.name,
                    exc,
                )
        else:
            self._last_error = exc
            _logger.error("%s polling error: %s", self.name, exc)

        if self._on_error is None:
            return
        try:
            self._on_error(exc)
        except Exception:
            _logger.error("%s: on_error callback failed", self.name, exc_info=True)


@dataclass(frozen=True, slots=True)
class PollController(Generic[T]):
    """Handle returned by :meth:`PollSource.start`."""

    source: PollSource[T]

    def stop(self) -> None:
        self.source.stop()

    def refetch_now(self) -> None:
        self.source.refetch_now()

    @property
    def state(self) -> PollState:
        return self.source.state

    @property
    def is_running(self) -> bool:
        return self.source.is_running

    @property
    def is_connected(self) -> bool:
        return self.source.is_connected

    @property
    def has_received_data(self) -> bool:
        return self.source.has_received_data

    @property
    def last_error(self) -> Exception | None:
        return self.source.last_error


def describe(source: PollSource[Any]) -> dict[str, Any]:
    """Status summary for diagnostics output."""
    cycle = source.current_cycle
    return {
        "name": source.name,
        "state": str(source.state),
        "connected": source.is_connected,
        "has_received_data": source.has_received_data,
        "last_error": str(source.last_error) if source.last_error is not None else None,
        "cycle": cycle.token if cycle is not None else None,
    }
