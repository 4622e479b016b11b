"""Timer, debounce and serial-queue primitives used by channel controllers."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class Timer:
    """A single cancelable one-shot timer on the running loop."""

    def __init__(self) -> None:
        self._handle: asyncio.TimerHandle | None = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    def schedule(self, delay: float, callback: Callable[[], None]) -> None:
        """(Re)arm the timer; a previously armed callback never runs."""
        self.cancel()
        loop = asyncio.get_running_loop()

        def _fire() -> None:
            self._handle = None
            callback()

        self._handle = loop.call_later(max(0.0, delay), _fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


def chain_future(source: asyncio.Future, target: asyncio.Future) -> None:
    """Copy the outcome of source into target once source is done."""

    def _copy(done: asyncio.Future) -> None:
        if target.done():
            return
        if done.cancelled():
            target.cancel()
        elif done.exception() is not None:
            target.set_exception(done.exception())
        else:
            target.set_result(done.result())

    source.add_done_callback(_copy)


class Coalescer:
    """Coalesce rapid updates and act only on the latest after a delay.

    Every caller scheduled inside one window shares the same future, which
    resolves with the outcome of the single action started when the window
    closes.
    """

    def __init__(self, delay: float = 0.2):
        self.delay = delay
        self._timer = Timer()
        self._future: asyncio.Future | None = None
        self._value: Any = None

    @property
    def pending(self) -> bool:
        return self._timer.active

    @property
    def value(self) -> Any:
        return self._value if self.pending else None

    def schedule(self, value: Any, fire: Callable[[Any], Awaitable[Any]]) -> asyncio.Future:
        """Replace the pending value, restart the window, return the shared future."""
        self._value = value
        if self._future is None or self._future.done():
            self._future = asyncio.get_running_loop().create_future()
        future = self._future

        def _on_timer() -> None:
            self._future = None
            value = self._value
            self._value = None
            try:
                outcome = asyncio.ensure_future(fire(value))
            except Exception as ex:
                if not future.done():
                    future.set_exception(ex)
                return
            chain_future(outcome, future)

        self._timer.schedule(self.delay, _on_timer)
        return future

    def cancel(self) -> Optional[asyncio.Future]:
        """Drop the pending value; return the orphaned future so callers can resolve it."""
        self._timer.cancel()
        future, self._future = self._future, None
        self._value = None
        if future is not None and future.done():
            return None
        return future


class SerialQueue:
    """FIFO queue running one job at a time.

    Each submitted job waits for the tail to settle (whatever its outcome)
    before starting. The tail of a job settles only once that job and every
    job ahead of it are done, so cancelling a waiting job never lets the
    next one overtake a job still running.
    """

    def __init__(self, name: str = ""):
        self._name = name
        self._tail: asyncio.Future | None = None
        self._pending = 0

    @property
    def pending(self) -> int:
        """Jobs submitted and not finished yet, including the running one."""
        return self._pending

    def submit(self, job: Callable[[], Awaitable[T]]) -> "asyncio.Task[T]":
        previous = self._tail
        settled = asyncio.get_running_loop().create_future()
        self._tail = settled

        async def runner() -> T:
            if previous is not None and not previous.done():
                await asyncio.wait({previous})
            return await job()

        def _settle(_: Any = None) -> None:
            if not settled.done():
                settled.set_result(None)

        def _on_done(_: asyncio.Future) -> None:
            self._pending -= 1
            if previous is None or previous.done():
                _settle()
            else:
                previous.add_done_callback(_settle)

        self._pending += 1
        task = asyncio.ensure_future(runner())
        # A callback also runs when the task is cancelled before it started
        task.add_done_callback(_on_done)
        return task

    async def async_drain(self) -> None:
        """Wait until every job submitted so far has finished."""
        tail = self._tail
        if tail is not None and not tail.done():
            _LOGGER.debug("Draining queue %s (%s pending)", self._name, self._pending)
            await asyncio.wait({tail})
