"""Per-device poll scheduler with failure backoff."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import List, Sequence

from .channel import ShellyChannelController
from .const import (
    POLL_BACKOFF_MAX_MULTIPLIER,
    POLL_DELAY_MAX,
    POLL_INTERVAL_MAX,
    POLL_INTERVAL_MIN,
)
from .models import PollCycleState, ShellyDevice

_LOGGER = logging.getLogger(__name__)


def base_poll_interval(device: ShellyDevice) -> float:
    """Configured poll interval in seconds, bounded to 2-60."""
    return float(min(POLL_INTERVAL_MAX, max(POLL_INTERVAL_MIN, device.poll_interval)))


def next_poll_delay(base: float, failures: int) -> float:
    multiplier = min(POLL_BACKOFF_MAX_MULTIPLIER, max(0, failures) + 1)
    return min(base * multiplier, POLL_DELAY_MAX)


class ShellyDevicePoller:
    """Periodically refreshes every channel of one device, one channel at a time."""

    def __init__(self, device: ShellyDevice, controllers: Sequence[ShellyChannelController]):
        self._device = device
        self._controllers: List[ShellyChannelController] = list(controllers)
        self._base = base_poll_interval(device)
        self._cycle = PollCycleState(next_delay=self._base)
        self._task: asyncio.Task | None = None

    @property
    def cycle(self) -> PollCycleState:
        return self._cycle

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Run a cycle immediately, then keep rescheduling."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._poll_loop())

    async def async_stop(self) -> None:
        if self._task:
            task = self._task
            self._task = None
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _poll_loop(self) -> None:
        try:
            while True:
                delay = await self.async_poll_once()
                await asyncio.sleep(delay)
        except asyncio.CancelledError:
            return

    async def async_poll_once(self) -> float:
        """Refresh all channels; return the delay before the next cycle."""
        failures = self._cycle.consecutive_failures
        for controller in self._controllers:
            try:
                await controller.async_refresh()
                failures = 0
            except asyncio.CancelledError:
                raise
            except Exception as ex:
                failures += 1
                # First failure, then every third, to keep long outages quiet
                if failures == 1 or failures % 3 == 0:
                    _LOGGER.warning(
                        "Polling failed for %s (channel %s, %s consecutive): %s",
                        self._device.key,
                        controller.index,
                        failures,
                        ex,
                    )

        self._cycle.consecutive_failures = failures
        self._cycle.next_delay = next_poll_delay(self._base, failures)
        _LOGGER.debug(
            "Poll cycle for %s done: failures=%s next in %ss",
            self._device.key,
            failures,
            self._cycle.next_delay,
        )
        return self._cycle.next_delay
