"""Per-channel controller: serialized writes, brightness debounce and refresh."""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .api import ShellyWhiteClient, clamp_brightness
from .const import ATTR_BRIGHTNESS, ATTR_ON, BRIGHTNESS_MAX
from .exceptions import ShellyError, ShellyWriteError
from .models import ChannelState, ShellyChannel, ShellyDevice, WhiteStatus, channel_id
from .scheduling import Coalescer, SerialQueue, chain_future

_LOGGER = logging.getLogger(__name__)

StateListener = Callable[[str, Any], None]


def reconcile_status(state: ChannelState, status: WhiteStatus, *, force: bool = False) -> Dict[str, Any]:
    """Apply a device status to the cache and return the attributes to notify.

    The cached view keeps ``is_on == (brightness > 0)``: a channel reported
    off (or on at 0) is cached as off at brightness 0. Both fields are always
    written; only differing ones are returned unless ``force`` is set.
    """
    is_on = status.is_on and status.brightness > 0
    brightness = status.brightness if is_on else 0

    changes: Dict[str, Any] = {}
    if force or state.is_on != is_on:
        changes[ATTR_ON] = is_on
    if force or state.brightness != brightness:
        changes[ATTR_BRIGHTNESS] = brightness

    state.is_on = is_on
    state.brightness = brightness
    if is_on:
        state.last_non_zero_brightness = brightness
    return changes


class ShellyChannelController:
    """Owns one channel's cached state and funnels all device I/O through one queue."""

    def __init__(
        self,
        client: ShellyWhiteClient,
        device: ShellyDevice,
        channel: ShellyChannel,
        state: Optional[ChannelState] = None,
        *,
        debounce: float = 0.2,
        refresh_cooldown: float = 0.5,
    ):
        self._client = client
        self._device = device
        self._channel = channel
        self._state = state if state is not None else ChannelState()
        self._id = channel_id(device, channel)
        self._coalescer = Coalescer(debounce)
        self._queue = SerialQueue(self._id)
        self._refresh_cooldown = refresh_cooldown
        # Monotonic deadline before which poll refreshes are skipped
        self._refresh_suppressed_until = 0.0
        self._listeners: List[StateListener] = []

    @property
    def id(self) -> str:
        return self._id

    @property
    def index(self) -> int:
        return self._channel.index

    @property
    def name(self) -> str:
        return self._device.channel_name(self._channel)

    @property
    def state(self) -> ChannelState:
        """Read-only snapshot of the cached state."""
        return dataclasses.replace(self._state)

    @property
    def target_brightness(self) -> Optional[int]:
        """Brightness waiting for the debounce window to close, if any."""
        return self._coalescer.value

    @property
    def busy(self) -> bool:
        return self._coalescer.pending or self._queue.pending > 0

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    async def async_set_on(self, on: bool) -> WhiteStatus:
        if on:
            return await self.async_turn_on()
        return await self.async_turn_off()

    async def async_turn_on(self) -> WhiteStatus:
        state = self._state
        target = state.brightness if state.brightness > 0 else (state.last_non_zero_brightness or BRIGHTNESS_MAX)
        return await self._async_commit_now(
            "turn on",
            lambda: self._client.async_set_on_with_brightness(self.index, target, self._device.transition_on_ms),
        )

    async def async_turn_off(self) -> WhiteStatus:
        return await self._async_commit_now(
            "turn off",
            lambda: self._client.async_set_on(self.index, False, self._device.transition_off_ms),
        )

    async def async_set_brightness(self, value: Any) -> WhiteStatus:
        """Debounced brightness change; coalesced callers share one write."""
        target = clamp_brightness(value)
        _LOGGER.debug("Brightness %s requested for %s (debouncing)", target, self._id)
        # Shielded per caller: a cancelled caller must not cancel the shared outcome
        return await asyncio.shield(self._coalescer.schedule(target, self._commit_brightness))

    async def async_refresh(self) -> bool:
        """Read the device and reconcile; False when skipped after a recent write."""
        if self._refresh_suppressed():
            _LOGGER.debug("Refresh of %s skipped during post-write cooldown", self._id)
            return False
        return await self._queue.submit(self._async_fetch_status)

    async def async_close(self) -> None:
        superseded = self._coalescer.cancel()
        if superseded is not None:
            superseded.cancel()
        await self._queue.async_drain()

    def _commit_brightness(self, target: int) -> Awaitable[WhiteStatus]:
        # Runs when the debounce window closes; the write is chosen from the state right now
        was_on = self._state.is_on
        if target == 0:
            action = lambda: self._client.async_set_on(self.index, False, self._device.transition_off_ms)
            label = "brightness 0 (off)"
        elif was_on:
            action = lambda: self._client.async_set_brightness(self.index, target, self._device.transition_on_ms)
            label = f"brightness {target}"
        else:
            action = lambda: self._client.async_set_on_with_brightness(
                self.index, target, self._device.transition_on_ms
            )
            label = f"turn on at {target}"
        return self._queue.submit(lambda: self._async_write(label, action))

    async def _async_commit_now(self, label: str, action: Callable[[], Awaitable[WhiteStatus]]) -> WhiteStatus:
        superseded = self._coalescer.cancel()
        task = self._queue.submit(lambda: self._async_write(label, action))
        if superseded is not None:
            _LOGGER.debug("Pending brightness for %s superseded by %s", self._id, label)
            chain_future(task, superseded)
        # In-flight writes are never cancelled by their caller
        return await asyncio.shield(task)

    async def _async_write(self, label: str, action: Callable[[], Awaitable[WhiteStatus]]) -> WhiteStatus:
        _LOGGER.debug("Write %s → %s", label, self._id)
        try:
            status = await action()
        except ShellyError as ex:
            _LOGGER.warning("Write %s failed for %s: %s", label, self._id, ex)
            raise ShellyWriteError(f"{label} failed for {self._id}: {ex}") from ex
        self._refresh_suppressed_until = time.monotonic() + self._refresh_cooldown
        _LOGGER.debug("Write %s ← %s: on=%s brightness=%s", label, self._id, status.is_on, status.brightness)
        self._apply_status(status, force=True)
        return status

    async def _async_fetch_status(self) -> bool:
        # A write may have finished while this refresh waited in the queue
        if self._refresh_suppressed():
            _LOGGER.debug("Queued refresh of %s dropped after a write", self._id)
            return False
        status = await self._client.async_get_status(self.index)
        self._apply_status(status, force=False)
        return True

    def _refresh_suppressed(self) -> bool:
        return time.monotonic() < self._refresh_suppressed_until

    def _apply_status(self, status: WhiteStatus, *, force: bool) -> None:
        changes = reconcile_status(self._state, status, force=force)
        for attribute, value in changes.items():
            for listener in list(self._listeners):
                try:
                    listener(attribute, value)
                except Exception:
                    _LOGGER.exception("State listener failed for %s (%s=%s)", self._id, attribute, value)
