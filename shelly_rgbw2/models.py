"""Models for the Shelly RGBW2 white-channel engine."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .const import (
    BRIGHTNESS_MAX,
    BRIGHTNESS_MIN,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT_MS,
    DEFAULT_RETRIES,
)


@dataclass(frozen=True)
class ShellyChannel:
    index: int
    name: Optional[str] = None


@dataclass(frozen=True)
class ShellyDevice:
    host: str
    id: Optional[str] = None
    channels: Tuple[ShellyChannel, ...] = (ShellyChannel(0),)
    username: Optional[str] = None
    password: Optional[str] = None
    request_timeout_ms: int = DEFAULT_REQUEST_TIMEOUT_MS
    retries: int = DEFAULT_RETRIES
    # Device-side fade times; omitted from requests when None
    transition_on_ms: Optional[float] = None
    transition_off_ms: Optional[float] = None
    # Seconds between polls (bounded by the poller)
    poll_interval: float = DEFAULT_POLL_INTERVAL

    @property
    def key(self) -> str:
        return self.id or self.host

    def channel_name(self, channel: ShellyChannel) -> str:
        return channel.name or f"{self.key} CH{channel.index}"


@dataclass(frozen=True)
class WhiteStatus:
    is_on: bool
    brightness: int


def _as_int(value: Any, default: int) -> int:
    try:
        return int(math.floor(float(value) + 0.5))
    except (TypeError, ValueError, OverflowError):
        return default


@dataclass
class ChannelState:
    is_on: bool = False
    brightness: int = 0
    # Brightness restored when turning on from off; never 0
    last_non_zero_brightness: int = BRIGHTNESS_MAX

    def as_dict(self) -> Dict[str, Any]:
        return {
            "is_on": self.is_on,
            "brightness": self.brightness,
            "last_non_zero_brightness": self.last_non_zero_brightness,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChannelState":
        """Restore a cached snapshot, repairing out-of-range values."""
        brightness = max(BRIGHTNESS_MIN, min(BRIGHTNESS_MAX, _as_int(data.get("brightness"), 0)))
        is_on = bool(data.get("is_on")) and brightness > 0
        last = _as_int(data.get("last_non_zero_brightness"), BRIGHTNESS_MAX)
        last = max(1, min(BRIGHTNESS_MAX, last))
        return cls(is_on=is_on, brightness=brightness if is_on else 0, last_non_zero_brightness=last)


@dataclass
class PollCycleState:
    consecutive_failures: int = 0
    # Seconds until the next cycle
    next_delay: float = float(DEFAULT_POLL_INTERVAL)


@dataclass
class ShellyConfig:
    devices: Tuple[ShellyDevice, ...] = field(default_factory=tuple)
    debounce: float = 0.2
    refresh_cooldown: float = 0.5


def channel_id(device: ShellyDevice, channel: ShellyChannel) -> str:
    """Registry key for one (device, channel) pair."""
    return f"{device.key}:ch{channel.index}"
