"""Shelly RGBW2 white-channel synchronization engine."""
from .api import ShellyWhiteClient, parse_white_status
from .channel import ShellyChannelController, reconcile_status
from .config import load_config
from .exceptions import (
    ShellyError,
    ShellyParseError,
    ShellyTransportError,
    ShellyValidationError,
    ShellyWriteError,
)
from .hub import ShellyHub
from .models import ChannelState, ShellyChannel, ShellyConfig, ShellyDevice, WhiteStatus, channel_id
from .poller import ShellyDevicePoller, next_poll_delay
from .storage import ShellyStateStorage

__version__ = "0.1.0"

__all__ = [
    "ChannelState",
    "ShellyChannel",
    "ShellyChannelController",
    "ShellyConfig",
    "ShellyDevice",
    "ShellyDevicePoller",
    "ShellyError",
    "ShellyHub",
    "ShellyParseError",
    "ShellyStateStorage",
    "ShellyTransportError",
    "ShellyValidationError",
    "ShellyWhiteClient",
    "ShellyWriteError",
    "WhiteStatus",
    "channel_id",
    "load_config",
    "next_poll_delay",
    "parse_white_status",
    "reconcile_status",
]
