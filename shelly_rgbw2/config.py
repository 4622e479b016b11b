"""Configuration schema and normalisation for Shelly RGBW2 devices."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import voluptuous as vol

from .const import (
    CHANNEL_MAX,
    CHANNEL_MIN,
    CONF_CHANNEL,
    CONF_CHANNELS,
    CONF_DEBOUNCE_MS,
    CONF_DEVICES,
    CONF_HOST,
    CONF_ID,
    CONF_NAME,
    CONF_PASSWORD,
    CONF_POLL_INTERVAL,
    CONF_REFRESH_COOLDOWN_MS,
    CONF_REQUEST_TIMEOUT_MS,
    CONF_RETRIES,
    CONF_TRANSITION_OFF_MS,
    CONF_TRANSITION_ON_MS,
    CONF_USERNAME,
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REFRESH_COOLDOWN_MS,
    DEFAULT_REQUEST_TIMEOUT_MS,
    DEFAULT_RETRIES,
)
from .models import ShellyChannel, ShellyConfig, ShellyDevice

_LOGGER = logging.getLogger(__name__)

_non_negative_ms = vol.All(vol.Coerce(float), vol.Range(min=0))

CHANNEL_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_CHANNEL): vol.All(vol.Coerce(int), vol.Range(min=CHANNEL_MIN, max=CHANNEL_MAX)),
        vol.Optional(CONF_NAME): vol.Any(None, str),
    },
    extra=vol.REMOVE_EXTRA,
)

DEVICE_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_ID): vol.Any(None, vol.Coerce(str)),
        vol.Required(CONF_HOST): vol.All(str, vol.Strip, vol.Length(min=1)),
        # Channels are checked one by one so a bad entry only drops itself
        vol.Optional(CONF_CHANNELS, default=list): [dict],
        vol.Optional(CONF_USERNAME): vol.Any(None, str),
        vol.Optional(CONF_PASSWORD): vol.Any(None, str),
        vol.Optional(CONF_POLL_INTERVAL, default=DEFAULT_POLL_INTERVAL): vol.Coerce(float),
        vol.Optional(CONF_REQUEST_TIMEOUT_MS, default=DEFAULT_REQUEST_TIMEOUT_MS): vol.All(
            vol.Coerce(int), vol.Range(min=1)
        ),
        vol.Optional(CONF_RETRIES, default=DEFAULT_RETRIES): vol.All(vol.Coerce(int), vol.Range(min=0)),
        vol.Optional(CONF_TRANSITION_ON_MS): vol.Any(None, _non_negative_ms),
        vol.Optional(CONF_TRANSITION_OFF_MS): vol.Any(None, _non_negative_ms),
    },
    extra=vol.REMOVE_EXTRA,
)

CONFIG_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_DEVICES, default=list): [dict],
        vol.Optional(CONF_DEBOUNCE_MS, default=DEFAULT_DEBOUNCE_MS): _non_negative_ms,
        vol.Optional(CONF_REFRESH_COOLDOWN_MS, default=DEFAULT_REFRESH_COOLDOWN_MS): _non_negative_ms,
    },
    extra=vol.REMOVE_EXTRA,
)


def _describe(raw: Mapping[str, Any]) -> str:
    return str(raw.get(CONF_ID) or raw.get(CONF_HOST) or "<missing id>")


def normalise_channels(raw_channels: List[Dict[str, Any]], label: str) -> List[ShellyChannel]:
    """Validate channel entries, dropping invalid and duplicate ones with a warning."""
    if not raw_channels:
        raw_channels = [{CONF_CHANNEL: CHANNEL_MIN}]

    channels: List[ShellyChannel] = []
    seen = set()
    for raw in raw_channels:
        try:
            data = CHANNEL_SCHEMA(raw)
        except vol.Invalid:
            _LOGGER.warning(
                "Invalid channel %s for device %s. Valid range is %s-%s.",
                raw.get(CONF_CHANNEL),
                label,
                CHANNEL_MIN,
                CHANNEL_MAX,
            )
            continue
        index = data[CONF_CHANNEL]
        if index in seen:
            _LOGGER.warning("Duplicate channel %s for device %s ignored", index, label)
            continue
        seen.add(index)
        channels.append(ShellyChannel(index=index, name=data.get(CONF_NAME) or None))
    return channels


def load_device(raw: Mapping[str, Any]) -> Optional[ShellyDevice]:
    """Build a ShellyDevice from one config entry, or None when it must be skipped."""
    if not raw.get(CONF_HOST):
        _LOGGER.warning("Skipping device without host: %s", _describe(raw))
        return None
    try:
        data = DEVICE_SCHEMA(dict(raw))
    except vol.Invalid as ex:
        _LOGGER.warning("Skipping device %s: %s", _describe(raw), ex)
        return None

    if not data.get(CONF_ID):
        _LOGGER.warning(
            "Device at %s missing id; set a stable id for consistent channel ids.", data[CONF_HOST]
        )
    label = data.get(CONF_ID) or data[CONF_HOST]
    channels = normalise_channels(data[CONF_CHANNELS], label)
    if not channels:
        _LOGGER.warning(
            "Device %s has no valid channels (expected %s-%s).", label, CHANNEL_MIN, CHANNEL_MAX
        )
        return None

    return ShellyDevice(
        id=data.get(CONF_ID) or None,
        host=data[CONF_HOST],
        channels=tuple(channels),
        username=data.get(CONF_USERNAME) or None,
        password=data.get(CONF_PASSWORD) or None,
        request_timeout_ms=data[CONF_REQUEST_TIMEOUT_MS],
        retries=data[CONF_RETRIES],
        transition_on_ms=data.get(CONF_TRANSITION_ON_MS),
        transition_off_ms=data.get(CONF_TRANSITION_OFF_MS),
        poll_interval=data[CONF_POLL_INTERVAL],
    )


def load_config(raw: Mapping[str, Any]) -> ShellyConfig:
    """Validate a host-supplied configuration mapping."""
    data = CONFIG_SCHEMA(dict(raw or {}))

    devices: List[ShellyDevice] = []
    keys = set()
    for raw_device in data[CONF_DEVICES]:
        device = load_device(raw_device)
        if device is None:
            continue
        if device.key in keys:
            _LOGGER.warning("Duplicate device %s ignored", device.key)
            continue
        keys.add(device.key)
        devices.append(device)

    if not devices:
        _LOGGER.warning("No devices configured for Shelly RGBW2. Add a device to start exposing lights.")

    return ShellyConfig(
        devices=tuple(devices),
        debounce=data[CONF_DEBOUNCE_MS] / 1000,
        refresh_cooldown=data[CONF_REFRESH_COOLDOWN_MS] / 1000,
    )
