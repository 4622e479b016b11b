"""Minimal Shelly RGBW2 white-channel HTTP client."""
import aiohttp
import asyncio
import json
import logging
import math
from aiohttp import ClientSession
from typing import Any, Dict

from .const import (
    BRIGHTNESS_MAX,
    BRIGHTNESS_MIN,
    CHANNEL_MAX,
    CHANNEL_MIN,
    RETRY_BACKOFF_STEP,
)
from .exceptions import ShellyParseError, ShellyTransportError, ShellyValidationError
from .models import ShellyDevice, WhiteStatus

_LOGGER = logging.getLogger(__name__)

_WHITE_PATH = "/white/{channel}"


def _round_half_up(number: float) -> int:
    return int(math.floor(number + 0.5))


def clamp_brightness(value: Any) -> int:
    """Clamp to 0-100 and round halves up; anything non-numeric counts as 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number):
        return 0
    number = max(float(BRIGHTNESS_MIN), min(float(BRIGHTNESS_MAX), number))
    return _round_half_up(number)


def clamp_transition(value: Any) -> int:
    number = float(value)
    if not math.isfinite(number):
        return 0
    return max(0, _round_half_up(number))


def parse_white_status(data: Any) -> WhiteStatus:
    """Parse a /white/{n} response body into a WhiteStatus."""
    if not isinstance(data, dict):
        raise ShellyParseError("Invalid Shelly response: expected object")
    return WhiteStatus(
        is_on=bool(data.get("ison")),
        brightness=clamp_brightness(data.get("brightness")),
    )


def _validate_channel(channel: Any) -> int:
    valid = (
        not isinstance(channel, bool)
        and isinstance(channel, (int, float))
        and float(channel).is_integer()
        and CHANNEL_MIN <= channel <= CHANNEL_MAX
    )
    if not valid:
        raise ShellyValidationError(
            f"Channel must be an integer between {CHANNEL_MIN} and {CHANNEL_MAX}. Received: {channel!r}"
        )
    return int(channel)


class ShellyWhiteClient:
    """HTTP gateway to one device's /white/{channel} endpoint."""

    def __init__(self, device: ShellyDevice, session: ClientSession):
        host = device.host.rstrip("/")
        self._base_url = host if "://" in host else f"http://{host}"
        self._session = session
        self._timeout_ms = device.request_timeout_ms
        self._timeout = aiohttp.ClientTimeout(total=max(1, device.request_timeout_ms) / 1000)
        self._retries = max(0, device.retries)
        self._auth: aiohttp.BasicAuth | None = None
        if device.username and device.password:
            self._auth = aiohttp.BasicAuth(device.username, device.password)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def async_get_status(self, channel: int) -> WhiteStatus:
        return await self._request(channel, {})

    async def async_set_on(self, channel: int, on: bool, transition_ms: float | None = None) -> WhiteStatus:
        params = {"turn": "on" if on else "off"}
        return await self._request(channel, self._with_transition(params, transition_ms))

    async def async_set_on_with_brightness(
        self, channel: int, brightness: Any, transition_ms: float | None = None
    ) -> WhiteStatus:
        params = {"turn": "on", "brightness": str(clamp_brightness(brightness))}
        return await self._request(channel, self._with_transition(params, transition_ms))

    async def async_set_brightness(
        self, channel: int, brightness: Any, transition_ms: float | None = None
    ) -> WhiteStatus:
        params = {"brightness": str(clamp_brightness(brightness))}
        return await self._request(channel, self._with_transition(params, transition_ms))

    @staticmethod
    def _with_transition(params: Dict[str, str], transition_ms: float | None) -> Dict[str, str]:
        if transition_ms is not None:
            params["transition"] = str(clamp_transition(transition_ms))
        return params

    async def _request(self, channel: Any, params: Dict[str, str]) -> WhiteStatus:
        url = self._base_url + _WHITE_PATH.format(channel=_validate_channel(channel))
        attempt = 0
        while True:
            try:
                data = await self._fetch(url, params)
            except ShellyTransportError as ex:
                if attempt >= self._retries:
                    raise
                attempt += 1
                _LOGGER.debug("Request %s failed (%s); retry %s/%s", url, ex, attempt, self._retries)
                await asyncio.sleep(RETRY_BACKOFF_STEP * attempt)
                continue
            return parse_white_status(data)

    async def _fetch(self, url: str, params: Dict[str, str]) -> Any:
        _LOGGER.debug("Sending control → %s %s", url, params)
        try:
            async with self._session.get(url, params=params, auth=self._auth, timeout=self._timeout) as resp:
                if not 200 <= resp.status < 300:
                    raise ShellyTransportError(f"HTTP {resp.status} {resp.reason} from {url}", resp.status)
                body = await resp.read()
        except asyncio.TimeoutError as ex:
            raise ShellyTransportError(f"Timeout after {self._timeout_ms} ms from {url}") from ex
        except aiohttp.ClientError as ex:
            raise ShellyTransportError(f"Request to {url} failed: {ex}") from ex

        try:
            data = json.loads(body)
        except ValueError as ex:
            raise ShellyParseError(f"Invalid Shelly response from {url}: body is not JSON") from ex
        _LOGGER.debug("Control success ← %s %s", url, data)
        return data
