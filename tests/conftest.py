import asyncio
from typing import Any, Awaitable, Callable, List, Optional

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from shelly_rgbw2.channel import ShellyChannelController
from shelly_rgbw2.models import ChannelState, ShellyChannel, ShellyDevice, WhiteStatus

# Short windows keep the timing tests fast
TEST_DEBOUNCE = 0.05
TEST_COOLDOWN = 0.3


class FakeWhiteClient:
    """In-memory stand-in for ShellyWhiteClient that records every call."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.status = WhiteStatus(is_on=False, brightness=0)
        # Exceptions raised by the next calls, in order
        self.errors: List[Exception] = []
        self.delay = 0.0
        self.active = 0
        self.max_active = 0

    async def _call(self, record: tuple, result: WhiteStatus) -> WhiteStatus:
        self.calls.append(record)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.errors:
                raise self.errors.pop(0)
            return result
        finally:
            self.active -= 1

    async def async_get_status(self, channel):
        return await self._call(("get_status", channel), self.status)

    async def async_set_on(self, channel, on, transition_ms=None):
        result = WhiteStatus(is_on=on, brightness=100 if on else 0)
        return await self._call(("set_on", channel, on, transition_ms), result)

    async def async_set_on_with_brightness(self, channel, brightness, transition_ms=None):
        result = WhiteStatus(is_on=True, brightness=brightness)
        return await self._call(("set_on_with_brightness", channel, brightness, transition_ms), result)

    async def async_set_brightness(self, channel, brightness, transition_ms=None):
        result = WhiteStatus(is_on=brightness > 0, brightness=brightness)
        return await self._call(("set_brightness", channel, brightness, transition_ms), result)


@pytest.fixture
def fake_client():
    return FakeWhiteClient()


@pytest.fixture
def make_controller(fake_client):
    """Factory building a controller for channel 0 of a test device."""

    def _make(state: Optional[ChannelState] = None, **device_kwargs) -> ShellyChannelController:
        device = ShellyDevice(host="http://shelly.test", id="dev1", **device_kwargs)
        return ShellyChannelController(
            fake_client,
            device,
            ShellyChannel(0),
            state,
            debounce=TEST_DEBOUNCE,
            refresh_cooldown=TEST_COOLDOWN,
        )

    return _make


Behaviour = Callable[[web.Request], Awaitable[web.StreamResponse]]


class FakeShellyDevice:
    """A real HTTP server answering /white/{channel} like an RGBW2."""

    def __init__(self):
        self.requests: List[tuple] = []
        self.body: Any = {"ison": True, "brightness": 42, "power": 5}
        # One-shot handlers used before falling back to ``body``
        self.behaviours: List[Behaviour] = []
        app = web.Application()
        app.router.add_get("/white/{channel}", self._handle)
        self._server = TestServer(app)

    @property
    def url(self) -> str:
        return f"http://{self._server.host}:{self._server.port}"

    async def start(self):
        await self._server.start_server()

    async def close(self):
        await self._server.close()

    async def _handle(self, request: web.Request) -> web.StreamResponse:
        self.requests.append((request.method, request.path_qs, request.headers.get("Authorization")))
        if self.behaviours:
            return await self.behaviours.pop(0)(request)
        return web.json_response(self.body)


@pytest.fixture
async def shelly_device():
    device = FakeShellyDevice()
    await device.start()
    yield device
    await device.close()


@pytest.fixture
async def session():
    async with aiohttp.ClientSession() as client_session:
        yield client_session
