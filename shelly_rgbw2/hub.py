"""Engine entry point: owns clients, channel controllers, pollers and the state registry."""
from __future__ import annotations

import aiohttp
import asyncio
import certifi
import logging
import ssl
from aiohttp import ClientSession
from typing import Any, Callable, Dict, List, Mapping, Optional

from .api import ShellyWhiteClient
from .channel import ShellyChannelController
from .exceptions import ShellyValidationError
from .models import ChannelState, ShellyConfig, WhiteStatus, channel_id
from .poller import ShellyDevicePoller

_LOGGER = logging.getLogger(__name__)

HubListener = Callable[[str, str, Any], None]


class ShellyHub:
    """Two-phase engine: ``configure()`` restores cached state, ``async_start()`` builds and polls."""

    def __init__(self, config: ShellyConfig, session: ClientSession | None = None):
        self._config = config
        self._session = session
        self._owns_session = session is None
        self._ssl_context: ssl.SSLContext | None = None
        # Registry of cached state per channel id; controllers mutate these objects
        self._states: Dict[str, ChannelState] = {}
        self._controllers: Dict[str, ShellyChannelController] = {}
        self._pollers: Dict[str, ShellyDevicePoller] = {}
        self._listeners: List[HubListener] = []
        self._started = False

    @classmethod
    async def async_create(cls, config: ShellyConfig, session: ClientSession | None = None) -> "ShellyHub":
        """Async-safe constructor."""
        self = cls(config, session)
        if self._session is None:
            loop = asyncio.get_running_loop()
            # Loading the CA bundle blocks; keep it off the event loop
            self._ssl_context = await loop.run_in_executor(
                None, lambda: ssl.create_default_context(cafile=certifi.where())
            )
            await self._init_session()
        return self

    async def _init_session(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        connector = aiohttp.TCPConnector(ssl=self._ssl_context)
        self._session = ClientSession(connector=connector)
        self._owns_session = True

    @property
    def config(self) -> ShellyConfig:
        return self._config

    @property
    def channel_ids(self) -> List[str]:
        return list(self._controllers)

    def configure(self, snapshots: Optional[Mapping[str, Any]] = None) -> None:
        """Load cached channel state snapshots (ChannelState or dicts) before start."""
        if self._started:
            _LOGGER.debug("Hub already started; cached state ignored")
            return
        for key, snap in (snapshots or {}).items():
            state = snap if isinstance(snap, ChannelState) else ChannelState.from_dict(dict(snap))
            if key in self._states:
                _LOGGER.debug("Skipping duplicate cached state %s", key)
                continue
            _LOGGER.info("Loading channel state from cache: %s", key)
            self._states[key] = state

    async def async_start(self) -> None:
        """Create controllers for configured channels, drop stale state, start polling."""
        if self._started:
            _LOGGER.debug("Start already executed, skipping.")
            return
        if self._session is None:
            await self._init_session()
        self._started = True

        configured = set()
        for device in self._config.devices:
            client = ShellyWhiteClient(device, self._session)
            controllers: List[ShellyChannelController] = []
            for channel in device.channels:
                key = channel_id(device, channel)
                configured.add(key)
                cached = key in self._states
                state = self._states.setdefault(key, ChannelState())
                _LOGGER.info(
                    "%s channel %s (%s)", "Restoring" if cached else "Registering", device.channel_name(channel), key
                )
                controller = ShellyChannelController(
                    client,
                    device,
                    channel,
                    state,
                    debounce=self._config.debounce,
                    refresh_cooldown=self._config.refresh_cooldown,
                )
                controller.add_listener(self._make_forwarder(key))
                self._controllers[key] = controller
                controllers.append(controller)

            poller = ShellyDevicePoller(device, controllers)
            self._pollers[device.key] = poller
            poller.start()

        for key in list(self._states):
            if key not in configured:
                _LOGGER.info("Removing stale channel state %s", key)
                del self._states[key]

    async def async_stop(self) -> None:
        for poller in self._pollers.values():
            await poller.async_stop()
        for controller in self._controllers.values():
            await controller.async_close()

    async def async_close(self) -> None:
        """Stop polling, finish queued writes and close an owned session."""
        await self.async_stop()
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _make_forwarder(self, key: str) -> Callable[[str, Any], None]:
        def _forward(attribute: str, value: Any) -> None:
            for listener in list(self._listeners):
                listener(key, attribute, value)

        return _forward

    def add_listener(self, listener: HubListener) -> Callable[[], None]:
        """Register ``listener(channel_id, attribute, value)``; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def controller(self, key: str) -> ShellyChannelController:
        try:
            return self._controllers[key]
        except KeyError:
            raise ShellyValidationError(f"Unknown channel {key}") from None

    def poller(self, device_key: str) -> ShellyDevicePoller:
        return self._pollers[device_key]

    def get_state(self, key: str) -> ChannelState:
        return self.controller(key).state

    def snapshot(self) -> Dict[str, ChannelState]:
        """Copies of every cached state, for hosts that persist them."""
        return {key: ChannelState(**vars(state)) for key, state in self._states.items()}

    async def async_set_on(self, key: str, on: bool) -> WhiteStatus:
        return await self.controller(key).async_set_on(on)

    async def async_set_brightness(self, key: str, brightness: Any) -> WhiteStatus:
        return await self.controller(key).async_set_brightness(brightness)

    async def async_refresh(self, key: str) -> bool:
        return await self.controller(key).async_refresh()
