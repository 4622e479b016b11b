"""Simple persistent storage for cached channel state snapshots."""
from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Dict

from .models import ChannelState

_LOGGER = logging.getLogger(__name__)

STATE_SCHEMA_VERSION = 1


class ShellyStateStorage:
    def __init__(self, path: str) -> None:
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    async def async_read(self) -> Dict[str, ChannelState]:
        def _read() -> Dict[str, ChannelState]:
            try:
                with open(self._path, "r", encoding="utf-8") as f_handle:
                    raw = json.load(f_handle)
            except FileNotFoundError:
                return {}
            except (OSError, ValueError) as ex:
                _LOGGER.warning("Ignoring unreadable state file %s: %s", self._path, ex)
                return {}

            if not isinstance(raw, dict) or raw.get("__schema_version") != STATE_SCHEMA_VERSION:
                return {}

            out: Dict[str, ChannelState] = {}
            payload = raw.get("channels")
            if isinstance(payload, dict):
                for key, value in payload.items():
                    if isinstance(value, dict):
                        out[key] = ChannelState.from_dict(value)
            return out

        return await asyncio.get_running_loop().run_in_executor(None, _read)

    async def async_write(self, states: Dict[str, ChannelState]) -> None:
        def _write() -> None:
            payload = {
                "__schema_version": STATE_SCHEMA_VERSION,
                "channels": {key: value.as_dict() for key, value in states.items()},
            }
            try:
                directory = os.path.dirname(self._path)
                if directory:
                    os.makedirs(directory, exist_ok=True)
                with open(self._path, "w", encoding="utf-8") as f_handle:
                    json.dump(payload, f_handle, ensure_ascii=False)
            except OSError as ex:
                # best-effort persistence
                _LOGGER.warning("Could not write state file %s: %s", self._path, ex)

        await asyncio.get_running_loop().run_in_executor(None, _write)
