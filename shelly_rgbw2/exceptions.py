"""Errors raised by the Shelly RGBW2 engine."""
from __future__ import annotations


class ShellyError(Exception):
    """Base class for all engine errors."""


class ShellyValidationError(ShellyError, ValueError):
    """Raised for a channel outside 0-3 or an unknown channel id."""


class ShellyTransportError(ShellyError):
    """Raised when the device cannot be reached or answers with a non-success status."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        text = f"{message} (status={status})" if status is not None else message
        super().__init__(text)


class ShellyParseError(ShellyError):
    """Raised when the device answers with a body that is not a JSON object."""


class ShellyWriteError(ShellyError):
    """Raised to callers of a queued write that failed."""
