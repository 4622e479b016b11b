"""Tests for the per-device poll scheduler."""

import asyncio
import logging

import pytest

from shelly_rgbw2.exceptions import ShellyTransportError
from shelly_rgbw2.models import ShellyDevice
from shelly_rgbw2.poller import ShellyDevicePoller, base_poll_interval, next_poll_delay


class FakeController:
    """Controller stand-in whose refresh outcomes are scripted."""

    def __init__(self, index=0, outcomes=None):
        self.index = index
        self.outcomes = list(outcomes or [])
        self.refreshes = 0

    async def async_refresh(self):
        self.refreshes += 1
        outcome = self.outcomes.pop(0) if self.outcomes else True
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def offline():
    return ShellyTransportError("offline")


@pytest.mark.parametrize(
    "base,failures,expected",
    [(2.0, 0, 2.0), (2.0, 1, 4.0), (2.0, 2, 6.0), (2.0, 3, 8.0), (2.0, 10, 8.0), (10.0, 3, 30.0), (5.0, 0, 5.0)],
)
def test_next_poll_delay(base, failures, expected):
    assert next_poll_delay(base, failures) == expected


@pytest.mark.parametrize("interval,expected", [(1, 2.0), (2, 2.0), (5, 5.0), (120, 60.0)])
def test_base_poll_interval_is_bounded(interval, expected):
    assert base_poll_interval(ShellyDevice(host="h", poll_interval=interval)) == expected


def test_default_poll_interval():
    assert base_poll_interval(ShellyDevice(host="h")) == 5.0


async def test_backoff_grows_then_resets():
    controller = FakeController(outcomes=[True, offline(), offline(), True])
    poller = ShellyDevicePoller(ShellyDevice(host="h", poll_interval=2), [controller])

    delays = [await poller.async_poll_once() for _ in range(4)]

    assert delays == [2.0, 4.0, 6.0, 2.0]
    assert poller.cycle.consecutive_failures == 0


async def test_failures_carry_across_cycles_and_channels():
    controllers = [FakeController(0, [offline(), offline()]), FakeController(1, [offline(), offline()])]
    poller = ShellyDevicePoller(ShellyDevice(host="h", poll_interval=10), controllers)

    assert await poller.async_poll_once() == 30.0
    assert poller.cycle.consecutive_failures == 2
    await poller.async_poll_once()
    assert poller.cycle.consecutive_failures == 4


async def test_success_later_in_cycle_resets_count():
    controllers = [FakeController(0, [offline()]), FakeController(1, [True])]
    poller = ShellyDevicePoller(ShellyDevice(host="h", poll_interval=2), controllers)

    assert await poller.async_poll_once() == 2.0
    assert poller.cycle.consecutive_failures == 0


async def test_skipped_refresh_counts_as_success():
    controller = FakeController(outcomes=[offline(), False])
    poller = ShellyDevicePoller(ShellyDevice(host="h", poll_interval=2), [controller])

    await poller.async_poll_once()
    assert await poller.async_poll_once() == 2.0


async def test_failure_logging_is_throttled(caplog):
    controller = FakeController(outcomes=[offline() for _ in range(7)])
    poller = ShellyDevicePoller(ShellyDevice(host="h", id="dev"), [controller])

    with caplog.at_level(logging.WARNING, logger="shelly_rgbw2.poller"):
        for _ in range(7):
            await poller.async_poll_once()

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 3
    assert "dev" in warnings[0].getMessage()


async def test_start_polls_immediately_and_stops():
    controller = FakeController()
    poller = ShellyDevicePoller(ShellyDevice(host="h", poll_interval=60), [controller])

    poller.start()
    poller.start()
    await asyncio.sleep(0.01)

    assert controller.refreshes == 1
    assert poller.running
    await poller.async_stop()
    assert not poller.running


async def test_devices_poll_independently():
    broken = FakeController(outcomes=[offline()])
    healthy = FakeController()
    poller_a = ShellyDevicePoller(ShellyDevice(host="a", poll_interval=2), [broken])
    poller_b = ShellyDevicePoller(ShellyDevice(host="b", poll_interval=2), [healthy])

    poller_a.start()
    poller_b.start()
    await asyncio.sleep(0.01)
    await poller_a.async_stop()
    await poller_b.async_stop()

    assert broken.refreshes == healthy.refreshes == 1
    assert poller_a.cycle.next_delay == 4.0
    assert poller_b.cycle.next_delay == 2.0
