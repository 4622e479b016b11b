"""Tests for configuration validation and normalisation."""

import logging

import pytest
import voluptuous as vol

from shelly_rgbw2.config import load_config, load_device
from shelly_rgbw2.models import ShellyChannel, ShellyDevice


def test_defaults_applied():
    config = load_config({"devices": [{"id": "dev", "host": "10.0.0.2"}]})

    assert config.devices == (ShellyDevice(host="10.0.0.2", id="dev"),)
    device = config.devices[0]
    assert device.channels == (ShellyChannel(0),)
    assert device.request_timeout_ms == 2500
    assert device.retries == 1
    assert device.transition_on_ms is None
    assert config.debounce == pytest.approx(0.2)
    assert config.refresh_cooldown == pytest.approx(0.5)


def test_full_device_entry():
    device = load_device(
        {
            "id": "kitchen",
            "host": " http://10.0.0.3 ",
            "channels": [{"channel": 2, "name": "Counter"}, {"channel": "3"}],
            "username": "admin",
            "password": "secret",
            "poll_interval": "10",
            "request_timeout_ms": 1000,
            "retries": 2,
            "transition_on_ms": "300",
            "transition_off_ms": 500,
            "unknown_option": True,
        }
    )

    assert device.host == "http://10.0.0.3"
    assert device.channels == (ShellyChannel(2, "Counter"), ShellyChannel(3))
    assert device.poll_interval == 10.0
    assert device.transition_on_ms == 300.0
    assert device.retries == 2
    assert device.channel_name(device.channels[1]) == "kitchen CH3"


def test_invalid_and_duplicate_channels_dropped(caplog):
    with caplog.at_level(logging.WARNING):
        device = load_device(
            {
                "id": "dev",
                "host": "h",
                "channels": [{"channel": 5}, {"channel": 1}, {"channel": 1}, {"channel": "x"}, {"channel": -1}],
            }
        )

    assert device.channels == (ShellyChannel(1),)
    assert len(caplog.records) == 4


def test_device_without_valid_channels_skipped():
    assert load_device({"id": "dev", "host": "h", "channels": [{"channel": 9}]}) is None


def test_device_without_host_skipped(caplog):
    with caplog.at_level(logging.WARNING):
        config = load_config({"devices": [{"id": "nohost"}, {"id": "ok", "host": "h"}]})

    assert [d.key for d in config.devices] == ["ok"]
    assert "nohost" in caplog.text


def test_missing_id_falls_back_to_host(caplog):
    with caplog.at_level(logging.WARNING):
        device = load_device({"host": "10.0.0.9"})

    assert device.key == "10.0.0.9"
    assert "missing id" in caplog.text


def test_schema_errors_skip_the_device(caplog):
    with caplog.at_level(logging.WARNING):
        config = load_config({"devices": [{"id": "bad", "host": "h", "retries": -1}]})

    assert config.devices == ()
    assert "bad" in caplog.text


def test_duplicate_device_keys_skipped():
    config = load_config({"devices": [{"id": "dev", "host": "a"}, {"id": "dev", "host": "b"}]})

    assert [d.host for d in config.devices] == ["a"]


def test_tunables_in_milliseconds():
    config = load_config({"debounce_ms": 150, "refresh_cooldown_ms": 1000, "devices": []})

    assert config.debounce == pytest.approx(0.15)
    assert config.refresh_cooldown == pytest.approx(1.0)


def test_negative_tunable_rejected():
    with pytest.raises(vol.Invalid):
        load_config({"debounce_ms": -1})
