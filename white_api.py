#!/usr/bin/env python3

"""
Shelly RGBW2 white-channel API tester.

Reads and controls one white channel of a Shelly RGBW2 through the same
engine (debounce, serial queue, poller) that a host integration uses.

Usage examples:
  # Show current status of channel 0
  python white_api.py --host 192.168.1.50 --status

  # Turn channel 2 on (restores the last brightness)
  python white_api.py --host 192.168.1.50 --channel 2 --on

  # Set brightness (0-100) with a 500 ms fade
  python white_api.py --host 192.168.1.50 --brightness 60 --transition 500

  # Watch poll notifications for 30 seconds, keeping state between runs
  python white_api.py --host 192.168.1.50 --watch 30 --state-file ./shelly_state.json

Notes:
 - Pass --username/--password when the device has restricted login enabled.
 - Prints JSON results and basic success/failure output for quick validation.
"""

import argparse
import asyncio
import json
import logging
import sys

from shelly_rgbw2 import ShellyError, ShellyHub, ShellyStateStorage, load_config


def _build_config(args: argparse.Namespace) -> dict:
    transitions = {}
    if args.transition is not None:
        transitions = {"transition_on_ms": args.transition, "transition_off_ms": args.transition}
    return {
        "devices": [
            {
                "id": args.id or args.host,
                "host": args.host,
                "channels": [{"channel": args.channel}],
                "username": args.username,
                "password": args.password,
                "request_timeout_ms": args.timeout,
                "poll_interval": args.interval,
                **transitions,
            }
        ]
    }


async def main_async() -> int:
    ap = argparse.ArgumentParser(description="Shelly RGBW2 white-channel tester")
    ap.add_argument("--host", required=True)
    ap.add_argument("--id", help="Device id (defaults to host)")
    ap.add_argument("--channel", type=int, default=0, help="White channel 0-3")
    ap.add_argument("--username")
    ap.add_argument("--password")
    ap.add_argument("--timeout", type=int, default=2500, help="Request timeout in ms")
    ap.add_argument("--interval", type=float, default=5, help="Poll interval in seconds (--watch)")
    ap.add_argument("--status", action="store_true")
    ap.add_argument("--on", action="store_true")
    ap.add_argument("--off", action="store_true")
    ap.add_argument("--brightness", type=float, help="Brightness 0-100")
    ap.add_argument("--transition", type=float, help="Fade time in ms")
    ap.add_argument("--watch", type=float, help="Poll and print changes for N seconds")
    ap.add_argument("--state-file", help="JSON file to restore/save cached channel state")
    ap.add_argument("--debug", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING)

    config = load_config(_build_config(args))
    if not config.devices:
        print("Device configuration rejected; see warnings above.", file=sys.stderr)
        return 2

    storage = ShellyStateStorage(args.state_file) if args.state_file else None
    hub = await ShellyHub.async_create(config)
    if storage:
        hub.configure(await storage.async_read())

    hub.add_listener(
        lambda key, attribute, value: print(json.dumps({"channel": key, attribute: value}))
    )

    exit_code = 0
    try:
        await hub.async_start()
        key = hub.channel_ids[0]
        if args.on or args.off:
            status = await hub.async_set_on(key, bool(args.on))
            print(f"TURN {'on' if args.on else 'off'} → on={status.is_on} brightness={status.brightness}")
        if args.brightness is not None:
            status = await hub.async_set_brightness(key, args.brightness)
            print(f"BRIGHTNESS {args.brightness} → on={status.is_on} brightness={status.brightness}")
        if args.watch:
            await asyncio.sleep(args.watch)
        if args.status:
            await hub.poller(config.devices[0].key).async_poll_once()
            print(json.dumps(hub.get_state(key).as_dict(), indent=2))
    except ShellyError as ex:
        print(f"FAILED: {ex}", file=sys.stderr)
        exit_code = 1
    finally:
        await hub.async_close()
        if storage:
            await storage.async_write(hub.snapshot())
    return exit_code


def main():
    try:
        sys.exit(asyncio.run(main_async()))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
