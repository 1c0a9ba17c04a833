"""Line console for Puck.js and other Nordic UART devices.

Each line typed is sent to the device and the output it produces is printed
once the device goes quiet.

Usage:
    uv run python examples/puck_console.py
    uv run python examples/puck_console.py --address AA:BB:CC:DD:EE:FF --eval
    uv run python examples/puck_console.py --scan
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from puckjs import (
    NORDIC_SERVICE_UUID,
    InvalidResponseError,
    PuckError,
    PuckSession,
    discover_devices,
)


async def scan(duration: float) -> None:
    """Print every device advertising the UART service."""
    print(f"Scanning for {NORDIC_SERVICE_UUID} ({duration:.1f}s)...")
    devices = await discover_devices(timeout=duration)
    for device in devices:
        print(f"  {device.address}  {device.name or 'Unknown'}")
    print(f"Found {len(devices)} device(s)")


async def console(address: str | None, evaluate: bool) -> None:
    """Read lines from stdin and send them to the device."""
    loop = asyncio.get_running_loop()

    async with PuckSession(address) as session:
        print("Mode: evaluate expressions" if evaluate else "Mode: raw REPL lines")
        print("Empty line or Ctrl+D to quit")
        while True:
            try:
                line = await loop.run_in_executor(None, input, "> ")
            except EOFError:
                break
            if not line:
                break

            try:
                if evaluate:
                    print(repr(await session.evaluate(line)))
                    continue

                response = await session.query(line + "\n")
            except InvalidResponseError as err:
                print(f"parse_error={err}")
                continue
            except PuckError as err:
                print(f"error={err}")
                continue

            if response is None:
                print("Could not connect")
            else:
                print(response, end="" if response.endswith("\n") else "\n")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Send lines to a Nordic UART BLE device and print its output."
    )
    parser.add_argument(
        "--address",
        default=None,
        help="Device address (default: first device advertising the UART service)",
    )
    parser.add_argument(
        "--eval",
        action="store_true",
        help="Evaluate each line as an expression and print the decoded result.",
    )
    parser.add_argument(
        "--scan",
        type=float,
        nargs="?",
        const=5.0,
        default=None,
        help="Only list UART devices, scanning for the given seconds. Default: 5",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log BLE traffic.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    try:
        if args.scan is not None:
            asyncio.run(scan(args.scan))
        else:
            asyncio.run(console(args.address, args.eval))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
