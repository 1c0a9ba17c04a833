"""Scanning for devices that expose the Nordic UART service."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from bleak import BleakScanner

from .protocol import NORDIC_SERVICE_UUID

if TYPE_CHECKING:
    from bleak.backends.device import BLEDevice
    from bleak.backends.scanner import AdvertisementData

_LOGGER = logging.getLogger(__name__)


def advertises_uart(advertisement_data: AdvertisementData) -> bool:
    """Check whether an advertisement lists the Nordic UART service."""
    return any(
        uuid.lower() == NORDIC_SERVICE_UUID
        for uuid in advertisement_data.service_uuids
    )


async def find_uart_device(
        address: str | None = None,
        timeout: float = 10.0,
) -> BLEDevice | None:
    """Find a single device to connect to.

    Args:
        address: Device MAC address (or platform UUID on macOS). When omitted,
            the first device advertising the UART service is returned.
        timeout: Scan timeout in seconds (default: 10)

    Returns:
        The device, or None if nothing matched before the timeout
    """
    if address:
        _LOGGER.debug("Scanning for %s", address)
        return await BleakScanner.find_device_by_address(address, timeout=timeout)

    _LOGGER.debug("Scanning for any device advertising %s", NORDIC_SERVICE_UUID)
    return await BleakScanner.find_device_by_filter(
        lambda _device, advertisement_data: advertises_uart(advertisement_data),
        timeout=timeout,
    )


async def discover_devices(timeout: float = 5.0) -> list[BLEDevice]:
    """Scan and return every device advertising the UART service.

    Args:
        timeout: Scan duration in seconds (default: 5)

    Returns:
        Matching devices, in the order the scanner reported them
    """
    found = await BleakScanner.discover(timeout=timeout, return_adv=True)

    devices = [
        device
        for device, advertisement_data in found.values()
        if advertises_uart(advertisement_data)
    ]
    _LOGGER.debug("Found %d UART device(s) out of %d", len(devices), len(found))
    return devices
