"""In-memory stand-ins for the bleak transport."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Callable

import pytest
from bleak.exc import BleakError

from puckjs.protocol import NORDIC_RX_UUID, NORDIC_SERVICE_UUID, NORDIC_TX_UUID


class _FakeService:
    def __init__(self, characteristics: dict[str, SimpleNamespace]):
        self._characteristics = characteristics

    def get_characteristic(self, uuid: str) -> SimpleNamespace | None:
        return self._characteristics.get(uuid)


class _FakeServices:
    def __init__(self, services: dict[str, _FakeService]):
        self._services = services

    def get_service(self, uuid: str) -> _FakeService | None:
        return self._services.get(uuid)


class FakeBleakClient:
    """Connected GATT client exposing the UART service."""

    def __init__(
        self,
        *,
        with_service: bool = True,
        with_rx: bool = True,
        with_tx: bool = True,
        drop_on_notify: bool = False,
    ):
        characteristics = {}
        if with_rx:
            characteristics[NORDIC_RX_UUID] = SimpleNamespace(uuid=NORDIC_RX_UUID)
        if with_tx:
            characteristics[NORDIC_TX_UUID] = SimpleNamespace(uuid=NORDIC_TX_UUID)
        services = {NORDIC_SERVICE_UUID: _FakeService(characteristics)} if with_service else {}
        self.services = _FakeServices(services)

        self.is_connected = True
        self.drop_on_notify = drop_on_notify
        self.disconnected_callback: Callable[[FakeBleakClient], None] | None = None
        self.notify_callback: Callable[[object, bytearray], None] | None = None
        self.written: list[bytes] = []
        self.write_calls = 0
        self.fail_write_at: int | None = None
        self.on_write: Callable[[FakeBleakClient, bytes], None] | None = None
        self.disconnect_calls = 0

    async def start_notify(self, characteristic, callback) -> None:
        assert characteristic.uuid == NORDIC_RX_UUID
        self.notify_callback = callback
        if self.drop_on_notify:
            self.drop()

    async def write_gatt_char(self, characteristic, data: bytes, response: bool = False) -> None:
        assert characteristic.uuid == NORDIC_TX_UUID
        index = self.write_calls
        self.write_calls += 1
        await asyncio.sleep(0)
        if index == self.fail_write_at:
            raise BleakError("write rejected")
        self.written.append(bytes(data))
        if self.on_write is not None:
            self.on_write(self, bytes(data))

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        if self.is_connected:
            self.is_connected = False
            if self.disconnected_callback is not None:
                self.disconnected_callback(self)

    def notify(self, data: bytes) -> None:
        """Deliver an RX notification."""
        assert self.notify_callback is not None
        self.notify_callback(SimpleNamespace(uuid=NORDIC_RX_UUID), bytearray(data))

    def drop(self) -> None:
        """Simulate the device going away."""
        self.is_connected = False
        if self.disconnected_callback is not None:
            self.disconnected_callback(self)


class FakeBLE:
    """Replaces device lookup and establish_connection."""

    def __init__(self):
        self.device: SimpleNamespace | None = SimpleNamespace(
            name="Puck.js 1a2b", address="AA:BB:CC:DD:EE:FF"
        )
        self.client_options: dict[str, bool] = {}
        self.clients: list[FakeBleakClient] = []
        self.connect_error: Exception | None = None
        self.connect_kwargs: dict = {}
        self.on_write: Callable[[FakeBleakClient, bytes], None] | None = None
        self.lookups: list[str | None] = []
        # Set both to pause establish_connection until gate is set
        self.entered: asyncio.Event | None = None
        self.gate: asyncio.Event | None = None

    @property
    def client(self) -> FakeBleakClient:
        return self.clients[-1]

    async def find_uart_device(self, address: str | None = None, timeout: float = 10.0):
        self.lookups.append(address)
        return self.device

    async def establish_connection(self, client_class, device, name, disconnected_callback=None, **kwargs):
        self.connect_kwargs = {"client_class": client_class, "device": device, "name": name, **kwargs}
        if self.entered is not None and self.gate is not None:
            self.entered.set()
            await self.gate.wait()
        if self.connect_error is not None:
            raise self.connect_error

        client = FakeBleakClient(**self.client_options)
        client.disconnected_callback = disconnected_callback
        client.on_write = self.on_write
        self.clients.append(client)
        return client


@pytest.fixture
def fake_ble(monkeypatch: pytest.MonkeyPatch) -> FakeBLE:
    """Route UARTConnection negotiation to an in-memory device."""
    ble = FakeBLE()
    monkeypatch.setattr("puckjs.transport.connection.find_uart_device", ble.find_uart_device)
    monkeypatch.setattr("puckjs.transport.connection.establish_connection", ble.establish_connection)
    return ble
