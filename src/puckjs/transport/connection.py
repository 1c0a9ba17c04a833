"""BLE connection management."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable

from bleak_retry_connector import BleakClientWithServiceCache, establish_connection

from ..discovery import find_uart_device
from ..exceptions import BLEConnectionError, BLETimeoutError
from ..models.enums import ConnectionEvent, ConnectionState
from ..protocol import (
    CHUNK_SIZE,
    NORDIC_RX_UUID,
    NORDIC_SERVICE_UUID,
    NORDIC_TX_UUID,
    decode_payload,
    encode_payload,
)
from .write_queue import WriteQueue

if TYPE_CHECKING:
    from bleak import BleakClient
    from bleak.backends.characteristic import BleakGATTCharacteristic
    from bleak.backends.device import BLEDevice

_LOGGER = logging.getLogger(__name__)


class UARTConnection:
    """One negotiated BLE link to a Nordic UART device.

    Features:
    - NEGOTIATING -> OPEN -> CLOSED state machine (CLOSED is terminal)
    - Automatic retry logic and service caching with bleak-retry-connector
    - Chunked writes, strictly ordered across calls
    - open/data/close events, one handler per event kind

    Usage:
        connection = UARTConnection("AA:BB:CC:DD:EE:FF")
        connection.on(ConnectionEvent.DATA, print)
        if await connection.connect():
            await connection.send("LED1.set()\\n")
            await connection.close()
    """

    def __init__(
            self,
            address: str | None = None,
            ble_device: BLEDevice | None = None,
            timeout: float = 10.0,
            max_attempts: int = 4,
            use_services_cache: bool = True,
            chunk_size: int = CHUNK_SIZE,
    ):
        """Initialize connection.

        Args:
            address: Device MAC address; when omitted (and no ble_device is
                given) the first device advertising the UART service is used
            ble_device: Optional BLEDevice from an earlier scan
            timeout: Scan and connection timeout in seconds (default: 10)
            max_attempts: Maximum connection attempts for bleak-retry-connector (default: 4)
            use_services_cache: Enable GATT service caching for faster reconnections (default: True)
            chunk_size: Maximum bytes per characteristic write (default: 16)
        """
        self._address = address
        self._ble_device = ble_device
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.use_services_cache = use_services_cache

        self._state = ConnectionState.NEGOTIATING
        self._negotiation_started = False
        self._client: BleakClient | None = None
        self._rx_characteristic: BleakGATTCharacteristic | None = None
        self._tx_characteristic: BleakGATTCharacteristic | None = None
        self._handlers: dict[ConnectionEvent, Callable[..., None]] = {}
        self._queue = WriteQueue(self._write_chunk, self._on_write_error, chunk_size)
        self._pending_sends: set[asyncio.Future[None]] = set()
        self._background_tasks: set[asyncio.Task[None]] = set()

    async def __aenter__(self) -> UARTConnection:
        """Connect to device (context manager entry)."""
        if not await self.connect():
            raise BLEConnectionError(f"Failed to connect to {self.address}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Disconnect from device (context manager exit)."""
        await self.close()

    @property
    def address(self) -> str:
        """Address of the device, or a placeholder before one was found."""
        if self._ble_device is not None:
            return self._ble_device.address
        return self._address or "<any UART device>"

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        """Check if negotiation finished and the link is still up."""
        return self._state is ConnectionState.OPEN

    def on(
            self,
            event: ConnectionEvent | str,
            handler: Callable[..., None] | None,
    ) -> None:
        """Register the handler for an event, replacing any previous one.

        OPEN and CLOSE handlers are called without arguments, DATA handlers
        with the received text. Passing None removes the handler.

        Args:
            event: Event kind (or its name: "open", "data", "close")
            handler: Callable to invoke, or None
        """
        event = ConnectionEvent(event)
        if handler is None:
            self._handlers.pop(event, None)
        else:
            self._handlers[event] = handler

    def _emit(self, event: ConnectionEvent, *args: str) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            return
        try:
            handler(*args)
        except Exception:
            _LOGGER.exception("Handler for %s event failed", event.value)

    async def connect(self) -> bool:
        """Negotiate the link.

        Resolves the device, connects, subscribes to RX notifications and
        resolves the TX characteristic. Emits OPEN on success. On failure,
        or if the connection is closed or lost while negotiating, the
        connection ends up CLOSED without emitting any event.

        Returns:
            True if the connection is open

        Raises:
            BLEConnectionError: If negotiation was already attempted
        """
        if self._negotiation_started:
            raise BLEConnectionError("Connection was already negotiated, create a new one")
        self._negotiation_started = True

        try:
            opened = await self._negotiate()
        except Exception as e:
            _LOGGER.warning("Failed to connect to %s: %s", self.address, e)
            opened = False

        if not opened:
            await self.close()
            return False

        self._emit(ConnectionEvent.OPEN)
        return True

    async def _negotiate(self) -> bool:
        device = self._ble_device
        if device is None:
            device = await find_uart_device(self._address, timeout=self.timeout)
            if device is None:
                _LOGGER.warning("No device found for %s", self.address)
                return False
            self._ble_device = device

        if self._state is ConnectionState.CLOSED:
            return False

        _LOGGER.debug("Device name: %s", device.name)
        _LOGGER.debug("Device address: %s", device.address)
        _LOGGER.debug(
            "Connecting to %s with bleak-retry-connector (max_attempts=%d)",
            device.address,
            self.max_attempts,
        )

        client = await establish_connection(
            client_class=BleakClientWithServiceCache,
            device=device,
            name=device.name or device.address,
            disconnected_callback=self._on_disconnected,
            max_attempts=self.max_attempts,
            use_services_cache=self.use_services_cache,
            timeout=self.timeout,
        )

        if self._state is ConnectionState.CLOSED:
            # Closed while the GATT connection was being made
            await self._disconnect_client(client)
            return False

        self._client = client
        _LOGGER.debug("Connected")

        service = client.services.get_service(NORDIC_SERVICE_UUID)
        if service is None:
            raise BLEConnectionError(f"Service {NORDIC_SERVICE_UUID} not found")
        _LOGGER.debug("Got service")

        rx_characteristic = service.get_characteristic(NORDIC_RX_UUID)
        if rx_characteristic is None:
            raise BLEConnectionError(f"RX characteristic {NORDIC_RX_UUID} not found")
        self._rx_characteristic = rx_characteristic

        await client.start_notify(rx_characteristic, self._on_notification)
        if self._state is ConnectionState.CLOSED:
            return False
        _LOGGER.debug("Notifications started")

        tx_characteristic = service.get_characteristic(NORDIC_TX_UUID)
        if tx_characteristic is None:
            raise BLEConnectionError(f"TX characteristic {NORDIC_TX_UUID} not found")
        self._tx_characteristic = tx_characteristic

        self._queue.clear()
        self._state = ConnectionState.OPEN
        _LOGGER.info("Connected to %s", self.address)
        return True

    def write(
            self,
            data: str | bytes,
            callback: Callable[[], None] | None = None,
    ) -> None:
        """Queue data for sending.

        Does nothing unless the connection is open. The callback is invoked
        once, after the last chunk of ``data`` was written. If the link fails
        first, the callback is never invoked.

        Args:
            data: Text (one byte per character) or bytes
            callback: Optional completion callback

        Raises:
            ValueError: If text contains characters above 0xFF
        """
        if self._state is not ConnectionState.OPEN or self._tx_characteristic is None:
            _LOGGER.debug("Write ignored, connection is %s", self._state.value)
            return

        self._queue.enqueue(encode_payload(data), callback)

    async def send(self, data: str | bytes, timeout: float | None = None) -> None:
        """Write data and wait until it has been flushed.

        Args:
            data: Text (one byte per character) or bytes
            timeout: Optional timeout in seconds

        Raises:
            BLEConnectionError: If not connected, or the connection closed
                before all data was written
            BLETimeoutError: If the data was not flushed within timeout
        """
        if not self.is_open:
            raise BLEConnectionError("Not connected")

        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._pending_sends.add(future)

        def _flushed() -> None:
            if not future.done():
                future.set_result(None)

        try:
            self.write(data, _flushed)
            await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise BLETimeoutError(f"Write not flushed within {timeout}s") from e
        finally:
            self._pending_sends.discard(future)

    async def close(self) -> None:
        """Close the connection and disconnect from the device.

        Emits CLOSE if the connection was open. Closing while negotiating
        makes the pending connect() return False instead.
        """
        client = self._shutdown()
        if client is not None:
            await self._disconnect_client(client)

    def _shutdown(self) -> BleakClient | None:
        """Move to CLOSED and release resources.

        Returns:
            The GATT client that still needs to be disconnected, if any
        """
        if self._state is ConnectionState.CLOSED:
            return None

        was_open = self._state is ConnectionState.OPEN
        self._state = ConnectionState.CLOSED
        client, self._client = self._client, None
        self._rx_characteristic = None
        self._tx_characteristic = None
        self._queue.clear()

        for future in self._pending_sends:
            if not future.done():
                future.set_exception(
                    BLEConnectionError("Connection closed before write was flushed")
                )

        if was_open:
            _LOGGER.info("Disconnected from %s", self.address)
            self._emit(ConnectionEvent.CLOSE)
        return client

    async def _disconnect_client(self, client: BleakClient) -> None:
        if not client.is_connected:
            return
        try:
            _LOGGER.debug("Disconnecting from %s", self.address)
            await client.disconnect()
        except Exception as e:
            _LOGGER.warning("Error during disconnect: %s", e)

    def _on_disconnected(self, client: BleakClient) -> None:
        """Handle disconnects reported by the transport."""
        if client is not self._client:
            # Either an earlier connection attempt or a disconnect we asked for
            return
        _LOGGER.debug("Disconnected (device side)")
        self._shutdown()

    def _on_notification(self, sender, data: bytearray) -> None:
        """Handle incoming RX notifications.

        Args:
            sender: Characteristic that sent notification
            data: Notification data
        """
        if self._state is ConnectionState.CLOSED:
            return

        text = decode_payload(bytes(data))
        _LOGGER.debug("Received %r", text)
        self._emit(ConnectionEvent.DATA, text)

    async def _write_chunk(self, chunk: bytes) -> None:
        client = self._client
        if client is None or self._tx_characteristic is None:
            raise BLEConnectionError("Not connected")

        await client.write_gatt_char(self._tx_characteristic, chunk, response=True)

    def _on_write_error(self, error: Exception) -> None:
        _LOGGER.warning("Write failed, closing connection to %s: %s", self.address, error)
        client = self._shutdown()
        if client is not None:
            task = asyncio.get_running_loop().create_task(self._disconnect_client(client))
            self._background_tasks.add(task)
            task.add_done_callback(self._background_tasks.discard)


async def connect(
        address: str | None = None,
        ble_device: BLEDevice | None = None,
        timeout: float = 10.0,
        max_attempts: int = 4,
        use_services_cache: bool = True,
) -> UARTConnection | None:
    """Open a new UART connection.

    Args:
        address: Device MAC address (default: first device advertising the UART service)
        ble_device: Optional BLEDevice from an earlier scan
        timeout: Scan and connection timeout in seconds (default: 10)
        max_attempts: Maximum connection attempts (default: 4)
        use_services_cache: Enable GATT service caching (default: True)

    Returns:
        The open connection, or None if negotiation failed
    """
    connection = UARTConnection(
        address,
        ble_device,
        timeout=timeout,
        max_attempts=max_attempts,
        use_services_cache=use_services_cache,
    )
    if await connection.connect():
        return connection
    return None
