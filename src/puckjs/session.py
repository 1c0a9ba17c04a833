"""Request/response convenience layer over a single UART connection."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable

from .exceptions import BLEConnectionError, BLETimeoutError
from .models.enums import ConnectionEvent
from .protocol import build_eval_command, parse_eval_response
from .transport import UARTConnection

if TYPE_CHECKING:
    from bleak.backends.device import BLEDevice

_LOGGER = logging.getLogger(__name__)

# Output is considered complete after one silent poll interval.
# This is a heuristic: the protocol has no response framing.
POLL_INTERVAL = 0.25
MAX_POLLS = 10

ResponseCallback = Callable[[str | None], None]


class PuckSession:
    """Keeps at most one connection open and collects command output.

    The connection is created on first use and reused while it stays open.
    When it closes (explicitly or because the device went away) the next
    call negotiates a new one.

    Output of a command is everything received after it was written, until
    no data arrived for ``poll_interval`` seconds, bounded by ``max_polls``
    extra intervals. A chatty device or a slow one breaks this; the REPL
    echo and prompt are part of the output.

    Only one request with a callback should be outstanding at a time: all
    requests share the receive buffer.

    Usage:
        async with PuckSession() as session:
            await session.write("LED1.set()\\n")
            print(await session.query("1+2\\n"))
            print(await session.evaluate("BTN.read()"))
    """

    def __init__(
            self,
            address: str | None = None,
            *,
            ble_device: BLEDevice | None = None,
            timeout: float = 10.0,
            max_attempts: int = 4,
            use_services_cache: bool = True,
            poll_interval: float = POLL_INTERVAL,
            max_polls: int = MAX_POLLS,
            response_timeout: float = 10.0,
            connection_factory: Callable[[], UARTConnection] | None = None,
    ):
        """Initialize session.

        Args:
            address: Device MAC address (default: first device advertising the UART service)
            ble_device: Optional BLEDevice from an earlier scan
            timeout: Scan and connection timeout in seconds (default: 10)
            max_attempts: Maximum connection attempts (default: 4)
            use_services_cache: Enable GATT service caching (default: True)
            poll_interval: Silence, in seconds, that ends a response (default: 0.25)
            max_polls: Extra intervals to wait while data keeps arriving (default: 10)
            response_timeout: Timeout for query()/evaluate() in seconds (default: 10)
            connection_factory: Creates new connections (default: UARTConnection
                built from the options above)
        """
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self.response_timeout = response_timeout

        if connection_factory is None:
            def connection_factory() -> UARTConnection:
                return UARTConnection(
                    address,
                    ble_device,
                    timeout=timeout,
                    max_attempts=max_attempts,
                    use_services_cache=use_services_cache,
                )
        self._connection_factory = connection_factory

        self._connection: UARTConnection | None = None
        self._connect_lock = asyncio.Lock()
        self._received = ""
        self._had_data = False
        self._poll_tasks: set[asyncio.Task[None]] = set()

    async def __aenter__(self) -> PuckSession:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def connection(self) -> UARTConnection | None:
        """The active connection, if any."""
        return self._connection

    @property
    def received(self) -> str:
        """Data received since the buffer was last reset."""
        return self._received

    async def write(self, data: str | bytes, callback: ResponseCallback | None = None) -> None:
        """Send data, optionally collecting the output it produces.

        Returns once the data is queued; a new connection is negotiated
        first if needed.

        Args:
            data: Text (one byte per character) or bytes
            callback: Called with the collected output once the device goes
                quiet, or with None if no connection could be made
        """
        connection = self._connection
        if connection is not None and connection.is_open:
            self._reset_buffer()
        else:
            connection = await self._open_connection()
            if connection is None:
                if callback is not None:
                    callback(None)
                return

        connection.write(data, self._on_written(callback))

    async def eval(self, expression: str, callback: ResponseCallback) -> None:
        """Evaluate a JavaScript expression on the device.

        The callback receives the raw JSON text printed by the device.
        """
        await self.write(build_eval_command(expression), callback)

    async def query(self, data: str | bytes) -> str | None:
        """Send data and return the output it produced.

        Returns:
            Collected output, or None if no connection could be made

        Raises:
            BLETimeoutError: If no output was delivered within response_timeout
        """
        future: asyncio.Future[str | None] = asyncio.get_running_loop().create_future()

        def _deliver(response: str | None) -> None:
            if not future.done():
                future.set_result(response)

        await self.write(data, _deliver)
        try:
            return await asyncio.wait_for(future, timeout=self.response_timeout)
        except asyncio.TimeoutError as e:
            raise BLETimeoutError(
                f"No response received within {self.response_timeout}s"
            ) from e

    async def evaluate(self, expression: str) -> Any:
        """Evaluate a JavaScript expression and decode the result.

        Returns:
            The value, decoded from JSON (None for undefined)

        Raises:
            BLEConnectionError: If no connection could be made
            BLETimeoutError: If no output was delivered within response_timeout
            InvalidResponseError: If the device output is not JSON
        """
        response = await self.query(build_eval_command(expression))
        if response is None:
            raise BLEConnectionError("Failed to connect")
        return parse_eval_response(response)

    async def close(self) -> None:
        """Close the active connection, if any."""
        connection, self._connection = self._connection, None
        if connection is not None:
            await connection.close()

    async def _open_connection(self) -> UARTConnection | None:
        async with self._connect_lock:
            if self._connection is not None and self._connection.is_open:
                self._reset_buffer()
                return self._connection

            connection = self._connection_factory()
            if not await connection.connect():
                _LOGGER.warning("Could not open connection to %s", connection.address)
                self._connection = None
                return None

            self._connection = connection
            self._reset_buffer()
            connection.on(ConnectionEvent.DATA, self._on_data)
            connection.on(ConnectionEvent.CLOSE, lambda: self._on_close(connection))
            return connection

    def _reset_buffer(self) -> None:
        self._received = ""
        self._had_data = False

    def _on_data(self, text: str) -> None:
        self._received += text
        self._had_data = True

    def _on_close(self, connection: UARTConnection) -> None:
        if self._connection is connection:
            _LOGGER.debug("Active connection closed")
            self._connection = None

    def _on_written(self, callback: ResponseCallback | None) -> Callable[[], None]:
        def _written() -> None:
            if callback is None:
                self._received = ""
                return
            task = asyncio.get_running_loop().create_task(self._collect_response(callback))
            self._poll_tasks.add(task)
            task.add_done_callback(self._poll_tasks.discard)

        return _written

    async def _collect_response(self, callback: ResponseCallback) -> None:
        polls_left = self.max_polls
        while True:
            await asyncio.sleep(self.poll_interval)
            had_data, self._had_data = self._had_data, False
            if not had_data or not polls_left:
                break
            polls_left -= 1

        response, self._received = self._received, ""
        _LOGGER.debug("Response complete: %r", response)
        try:
            callback(response)
        except Exception:
            _LOGGER.exception("Response callback failed")
