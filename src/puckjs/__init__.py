"""Puck.js BLE UART Package.

  Asyncio client for Espruino devices (Puck.js, Pixl.js, Bangle.js, ...)
  and anything else speaking the Nordic UART service.
  """

from .discovery import discover_devices, find_uart_device
from .exceptions import (
    BLEConnectionError,
    BLETimeoutError,
    InvalidResponseError,
    ProtocolError,
    PuckError,
)
from .models import ConnectionEvent, ConnectionState
from .protocol import (
    CHUNK_SIZE,
    NORDIC_RX_UUID,
    NORDIC_SERVICE_UUID,
    NORDIC_TX_UUID,
    build_eval_command,
    parse_eval_response,
    split_into_chunks,
)
from .session import PuckSession
from .transport import UARTConnection, connect

__version__ = "0.1.0"

__all__ = [
    # Main API
    "PuckSession",
    "UARTConnection",
    "connect",
    "discover_devices",
    "find_uart_device",
    # Exceptions
    "PuckError",
    "BLEConnectionError",
    "BLETimeoutError",
    "ProtocolError",
    "InvalidResponseError",
    # Models
    "ConnectionEvent",
    "ConnectionState",
    # Utilities
    "build_eval_command",
    "parse_eval_response",
    "split_into_chunks",
    # Constants
    "NORDIC_SERVICE_UUID",
    "NORDIC_TX_UUID",
    "NORDIC_RX_UUID",
    "CHUNK_SIZE",
]
