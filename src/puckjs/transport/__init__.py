"""BLE transport layer."""

from .connection import UARTConnection, connect
from .write_queue import WriteQueue, WriteRequest

__all__ = [
    "UARTConnection",
    "WriteQueue",
    "WriteRequest",
    "connect",
]
