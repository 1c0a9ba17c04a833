"""Nordic UART protocol constants and payload encoding."""

from __future__ import annotations

# Nordic UART service. TX/RX are named from the host's point of view:
# the host writes to TX and receives notifications on RX.
NORDIC_SERVICE_UUID = "6e400001-b5a3-f393-e0a9-e50e24dcca9e"
NORDIC_TX_UUID = "6e400002-b5a3-f393-e0a9-e50e24dcca9e"
NORDIC_RX_UUID = "6e400003-b5a3-f393-e0a9-e50e24dcca9e"

# Stays under the default ATT MTU write limit without negotiation
CHUNK_SIZE = 16

# Espruino: suppress REPL echo for the rest of the line
EVAL_PREFIX = b"\x10"

_PAYLOAD_ENCODING = "latin-1"


def encode_payload(data: str | bytes) -> bytes:
    """Convert caller data to wire bytes.

    Strings are mapped one character code per byte.

    Args:
        data: Text or raw bytes to send

    Returns:
        Wire bytes

    Raises:
        ValueError: If a character does not fit in a single byte
    """
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)

    try:
        return data.encode(_PAYLOAD_ENCODING)
    except UnicodeEncodeError as e:
        raise ValueError(
            f"Character {data[e.start]!r} at position {e.start} does not fit in one byte"
        ) from e


def decode_payload(data: bytes) -> str:
    """Convert received wire bytes to text (one character per byte)."""
    return bytes(data).decode(_PAYLOAD_ENCODING)


def build_eval_command(expression: str) -> bytes:
    """Build command that makes the device print an expression as JSON.

    Args:
        expression: JavaScript expression evaluated on the device

    Returns:
        Command bytes: 0x10 + Bluetooth.print(JSON.stringify(<expression>)) + newline
    """
    return EVAL_PREFIX + encode_payload(f"Bluetooth.print(JSON.stringify({expression}))\n")
