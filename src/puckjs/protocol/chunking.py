"""Outbound payload chunking for the UART TX characteristic."""

from __future__ import annotations

from .commands import CHUNK_SIZE


def split_into_chunks(payload: bytes, max_size: int = CHUNK_SIZE) -> list[bytes]:
    """Split payload into transport-sized frames.

    Every chunk except possibly the last is exactly ``max_size`` bytes long
    and joining the chunks in order gives back ``payload``. Inbound data has
    no chunk framing and needs no counterpart.

    Args:
        payload: Data to send
        max_size: Maximum chunk length in bytes (default: CHUNK_SIZE)

    Returns:
        Ordered list of chunks (empty for an empty payload)

    Raises:
        ValueError: If max_size is not positive
    """
    if max_size <= 0:
        raise ValueError(f"Chunk size must be positive, got {max_size}")

    return [payload[i:i + max_size] for i in range(0, len(payload), max_size)]
