"""Nordic UART protocol implementation."""

from .chunking import split_into_chunks
from .commands import (
    CHUNK_SIZE,
    EVAL_PREFIX,
    NORDIC_RX_UUID,
    NORDIC_SERVICE_UUID,
    NORDIC_TX_UUID,
    build_eval_command,
    decode_payload,
    encode_payload,
)
from .responses import parse_eval_response

__all__ = [
    "NORDIC_SERVICE_UUID",
    "NORDIC_TX_UUID",
    "NORDIC_RX_UUID",
    "CHUNK_SIZE",
    "EVAL_PREFIX",
    "encode_payload",
    "decode_payload",
    "build_eval_command",
    "split_into_chunks",
    "parse_eval_response",
]
