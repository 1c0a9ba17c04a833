from __future__ import annotations

from enum import Enum


class ConnectionState(Enum):
    """Lifecycle of a UART connection.

    CLOSED is terminal: a closed connection is never reopened.
    """
    NEGOTIATING = "negotiating"
    OPEN = "open"
    CLOSED = "closed"


class ConnectionEvent(str, Enum):
    """Events emitted by a UART connection."""
    OPEN = "open"
    DATA = "data"
    CLOSE = "close"
