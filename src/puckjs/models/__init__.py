"""Data models for puckjs."""

from .enums import ConnectionEvent, ConnectionState

__all__ = [
    "ConnectionEvent",
    "ConnectionState",
]
