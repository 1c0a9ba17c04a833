"""Exceptions raised by puckjs."""


class PuckError(Exception):
    """Base error for puckjs."""


class BLEConnectionError(PuckError):
    """Raised when a BLE connection cannot be established or was lost."""


class BLETimeoutError(PuckError):
    """Raised when a BLE operation does not finish in time."""


class ProtocolError(PuckError):
    """Raised when device output cannot be interpreted."""


class InvalidResponseError(ProtocolError):
    """Raised when a response is malformed."""
