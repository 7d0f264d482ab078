"""Failure categories raised by the BLE session and its collaborators."""

from __future__ import annotations


class SessionConnectionError(ConnectionError):
    """Base class for failures to reach or use the sensor peripheral."""


class TransportUnavailable(SessionConnectionError):
    """Bluetooth is switched off, missing, or otherwise unusable."""


class ConnectionTimeout(SessionConnectionError):
    pass


class PeripheralUnreachable(SessionConnectionError):
    """The peripheral could not be found or refused the connection."""


class ServiceNotFound(SessionConnectionError):
    """The expected GATT service or characteristics are absent."""


class MalformedPayload(ValueError):
    """Notification bytes that do not carry a numeric reading."""


class PersistenceFailure(RuntimeError):
    """The durable store could not be read or written."""
