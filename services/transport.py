"""Boundary to the platform Bluetooth stack, implemented with bleak."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from bleak import BleakClient, BleakScanner
from bleak.exc import BleakBluetoothNotAvailableError, BleakDeviceNotFoundError, BleakError

from services.errors import (
    ConnectionTimeout,
    PeripheralUnreachable,
    SessionConnectionError,
    TransportUnavailable,
)

logger = logging.getLogger(__name__)

NotificationCallback = Callable[[Any, bytearray], None]
DisconnectCallback = Callable[[], None]


@dataclass(frozen=True)
class DiscoveredDevice:
    address: str
    name: Optional[str]
    rssi: Optional[int] = None


class BleakLink:
    """An open connection to one peripheral."""

    def __init__(self, client: BleakClient) -> None:
        self._client = client

    @property
    def address(self) -> str:
        return self._client.address

    @property
    def is_connected(self) -> bool:
        return self._client.is_connected

    def services(self) -> Dict[str, Dict[str, Any]]:
        """Map lower-case service UUIDs to their characteristics by UUID."""
        discovered: Dict[str, Dict[str, Any]] = {}
        for service in self._client.services:
            characteristics = {
                characteristic.uuid.lower(): characteristic
                for characteristic in service.characteristics
            }
            discovered[service.uuid.lower()] = characteristics
        return discovered

    async def start_notify(self, characteristic: Any, callback: NotificationCallback) -> None:
        try:
            await self._client.start_notify(characteristic, callback)
        except (BleakError, OSError) as exc:
            raise PeripheralUnreachable(f"Could not subscribe to notifications: {exc}") from exc

    async def stop_notify(self, characteristic: Any) -> None:
        try:
            await self._client.stop_notify(characteristic)
        except (BleakError, OSError) as exc:
            raise PeripheralUnreachable(f"Could not unsubscribe from notifications: {exc}") from exc

    async def write(self, characteristic: Any, data: bytes) -> None:
        try:
            await self._client.write_gatt_char(characteristic, data, response=True)
        except (BleakError, OSError) as exc:
            raise PeripheralUnreachable(f"Write to {self.address} failed: {exc}") from exc

    async def disconnect(self) -> None:
        try:
            await self._client.disconnect()
        except (BleakError, OSError) as exc:
            raise PeripheralUnreachable(f"Disconnect from {self.address} failed: {exc}") from exc
class BleakTransport:
    """Scans for and connects to peripherals through bleak."""

    async def scan(self, timeout: float, name_prefix: Optional[str] = None) -> List[DiscoveredDevice]:
        try:
            found = await BleakScanner.discover(timeout=timeout, return_adv=True)
        except BleakBluetoothNotAvailableError as exc:
            raise TransportUnavailable(f"Bluetooth is not available: {exc}") from exc
        except (BleakError, OSError) as exc:
            raise SessionConnectionError(f"Bluetooth scan failed: {exc}") from exc

        unique: Dict[str, DiscoveredDevice] = {}
        for device, advertisement in found.values():
            name = device.name or advertisement.local_name
            if name_prefix and not (name and name.startswith(name_prefix)):
                continue
            unique[device.address] = DiscoveredDevice(
                address=device.address,
                name=name,
                rssi=advertisement.rssi,
            )

        devices = list(unique.values())
        devices.sort(key=lambda item: item.rssi if item.rssi is not None else -999, reverse=True)
        logger.debug("Scan finished with %d matching devices", len(devices))
        return devices

    async def connect(
        self,
        address: str,
        timeout: float,
        on_disconnect: Optional[DisconnectCallback] = None,
    ) -> BleakLink:
        def _disconnected(_client: BleakClient) -> None:
            if on_disconnect is not None:
                on_disconnect()

        client = BleakClient(address, disconnected_callback=_disconnected, timeout=timeout)
        try:
            await asyncio.wait_for(client.connect(), timeout=timeout)
        except asyncio.CancelledError:
            await _close_quietly(client)
            raise
        except (asyncio.TimeoutError, TimeoutError) as exc:
            await _close_quietly(client)
            raise ConnectionTimeout(
                f"Timed out after {timeout:g}s connecting to {address}."
            ) from exc
        except BleakBluetoothNotAvailableError as exc:
            raise TransportUnavailable(f"Bluetooth is not available: {exc}") from exc
        except BleakDeviceNotFoundError as exc:
            raise PeripheralUnreachable(f"Device {address} was not found.") from exc
        except (BleakError, OSError) as exc:
            await _close_quietly(client)
            raise PeripheralUnreachable(f"Could not connect to {address}: {exc}") from exc
        return BleakLink(client)


async def _close_quietly(client: BleakClient) -> None:
    try:
        await client.disconnect()
    except (BleakError, OSError) as exc:
        logger.debug("Ignoring error while closing half-open link", extra={"error": str(exc)})
