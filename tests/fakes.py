"""In-process stand-ins for the BLE transport used across tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from datastore.preferences import PreferencesStore
from services.errors import PeripheralUnreachable
from services.session import BleSessionManager
from services.transport import DiscoveredDevice
from settings import DEFAULT_RX_UUID, DEFAULT_SERVICE_UUID, DEFAULT_TX_UUID
from storage.history import ReadingHistory


def sensor_services() -> Dict[str, Dict[str, Any]]:
    return {
        DEFAULT_SERVICE_UUID: {
            DEFAULT_TX_UUID: "tx-handle",
            DEFAULT_RX_UUID: "rx-handle",
        }
    }


class FakeLink:
    def __init__(
        self,
        address: str,
        services: Dict[str, Dict[str, Any]],
        on_disconnect: Optional[Callable[[], None]],
        notify_delay: float = 0.0,
    ) -> None:
        self.address = address
        self.notify_delay = notify_delay
        self._services = services
        self.on_disconnect = on_disconnect
        self.is_connected = True
        self.notify_callbacks: Dict[Any, Callable] = {}
        self.writes: List[tuple[Any, bytes]] = []
        self.stopped: List[Any] = []
        self.disconnect_calls = 0
        self.fail_writes = False

    def services(self) -> Dict[str, Dict[str, Any]]:
        return self._services

    async def start_notify(self, characteristic: Any, callback: Callable) -> None:
        if self.notify_delay:
            await asyncio.sleep(self.notify_delay)
        self.notify_callbacks[characteristic] = callback

    async def stop_notify(self, characteristic: Any) -> None:
        self.stopped.append(characteristic)
        self.notify_callbacks.pop(characteristic, None)

    async def write(self, characteristic: Any, data: bytes) -> None:
        if self.fail_writes:
            raise PeripheralUnreachable("write failed")
        self.writes.append((characteristic, data))

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self.drop()

    def notify(self, payload: bytes) -> None:
        for callback in list(self.notify_callbacks.values()):
            callback(None, bytearray(payload))

    def drop(self) -> None:
        was_connected = self.is_connected
        self.is_connected = False
        if was_connected and self.on_disconnect is not None:
            self.on_disconnect()


class FakeTransport:
    def __init__(
        self,
        devices: Optional[List[DiscoveredDevice]] = None,
        services: Optional[Dict[str, Dict[str, Any]]] = None,
    ) -> None:
        self.devices = devices or []
        self.services = sensor_services() if services is None else services
        self.scan_error: Optional[Exception] = None
        self.connect_errors: List[Optional[Exception]] = []
        self.connect_calls: List[str] = []
        self.notify_delay = 0.0
        self.links: List[FakeLink] = []

    async def scan(self, timeout: float, name_prefix: Optional[str] = None) -> List[DiscoveredDevice]:
        if self.scan_error is not None:
            raise self.scan_error
        return [
            device
            for device in self.devices
            if not name_prefix or (device.name or "").startswith(name_prefix)
        ]

    async def connect(
        self,
        address: str,
        timeout: float,
        on_disconnect: Optional[Callable[[], None]] = None,
    ) -> FakeLink:
        self.connect_calls.append(address)
        if self.connect_errors:
            error = self.connect_errors.pop(0)
            if error is not None:
                raise error
        link = FakeLink(address, self.services, on_disconnect, self.notify_delay)
        self.links.append(link)
        return link


class StepClock:
    """Deterministic clock advancing by ``step`` on every call."""

    def __init__(
        self,
        start: datetime = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc),
        step: timedelta = timedelta(seconds=30),
    ) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


def build_manager(
    transport: Optional[FakeTransport] = None,
    store: Optional[PreferencesStore] = None,
    memory_capacity: int = 500,
    history_capacity: int = 1000,
    clock: Optional[Callable[[], datetime]] = None,
    reconnect_delay: float = 0.0,
) -> BleSessionManager:
    history = ReadingHistory(store or PreferencesStore("test"), capacity=history_capacity)
    return BleSessionManager(
        transport or FakeTransport(),
        history,
        service_uuid=DEFAULT_SERVICE_UUID,
        tx_uuid=DEFAULT_TX_UUID,
        rx_uuid=DEFAULT_RX_UUID,
        name_prefix="ESP32",
        connect_timeout=1.0,
        reconnect_delay=reconnect_delay,
        memory_capacity=memory_capacity,
        clock=clock or StepClock(),
    )


def wait_for_writes(manager: BleSessionManager) -> None:
    manager.executor.submit(lambda: None).result(timeout=5)
