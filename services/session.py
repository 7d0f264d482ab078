"""Lifecycle of the BLE connection to the soil temperature sensor."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
import re
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from functools import partial
from typing import Any, Callable, Deque, List, Optional, Tuple

from datastore.preferences import PreferencesStore, build_default_store
from models.records import TemperatureReading
from services.errors import (
    MalformedPayload,
    PeripheralUnreachable,
    PersistenceFailure,
    ServiceNotFound,
    SessionConnectionError,
    TransportUnavailable,
)
from services.events import Broadcast
from services.transport import BleakTransport, DiscoveredDevice
from settings import Settings, get_settings
from storage.history import ReadingHistory

logger = logging.getLogger(__name__)

_NON_NUMERIC = re.compile(r"[^0-9.]")


class SessionStatus(str, Enum):
    """Connection lifecycle states published on the status stream."""

    uninitialized = "uninitialized"
    idle = "idle"
    scanning = "scanning"
    connecting = "connecting"
    connected = "connected"
    disconnected = "disconnected"
    manual_reconnect_required = "manual_reconnect_required"
    unavailable = "unavailable"


@dataclass(frozen=True)
class StatusUpdate:
    status: SessionStatus
    detail: str
    error: Optional[str] = None


def parse_temperature(data: bytes) -> float:
    """Extract the temperature carried by a notification payload.

    Every character other than a digit or ``.`` is discarded before parsing,
    so ``b"24.50 \\xc2\\xb0C"`` yields ``24.5``. A ``-`` leading the payload is
    kept as the sign.
    """
    try:
        text = bytes(data).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedPayload(f"Payload is not valid UTF-8: {exc}") from exc

    numeric = _NON_NUMERIC.sub("", text)
    if not numeric:
        raise MalformedPayload(f"No numeric content in {text!r}.")
    try:
        value = float(numeric)
    except ValueError as exc:
        raise MalformedPayload(f"Cannot parse {numeric!r} from {text!r}.") from exc
    if not math.isfinite(value):
        raise MalformedPayload(f"Value {numeric!r} is out of range.")

    if text.lstrip().startswith("-"):
        value = -value
    return value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BleSessionManager:
    """Owns the single connection to the sensor and the readings it produces.

    BLE notifications are queued and handled one at a time by a consumer task
    on the event loop. Readings are kept in a bounded in-memory list and
    appended to ``history`` on a single background thread, in arrival order.
    """

    def __init__(
        self,
        transport: Any,
        history: ReadingHistory,
        *,
        service_uuid: str,
        tx_uuid: str,
        rx_uuid: str,
        name_prefix: Optional[str] = None,
        scan_timeout: float = 10.0,
        connect_timeout: float = 15.0,
        reconnect_delay: float = 2.0,
        memory_capacity: int = 500,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.transport = transport
        self.history = history
        self.service_uuid = service_uuid.lower()
        self.tx_uuid = tx_uuid.lower()
        self.rx_uuid = rx_uuid.lower()
        self.name_prefix = name_prefix
        self.scan_timeout = scan_timeout
        self.connect_timeout = connect_timeout
        self.reconnect_delay = reconnect_delay
        self._clock = clock

        self.current_temperature = 0.0
        self._readings: Deque[TemperatureReading] = deque(maxlen=memory_capacity)
        self._status_update = StatusUpdate(SessionStatus.uninitialized, "Not initialized")
        self.status_updates: Broadcast[StatusUpdate] = Broadcast("status", self._status_update)
        self.temperature_updates: Broadcast[float] = Broadcast("temperature", 0.0)
        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="reading-history")

        self.device_address: Optional[str] = None
        self.reconnect_attempts = 0
        self._link: Any = None
        self._tx: Any = None
        self._rx: Any = None
        self._generation = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._notifications: Optional[asyncio.Queue[bytes]] = None
        self._consumer: Optional[asyncio.Task[None]] = None
        self._reconnect_task: Optional[asyncio.Task[None]] = None
        self._initialized = False
        self._closed = False

    # -- state -------------------------------------------------------------

    @property
    def status_update(self) -> StatusUpdate:
        return self._status_update

    @property
    def status(self) -> SessionStatus:
        return self._status_update.status

    @property
    def is_connected(self) -> bool:
        return self.status is SessionStatus.connected and self._link is not None

    @property
    def readings(self) -> List[TemperatureReading]:
        return list(self._readings)

    @property
    def memory_capacity(self) -> int:
        return self._readings.maxlen or 0

    @property
    def reconnect_task(self) -> Optional[asyncio.Task[None]]:
        return self._reconnect_task

    async def initialize(self) -> None:
        """Load stored readings and start the notification consumer once."""
        if self._initialized:
            return
        self._initialized = True
        self._loop = asyncio.get_running_loop()
        self._notifications = asyncio.Queue()
        self._consumer = self._loop.create_task(
            self._consume_notifications(self._notifications), name="ble-notifications"
        )

        try:
            stored = await self._loop.run_in_executor(self.executor, self.history.load)
        except PersistenceFailure as exc:
            logger.warning("Starting without stored readings", extra={"error": str(exc)})
            stored = []

        self._readings.clear()
        self._readings.extend(stored)
        if self._readings:
            self._set_temperature(self._readings[-1].temperature)
        logger.info(
            "Session initialized",
            extra={"reading_count": len(self._readings), "temperature": self.current_temperature},
        )
        self._set_status(SessionStatus.idle, "Not connected")

    # -- discovery & connection --------------------------------------------

    async def scan(self) -> List[DiscoveredDevice]:
        await self.initialize()
        if self.is_connected:
            logger.info("Already connected; skipping scan", extra={"device_address": self.device_address})
            return []

        self._set_status(SessionStatus.scanning, "Scanning for devices")
        try:
            devices = await self.transport.scan(self.scan_timeout, self.name_prefix)
        except TransportUnavailable as exc:
            self._set_status(SessionStatus.unavailable, str(exc), error=type(exc).__name__)
            return []
        except SessionConnectionError as exc:
            self._set_status(SessionStatus.idle, f"Scan failed: {exc}", error=type(exc).__name__)
            return []
        self._set_status(SessionStatus.idle, f"Found {len(devices)} device(s)")
        return devices

    async def connect(self, address: str) -> None:
        """Connect to ``address`` and subscribe to temperature notifications.

        Raises a ``SessionConnectionError`` subclass after publishing the
        failure on the status stream.
        """
        await self.initialize()
        if self._link is not None or self._reconnect_task is not None:
            await self.disconnect()

        self._set_status(SessionStatus.connecting, f"Connecting to {address}")
        try:
            await self._open(address)
        except SessionConnectionError as exc:
            status = (
                SessionStatus.unavailable
                if isinstance(exc, TransportUnavailable)
                else SessionStatus.idle
            )
            self._set_status(status, f"Connection failed: {exc}", error=type(exc).__name__)
            raise
        self._set_status(SessionStatus.connected, f"Connected to {address}")

    async def handle_disconnection(self) -> None:
        """React to a dropped link with exactly one delayed reconnect."""
        address = self.device_address
        self._link = None
        self._tx = None
        self._rx = None
        self._set_status(SessionStatus.disconnected, "Connection lost")

        if address is None:
            self._set_status(
                SessionStatus.manual_reconnect_required,
                "No previous device; please reconnect manually",
            )
            return

        await asyncio.sleep(self.reconnect_delay)
        self.reconnect_attempts += 1
        logger.info("Attempting reconnect", extra={"device_address": address})
        try:
            await self._open(address)
        except SessionConnectionError as exc:
            self._set_status(
                SessionStatus.manual_reconnect_required,
                "Reconnection failed - please reconnect manually",
                error=type(exc).__name__,
            )
            return
        self._set_status(SessionStatus.connected, "Reconnected")

    async def disconnect(self) -> None:
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        link, tx = self._link, self._tx
        self._link = None
        self._tx = None
        self._rx = None
        if link is not None:
            await self._close_link(link, tx)
        self._set_status(SessionStatus.idle, "Disconnected")

    async def shutdown(self) -> None:
        """Release the link, the consumer task, listeners and the writer thread."""
        if self._closed:
            return
        if self._link is not None or self._reconnect_task is not None:
            await self.disconnect()
        if self._consumer is not None:
            self._consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._consumer
            self._consumer = None
        await self.flush()
        self._closed = True
        self.executor.shutdown(wait=False, cancel_futures=True)
        self.status_updates.close()
        self.temperature_updates.close()

    async def _open(self, address: str) -> None:
        self._generation += 1
        on_disconnect = partial(self._on_transport_disconnect, self._generation)
        link = await self.transport.connect(address, self.connect_timeout, on_disconnect)
        try:
            tx, rx = self._locate_characteristics(link, address)
            await link.start_notify(tx, self._enqueue_notification)
            if not link.is_connected:
                raise PeripheralUnreachable(f"{address} dropped during setup.")
        except (SessionConnectionError, asyncio.CancelledError):
            await self._close_link(link)
            raise

        self._link = link
        self._tx = tx
        self._rx = rx
        self.device_address = address
        logger.info("Subscribed to sensor notifications", extra={"device_address": address})

    def _locate_characteristics(self, link: Any, address: str) -> Tuple[Any, Any]:
        services = link.services()
        characteristics = services.get(self.service_uuid)
        if characteristics is None:
            raise ServiceNotFound(f"Service {self.service_uuid} not found on {address}.")

        tx = characteristics.get(self.tx_uuid)
        rx = characteristics.get(self.rx_uuid)
        missing = [uuid for uuid, handle in ((self.tx_uuid, tx), (self.rx_uuid, rx)) if handle is None]
        if missing:
            raise ServiceNotFound(
                f"Characteristics {', '.join(missing)} not found on {address}."
            )
        return tx, rx

    async def _close_link(self, link: Any, tx: Any = None) -> None:
        if tx is not None and link.is_connected:
            try:
                await link.stop_notify(tx)
            except SessionConnectionError as exc:
                logger.warning("Could not stop notifications", extra={"error": str(exc)})
        try:
            await link.disconnect()
        except SessionConnectionError as exc:
            logger.warning("Could not close link cleanly", extra={"error": str(exc)})

    def _on_transport_disconnect(self, generation: int) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._schedule_reconnect, generation)

    def _schedule_reconnect(self, generation: int) -> None:
        if generation != self._generation or self._link is None:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        logger.warning("Sensor link dropped", extra={"device_address": self.device_address})
        self._reconnect_task = asyncio.get_running_loop().create_task(
            self.handle_disconnection(), name="ble-reconnect"
        )

    # -- notifications -----------------------------------------------------

    def on_notification(self, data: bytes) -> Optional[TemperatureReading]:
        """Turn one payload into a reading. Malformed payloads are dropped."""
        try:
            temperature = parse_temperature(data)
        except MalformedPayload as exc:
            logger.warning(
                "Dropping malformed notification",
                extra={"payload": repr(bytes(data)), "reason": str(exc)},
            )
            return None
        return self._record(temperature)

    def add_manual_reading(self, temperature: float) -> TemperatureReading:
        return self._record(float(temperature))

    def _enqueue_notification(self, _sender: Any, data: bytearray) -> None:
        queue, loop = self._notifications, self._loop
        if queue is None or loop is None:
            return
        try:
            loop.call_soon_threadsafe(queue.put_nowait, bytes(data))
        except RuntimeError:
            logger.warning("Event loop closed; dropping notification")

    async def _consume_notifications(self, queue: asyncio.Queue[bytes]) -> None:
        while True:
            data = await queue.get()
            try:
                if self.status is SessionStatus.connected:
                    self.on_notification(data)
                else:
                    logger.debug("Ignoring notification while %s", self.status.value)
            finally:
                queue.task_done()

    async def drain(self) -> None:
        """Wait until every queued notification has been handled."""
        await asyncio.sleep(0)
        if self._notifications is not None:
            await self._notifications.join()

    def _record(self, temperature: float) -> TemperatureReading:
        timestamp = self._clock()
        if self._readings and timestamp < self._readings[-1].timestamp:
            timestamp = self._readings[-1].timestamp
        reading = TemperatureReading(timestamp=timestamp, temperature=temperature)

        self._set_temperature(temperature)
        self._readings.append(reading)
        self._schedule_persist(reading)
        logger.debug(
            "Recorded reading",
            extra={"temperature": temperature, "reading_count": len(self._readings)},
        )
        return reading

    # -- persistence -------------------------------------------------------

    def _schedule_persist(self, reading: TemperatureReading) -> None:
        try:
            self.executor.submit(self._persist, reading)
        except RuntimeError:
            logger.warning(
                "Writer stopped; reading kept in memory only",
                extra={"temperature": reading.temperature},
            )

    def _persist(self, reading: TemperatureReading) -> None:
        try:
            self.history.append(reading)
        except PersistenceFailure as exc:
            logger.warning(
                "Failed to persist reading",
                extra={"temperature": reading.temperature, "error": str(exc)},
            )

    async def flush(self) -> None:
        """Wait for queued history writes to finish."""
        if self._closed:
            return
        await asyncio.get_running_loop().run_in_executor(self.executor, lambda: None)

    async def clear_history(self) -> None:
        self._readings.clear()
        self._set_temperature(0.0)
        try:
            await asyncio.get_running_loop().run_in_executor(self.executor, self.history.clear)
        except PersistenceFailure as exc:
            logger.warning("Failed to clear stored readings", extra={"error": str(exc)})
        logger.info("Cleared reading history")

    # -- commands ----------------------------------------------------------

    async def send_command(self, command: str) -> bool:
        """Write ``command`` to the sensor. Returns ``False`` when nothing was sent."""
        link, rx = self._link, self._rx
        if not self.is_connected or link is None or rx is None:
            logger.debug("Not connected; command %r ignored", command)
            return False
        try:
            await link.write(rx, command.encode("utf-8"))
        except SessionConnectionError as exc:
            logger.warning(
                "Error sending command",
                extra={"device_address": self.device_address, "error": str(exc)},
            )
            return False
        return True

    # -- helpers -----------------------------------------------------------

    def _set_status(self, status: SessionStatus, detail: str, error: Optional[str] = None) -> None:
        logger.info(detail, extra={"status": status.value, "error": error})
        self._status_update = StatusUpdate(status=status, detail=detail, error=error)
        self.status_updates.publish(self._status_update)

    def _set_temperature(self, temperature: float) -> None:
        self.current_temperature = temperature
        self.temperature_updates.publish(temperature)


def build_session_manager(
    settings: Optional[Settings] = None,
    store: Optional[PreferencesStore] = None,
    transport: Any = None,
) -> BleSessionManager:
    """Factory that wires the session manager from settings."""
    settings = settings or get_settings()
    history = ReadingHistory(
        store if store is not None else build_default_store(),
        capacity=settings.history_capacity,
    )
    return BleSessionManager(
        transport if transport is not None else BleakTransport(),
        history,
        service_uuid=settings.service_uuid,
        tx_uuid=settings.tx_uuid,
        rx_uuid=settings.rx_uuid,
        name_prefix=settings.name_prefix,
        scan_timeout=settings.scan_timeout,
        connect_timeout=settings.connect_timeout,
        reconnect_delay=settings.reconnect_delay,
        memory_capacity=settings.memory_capacity,
    )
