"""Minimal observable used for status and temperature updates."""

from __future__ import annotations

import logging
from typing import Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription:
    def __init__(self, broadcast: "Broadcast", callback: Callable) -> None:
        self._broadcast = broadcast
        self._callback = callback
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self._broadcast._remove(self._callback)
            self.active = False


class Broadcast(Generic[T]):
    """Fan a published value out to every listener, remembering the latest."""

    def __init__(self, name: str, initial: Optional[T] = None) -> None:
        self.name = name
        self.latest: Optional[T] = initial
        self._listeners: List[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        self._listeners.append(callback)
        return Subscription(self, callback)

    def publish(self, value: T) -> None:
        self.latest = value
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:  # noqa: BLE001
                logger.exception("Listener on %s stream failed", self.name)

    def close(self) -> None:
        self._listeners.clear()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _remove(self, callback: Callable[[T], None]) -> None:
        try:
            self._listeners.remove(callback)
        except ValueError:
            pass
