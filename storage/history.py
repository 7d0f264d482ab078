"""Bounded, durable log of temperature readings."""

from __future__ import annotations

import json
import logging
from typing import List

from datastore.preferences import PreferencesStore
from models.records import TemperatureReading
from services.errors import PersistenceFailure

logger = logging.getLogger(__name__)

READINGS_KEY = "temperature_readings"


class ReadingHistory:
    """Stores readings as JSON strings under a single key, oldest first.

    The list is capped at ``capacity`` entries; appending beyond it drops the
    oldest ones.
    """

    def __init__(self, store: PreferencesStore, capacity: int = 1000) -> None:
        if capacity <= 0:
            raise ValueError("History capacity must be positive.")
        self.store = store
        self.capacity = capacity

    def append(self, reading: TemperatureReading) -> int:
        """Persist ``reading`` and return the stored entry count."""
        entries = self._entries()
        entries.append(json.dumps(reading.to_json()))
        if len(entries) > self.capacity:
            entries = entries[len(entries) - self.capacity :]
        self.store.set_string_list(READINGS_KEY, entries)
        return len(entries)

    def load(self) -> List[TemperatureReading]:
        readings: List[TemperatureReading] = []
        for position, entry in enumerate(self._entries()):
            try:
                readings.append(TemperatureReading.from_json(json.loads(entry)))
            except (ValueError, KeyError, TypeError) as exc:
                logger.warning(
                    "Skipping unreadable stored reading at position %d",
                    position,
                    extra={"payload": entry, "reason": str(exc)},
                )
        readings.sort(key=lambda reading: reading.timestamp)
        return readings

    def count(self) -> int:
        return len(self._entries())

    def clear(self) -> None:
        self.store.remove(READINGS_KEY)

    def _entries(self) -> List[str]:
        try:
            return self.store.get_string_list(READINGS_KEY) or []
        except TypeError as exc:
            raise PersistenceFailure(f"Stored readings are corrupt: {exc}") from exc
