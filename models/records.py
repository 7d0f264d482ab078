"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict


@dataclass(frozen=True, slots=True)
class TemperatureReading:
    """A single timestamped soil temperature sample in degrees Celsius."""

    timestamp: datetime
    temperature: float

    def to_json(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "temperature": self.temperature,
        }

    @classmethod
    def from_json(cls, payload: Dict[str, Any]) -> "TemperatureReading":
        """Build a reading from its stored form.

        Naive timestamps are taken to be UTC. Raises ``ValueError`` (or
        ``KeyError``/``TypeError`` for structurally wrong payloads) when the
        record cannot be decoded.
        """
        timestamp = parse_timestamp(str(payload["timestamp"]))
        temperature = payload["temperature"]
        if isinstance(temperature, bool) or not isinstance(temperature, (int, float)):
            raise TypeError(f"Temperature must be numeric, got {temperature!r}.")
        return cls(timestamp=timestamp, temperature=float(temperature))


def parse_timestamp(value: str) -> datetime:
    candidate = value.strip()
    if not candidate:
        raise ValueError("Timestamp is empty.")

    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValueError("Invalid timestamp format") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed.astimezone(timezone.utc)
