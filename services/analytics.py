"""Statistics over reading histories."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence

from models.records import TemperatureReading

TREND_WINDOW = timedelta(hours=1)
MIN_TREND_SPAN_HOURS = 0.1


@dataclass
class DailyStats:
    """Summary of one calendar day (UTC) of readings."""

    day: date
    count: int = 0
    min_value: float = 0.0
    max_value: float = 0.0
    mean_value: float = 0.0


def temperature_trend(
    readings: Sequence[TemperatureReading],
    now: Optional[datetime] = None,
) -> float:
    """Return the warming rate in degrees per day over the last hour.

    Compares the oldest and newest readings inside the window; fewer than two
    readings, or a span under six minutes, give ``0.0``.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - TREND_WINDOW
    window = [reading for reading in readings if reading.timestamp > cutoff]
    if len(window) < 2:
        return 0.0

    oldest, newest = window[0], window[-1]
    span_hours = (newest.timestamp - oldest.timestamp).total_seconds() / 3600.0
    if span_hours < MIN_TREND_SPAN_HOURS:
        return 0.0
    return (newest.temperature - oldest.temperature) / span_hours * 24.0


def readings_for_date(readings: Iterable[TemperatureReading], day: date) -> List[TemperatureReading]:
    return [reading for reading in readings if reading.timestamp.date() == day]


def dates_with_readings(readings: Iterable[TemperatureReading]) -> List[date]:
    """Distinct days that have at least one reading, newest first."""
    return sorted({reading.timestamp.date() for reading in readings}, reverse=True)


def daily_stats(readings: Iterable[TemperatureReading], day: date) -> DailyStats:
    stats = DailyStats(day=day)
    total = 0.0
    for reading in readings_for_date(readings, day):
        value = reading.temperature
        if stats.count == 0:
            stats.min_value = stats.max_value = value
        else:
            stats.min_value = min(stats.min_value, value)
            stats.max_value = max(stats.max_value, value)
        stats.count += 1
        total += value

    if stats.count:
        stats.mean_value = total / stats.count
    return stats


def daily_averages(
    readings: Sequence[TemperatureReading],
    days: int = 7,
    today: Optional[date] = None,
) -> List[DailyStats]:
    """Stats for ``days`` consecutive days ending ``today``, newest first."""
    today = today or datetime.now(timezone.utc).date()
    return [daily_stats(readings, today - timedelta(days=offset)) for offset in range(days)]


def readings_since(readings: Iterable[TemperatureReading], since: datetime) -> List[TemperatureReading]:
    return [reading for reading in readings if reading.timestamp > since]


def average_since(readings: Iterable[TemperatureReading], since: datetime) -> float:
    values = temperatures_since(readings, since)
    if not values:
        return 0.0
    return sum(values) / len(values)


def temperatures_since(readings: Iterable[TemperatureReading], since: datetime) -> List[float]:
    return [reading.temperature for reading in readings if reading.timestamp > since]


def highest(readings: Iterable[TemperatureReading]) -> float:
    return max((reading.temperature for reading in readings), default=0.0)


def lowest(readings: Iterable[TemperatureReading]) -> float:
    return min((reading.temperature for reading in readings), default=0.0)
