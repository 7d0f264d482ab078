"""Rule-of-thumb agronomy advice derived from soil temperature."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from models.records import TemperatureReading
from services.analytics import (
    average_since,
    highest,
    lowest,
    readings_since,
    temperature_trend,
)

DEFAULT_CROP_RANGES: Dict[str, Tuple[float, float]] = {
    "Tomatoes": (18.0, 30.0),
    "Carrots": (16.0, 24.0),
    "Lettuce": (10.0, 20.0),
    "Potatoes": (15.0, 25.0),
}

HEALTH_WINDOW = timedelta(hours=24)


def soil_health_score(temperatures: Sequence[float]) -> float:
    """Score 0-100 for how close the mean temperature sits to 18-25 C."""
    if not temperatures:
        return 0.0

    average = sum(temperatures) / len(temperatures)
    if average < 10 or average > 35:
        score = 20.0
    elif average < 18:
        score = 60 - (18 - average) * 2
    elif average <= 25:
        score = 90 + (average - 18) * 1.1
    else:
        score = 90 - (average - 25) * 2
    return max(0.0, min(100.0, score))


def temperature_alert(soil_temperature: float, ambient_temperature: Optional[float] = None) -> Optional[str]:
    if soil_temperature <= 2:
        return "Frost Alert: Soil temperature is very low! Protect sensitive plants."
    if soil_temperature >= 35:
        return "High Temp Alert: Soil temperature is very high! Increase shade/moisture."
    if ambient_temperature is not None and ambient_temperature <= 0 and soil_temperature < 5:
        return "Frost Risk: Ambient temperature is freezing! Prepare for soil frost."
    return None


def describe_trend(trend_per_day: float) -> str:
    if trend_per_day > 1.5:
        return "Soil is warming up quickly - good for warm-season crops."
    if trend_per_day > 0.5:
        return "Soil is warming up gradually."
    if trend_per_day < -1.5:
        return "Soil is cooling down quickly - watch frost-sensitive plants."
    if trend_per_day < -0.5:
        return "Soil is cooling down gradually."
    return "Soil temperature stable."


class CropAdvisor:
    """Matches soil temperature against per-crop planting ranges."""

    def __init__(self, crop_ranges: Optional[Dict[str, Tuple[float, float]]] = None) -> None:
        self.crop_ranges = dict(crop_ranges or DEFAULT_CROP_RANGES)

    def recommend(self, soil_temperature: float) -> List[str]:
        return [
            crop
            for crop, (low, high) in self.crop_ranges.items()
            if low <= soil_temperature <= high
        ]

    def planting_window(self, soil_temperature: float, trend_per_day: float) -> str:
        starts_above = [low for low, _ in self.crop_ranges.values() if soil_temperature < low]
        if not starts_above:
            return "Soil temp is currently ideal for some crops."
        target = min(starts_above)

        if trend_per_day > 0.1:
            days = math.ceil((target - soil_temperature) / trend_per_day)
            return f"Optimal planting window in {days} days (warming trend)."
        if trend_per_day < -0.1:
            return "Soil is cooling. Consider planting now or wait for the next season."
        return "Soil temperature is stable. Planting window may be distant."


@dataclass
class Insights:
    soil_temperature: float
    trend_per_day: float
    health_score: float
    message: str
    is_alert: bool
    recommended_crops: List[str] = field(default_factory=list)
    planting_window: str = ""
    ambient_temperature: Optional[float] = None
    average_24h: float = 0.0
    high_24h: float = 0.0
    low_24h: float = 0.0


def build_insights(
    readings: Sequence[TemperatureReading],
    soil_temperature: float,
    ambient_temperature: Optional[float] = None,
    advisor: Optional[CropAdvisor] = None,
    now: Optional[datetime] = None,
) -> Insights:
    """Combine trend, health score, alerts and crop advice for the readings."""
    now = now or datetime.now(timezone.utc)
    advisor = advisor or CropAdvisor()
    trend = temperature_trend(readings, now=now)
    since = now - HEALTH_WINDOW
    recent = readings_since(readings, since)
    health = soil_health_score([reading.temperature for reading in recent])
    alert = temperature_alert(soil_temperature, ambient_temperature)
    return Insights(
        soil_temperature=soil_temperature,
        trend_per_day=trend,
        health_score=health,
        message=alert or describe_trend(trend),
        is_alert=alert is not None,
        recommended_crops=advisor.recommend(soil_temperature),
        planting_window=advisor.planting_window(soil_temperature, trend),
        ambient_temperature=ambient_temperature,
        average_24h=average_since(recent, since),
        high_24h=highest(recent),
        low_24h=lowest(recent),
    )
