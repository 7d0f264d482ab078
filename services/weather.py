"""Ambient weather lookups against WeatherAPI.com."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ForecastHour(BaseModel):
    time: datetime
    temp_c: float
    icon_url: str
    chance_of_rain: float = Field(0.0, ge=0, le=100)


class ForecastDay(BaseModel):
    day: date
    max_temp_c: float
    min_temp_c: float
    condition: str
    icon_url: str
    hourly: List[ForecastHour] = Field(default_factory=list)


def _icon_url(condition: Dict[str, Any]) -> str:
    icon = condition.get("icon") or ""
    return f"https:{icon}" if icon.startswith("//") else icon


def _parse_forecast(payload: Dict[str, Any]) -> List[ForecastDay]:
    days: List[ForecastDay] = []
    for day_data in payload["forecast"]["forecastday"]:
        summary = day_data["day"]
        hourly = [
            ForecastHour(
                time=datetime.fromisoformat(hour["time"]),
                temp_c=hour["temp_c"],
                icon_url=_icon_url(hour["condition"]),
                chance_of_rain=hour.get("chance_of_rain", 0),
            )
            for hour in day_data.get("hour", [])
        ]
        days.append(
            ForecastDay(
                day=date.fromisoformat(day_data["date"]),
                max_temp_c=summary["maxtemp_c"],
                min_temp_c=summary["mintemp_c"],
                condition=summary["condition"]["text"],
                icon_url=_icon_url(summary["condition"]),
                hourly=hourly,
            )
        )
    return days


class WeatherClient:
    """Thin HTTP client; every failure degrades to ``None`` or ``[]``."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.weatherapi.com/v1",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def current_temperature(self, latitude: float, longitude: float) -> Optional[float]:
        payload = await self._get("/current.json", {"q": f"{latitude},{longitude}"})
        if payload is None:
            return None
        try:
            value = payload["current"]["temp_c"]
            return float(value) if value is not None else None
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Unexpected current weather payload", extra={"reason": str(exc)})
            return None

    async def forecast(self, latitude: float, longitude: float, days: int = 3) -> List[ForecastDay]:
        payload = await self._get(
            "/forecast.json", {"q": f"{latitude},{longitude}", "days": str(days)}
        )
        if payload is None:
            return []
        try:
            return _parse_forecast(payload)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Unexpected forecast payload", extra={"reason": str(exc)})
            return []

    async def _get(self, path: str, params: Dict[str, str]) -> Optional[Dict[str, Any]]:
        if not self.enabled:
            return None
        try:
            response = await self._client.get(path, params={"key": self.api_key, **params})
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Weather request failed",
                extra={"status": exc.response.status_code, "reason": path},
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Weather request error", extra={"reason": path, "error": str(exc)})
        return None
