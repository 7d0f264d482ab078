"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from services.session import SessionStatus
from services.weather import ForecastDay


class StatusResponse(BaseModel):
    """Snapshot of the BLE session."""

    status: SessionStatus
    detail: str
    error: Optional[str] = Field(None, description="Failure kind behind the last status change.")
    connected: bool
    current_temperature: float
    device_address: Optional[str] = None
    reading_count: int = Field(..., ge=0)


class DeviceResponse(BaseModel):
    address: str
    name: Optional[str] = None
    rssi: Optional[int] = None


class ConnectRequest(BaseModel):
    address: str = Field(..., min_length=1, description="Peripheral address or platform identifier.")


class CommandRequest(BaseModel):
    command: str = Field(..., min_length=1, examples=["BUZZER_ON", "BUZZER_OFF"])


class CommandResponse(BaseModel):
    command: str
    sent: bool


class ReadingModel(BaseModel):
    timestamp: datetime
    temperature: float


class ManualReadingRequest(BaseModel):
    temperature: float = Field(..., ge=-60, le=100)


class ReadingsResponse(BaseModel):
    current_temperature: float
    count: int = Field(..., ge=0)
    readings: List[ReadingModel] = Field(default_factory=list)


class DailyStatsModel(BaseModel):
    day: date
    count: int = Field(..., ge=0)
    min_value: float
    max_value: float
    mean_value: float


class InsightsResponse(BaseModel):
    """Derived soil conditions and advice."""

    soil_temperature: float
    trend_per_day: float = Field(..., description="Degrees Celsius per day over the last hour.")
    health_score: float = Field(..., ge=0, le=100)
    message: str
    is_alert: bool
    recommended_crops: List[str] = Field(default_factory=list)
    planting_window: str
    ambient_temperature: Optional[float] = None
    average_24h: float = Field(0.0, description="Mean of the readings from the last 24 hours.")
    high_24h: float = 0.0
    low_24h: float = 0.0
    forecast: List[ForecastDay] = Field(default_factory=list)
