"""HTTP route definitions for the service."""

from __future__ import annotations

import asyncio
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.schemas import (
    CommandRequest,
    CommandResponse,
    ConnectRequest,
    DailyStatsModel,
    DeviceResponse,
    InsightsResponse,
    ManualReadingRequest,
    ReadingModel,
    ReadingsResponse,
    StatusResponse,
)
from services import analytics
from services.agronomy import build_insights
from services.errors import SessionConnectionError, TransportUnavailable
from services.session import BleSessionManager
from services.weather import WeatherClient
from settings import get_settings

router = APIRouter()


def get_manager(request: Request) -> BleSessionManager:
    return request.app.state.session


def get_weather(request: Request) -> Optional[WeatherClient]:
    return getattr(request.app.state, "weather", None)


def _status_payload(manager: BleSessionManager) -> StatusResponse:
    update = manager.status_update
    return StatusResponse(
        status=update.status,
        detail=update.detail,
        error=update.error,
        connected=manager.is_connected,
        current_temperature=manager.current_temperature,
        device_address=manager.device_address,
        reading_count=len(manager.readings),
    )


@router.get(
    "/status",
    response_model=StatusResponse,
    summary="Current connection status and temperature.",
)
async def get_status(manager: BleSessionManager = Depends(get_manager)) -> StatusResponse:
    return _status_payload(manager)


@router.post(
    "/scan",
    response_model=List[DeviceResponse],
    summary="Scan for nearby sensor peripherals.",
)
async def scan_devices(manager: BleSessionManager = Depends(get_manager)) -> List[DeviceResponse]:
    devices = await manager.scan()
    return [DeviceResponse(address=d.address, name=d.name, rssi=d.rssi) for d in devices]


@router.post(
    "/connect",
    response_model=StatusResponse,
    summary="Connect to a sensor and subscribe to its temperature notifications.",
)
async def connect_device(
    body: ConnectRequest,
    manager: BleSessionManager = Depends(get_manager),
) -> StatusResponse:
    try:
        await manager.connect(body.address)
    except TransportUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    except SessionConnectionError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc
    return _status_payload(manager)


@router.post(
    "/disconnect",
    response_model=StatusResponse,
    summary="Disconnect from the current sensor.",
)
async def disconnect_device(manager: BleSessionManager = Depends(get_manager)) -> StatusResponse:
    await manager.disconnect()
    return _status_payload(manager)


@router.post(
    "/commands",
    response_model=CommandResponse,
    summary="Send a text command such as BUZZER_ON to the sensor.",
)
async def send_command(
    body: CommandRequest,
    manager: BleSessionManager = Depends(get_manager),
) -> CommandResponse:
    if not manager.is_connected:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="No sensor connected.",
        )
    sent = await manager.send_command(body.command)
    if not sent:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Command {body.command!r} could not be delivered.",
        )
    return CommandResponse(command=body.command, sent=sent)


@router.get(
    "/readings",
    response_model=ReadingsResponse,
    summary="Recent readings, oldest first.",
)
async def list_readings(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    manager: BleSessionManager = Depends(get_manager),
) -> ReadingsResponse:
    readings = manager.readings
    if limit is not None:
        readings = readings[-limit:]
    return ReadingsResponse(
        current_temperature=manager.current_temperature,
        count=len(readings),
        readings=[ReadingModel(timestamp=r.timestamp, temperature=r.temperature) for r in readings],
    )


@router.post(
    "/readings",
    status_code=status.HTTP_201_CREATED,
    response_model=ReadingModel,
    summary="Record a manually entered temperature.",
)
async def add_reading(
    body: ManualReadingRequest,
    manager: BleSessionManager = Depends(get_manager),
) -> ReadingModel:
    reading = manager.add_manual_reading(body.temperature)
    return ReadingModel(timestamp=reading.timestamp, temperature=reading.temperature)


@router.delete(
    "/readings",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Clear the in-memory and stored reading history.",
)
async def clear_readings(manager: BleSessionManager = Depends(get_manager)) -> None:
    await manager.clear_history()


@router.get(
    "/readings/dates",
    response_model=List[str],
    summary="Days that have readings, newest first.",
)
async def reading_dates(manager: BleSessionManager = Depends(get_manager)) -> List[str]:
    return [day.isoformat() for day in analytics.dates_with_readings(manager.readings)]


@router.get(
    "/stats/daily",
    response_model=List[DailyStatsModel],
    summary="Per-day min, max and mean temperature, newest first.",
)
async def daily_stats(
    days: int = Query(7, ge=1, le=31),
    manager: BleSessionManager = Depends(get_manager),
) -> List[DailyStatsModel]:
    return [
        DailyStatsModel(
            day=stats.day,
            count=stats.count,
            min_value=stats.min_value,
            max_value=stats.max_value,
            mean_value=stats.mean_value,
        )
        for stats in analytics.daily_averages(manager.readings, days=days)
    ]


@router.get(
    "/insights",
    response_model=InsightsResponse,
    summary="Trend, soil health, alerts and crop advice.",
)
async def get_insights(
    manager: BleSessionManager = Depends(get_manager),
    weather: Optional[WeatherClient] = Depends(get_weather),
) -> InsightsResponse:
    ambient = None
    forecast = []
    if weather is not None and weather.enabled:
        settings = get_settings()
        ambient, forecast = await asyncio.gather(
            weather.current_temperature(settings.latitude, settings.longitude),
            weather.forecast(settings.latitude, settings.longitude),
        )

    insights = build_insights(manager.readings, manager.current_temperature, ambient)
    return InsightsResponse(
        soil_temperature=insights.soil_temperature,
        trend_per_day=insights.trend_per_day,
        health_score=insights.health_score,
        message=insights.message,
        is_alert=insights.is_alert,
        recommended_crops=insights.recommended_crops,
        planting_window=insights.planting_window,
        ambient_temperature=insights.ambient_temperature,
        average_24h=insights.average_24h,
        high_24h=insights.high_24h,
        low_24h=insights.low_24h,
        forecast=forecast,
    )


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
