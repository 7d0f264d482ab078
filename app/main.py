from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from logging_config import configure_logging
from services.session import build_session_manager
from services.weather import WeatherClient
from settings import get_settings


def build_weather_client() -> WeatherClient:
    settings = get_settings()
    return WeatherClient(api_key=settings.weather_api_key, base_url=settings.weather_api_url)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    session = build_session_manager()
    weather = build_weather_client()
    await session.initialize()
    app.state.session = session
    app.state.weather = weather
    try:
        yield
    finally:
        await session.shutdown()
        await weather.aclose()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Soil Temperature Monitor",
        description="Local API over a BLE soil temperature sensor session.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app

app = create_app()
