from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_SERVICE_UUID_ENV = "SOIL_BLE_SERVICE_UUID"
_TX_UUID_ENV = "SOIL_BLE_TX_UUID"
_RX_UUID_ENV = "SOIL_BLE_RX_UUID"
_NAME_PREFIX_ENV = "SOIL_BLE_NAME_PREFIX"
_SCAN_TIMEOUT_ENV = "SOIL_SCAN_TIMEOUT"
_CONNECT_TIMEOUT_ENV = "SOIL_CONNECT_TIMEOUT"
_RECONNECT_DELAY_ENV = "SOIL_RECONNECT_DELAY"
_MEMORY_CAPACITY_ENV = "SOIL_MEMORY_CAPACITY"
_HISTORY_CAPACITY_ENV = "SOIL_HISTORY_CAPACITY"
_STORE_PATH_ENV = "SOIL_STORE_PATH"
_WEATHER_URL_ENV = "WEATHER_API_URL"
_WEATHER_KEY_ENV = "WEATHER_API_KEY"
_LATITUDE_ENV = "WEATHER_LATITUDE"
_LONGITUDE_ENV = "WEATHER_LONGITUDE"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_SERVICE_UUID = "4fafc201-1fb5-459e-8fcc-c5c9c331914b"
DEFAULT_TX_UUID = "beb5483e-36e1-4688-b7f5-ea07361b26a9"
DEFAULT_RX_UUID = "beb5483e-36e1-4688-b7f5-ea07361b26a8"


@dataclass(frozen=True)
class Settings:
    service_uuid: str
    tx_uuid: str
    rx_uuid: str
    name_prefix: Optional[str]
    scan_timeout: float
    connect_timeout: float
    reconnect_delay: float
    memory_capacity: int
    history_capacity: int
    store_path: Optional[str]
    weather_api_url: str
    weather_api_key: Optional[str]
    latitude: float
    longitude: float
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_coordinate(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value.strip())
    except ValueError:
        return default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        service_uuid=_read_str_env(_SERVICE_UUID_ENV, DEFAULT_SERVICE_UUID).lower(),
        tx_uuid=_read_str_env(_TX_UUID_ENV, DEFAULT_TX_UUID).lower(),
        rx_uuid=_read_str_env(_RX_UUID_ENV, DEFAULT_RX_UUID).lower(),
        name_prefix=_read_optional_env(_NAME_PREFIX_ENV, "ESP32"),
        scan_timeout=_read_positive_float(_SCAN_TIMEOUT_ENV, 10.0),
        connect_timeout=_read_positive_float(_CONNECT_TIMEOUT_ENV, 15.0),
        reconnect_delay=_read_positive_float(_RECONNECT_DELAY_ENV, 2.0),
        memory_capacity=_read_positive_int(_MEMORY_CAPACITY_ENV, 500),
        history_capacity=_read_positive_int(_HISTORY_CAPACITY_ENV, 1000),
        store_path=_read_optional_env(_STORE_PATH_ENV, "./tmp/preferences.json"),
        weather_api_url=_read_str_env(_WEATHER_URL_ENV, "https://api.weatherapi.com/v1"),
        weather_api_key=_read_optional_env(_WEATHER_KEY_ENV, None),
        latitude=_read_coordinate(_LATITUDE_ENV, 0.31361),
        longitude=_read_coordinate(_LONGITUDE_ENV, 32.58111),
        log_level=_read_log_level("INFO"),
    )
