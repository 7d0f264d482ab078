from __future__ import annotations

from typing import Iterable

from datastore.preferences import build_default_store
from services.session import build_session_manager
from settings import DEFAULT_SERVICE_UUID, get_settings

from fakes import FakeTransport


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    store_path = tmp_path / "prefs.json"

    monkeypatch.setenv("SOIL_BLE_TX_UUID", "BEB5483E-36E1-4688-B7F5-EA07361B26AA")
    monkeypatch.setenv("SOIL_BLE_NAME_PREFIX", "SOIL")
    monkeypatch.setenv("SOIL_CONNECT_TIMEOUT", "5")
    monkeypatch.setenv("SOIL_MEMORY_CAPACITY", "50")
    monkeypatch.setenv("SOIL_HISTORY_CAPACITY", "80")
    monkeypatch.setenv("SOIL_STORE_PATH", str(store_path))
    monkeypatch.setenv("WEATHER_API_KEY", "abc123")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    caches = (get_settings, build_default_store)
    _clear_caches(caches)

    try:
        settings = get_settings()
        store = build_default_store()
        manager = build_session_manager(transport=FakeTransport())

        assert settings.tx_uuid == "beb5483e-36e1-4688-b7f5-ea07361b26aa"
        assert settings.service_uuid == DEFAULT_SERVICE_UUID
        assert settings.weather_api_key == "abc123"
        assert settings.log_level == "DEBUG"
        assert store.persistence_path == store_path
        assert manager.name_prefix == "SOIL"
        assert manager.connect_timeout == 5.0
        assert manager.memory_capacity == 50
        assert manager.history.capacity == 80
        assert manager.history.store is store
        manager.executor.shutdown()
    finally:
        _clear_caches(caches)


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("SOIL_SCAN_TIMEOUT", "soon")
    monkeypatch.setenv("SOIL_MEMORY_CAPACITY", "-3")
    monkeypatch.setenv("WEATHER_LATITUDE", "north")
    monkeypatch.setenv("SOIL_BLE_NAME_PREFIX", "  ")
    get_settings.cache_clear()

    try:
        settings = get_settings()

        assert settings.scan_timeout == 10.0
        assert settings.memory_capacity == 500
        assert settings.latitude == 0.31361
        assert settings.name_prefix is None
    finally:
        get_settings.cache_clear()
