import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from datastore.preferences import PreferencesStore
from models.records import TemperatureReading
from services.errors import PersistenceFailure
from storage.history import READINGS_KEY, ReadingHistory


def _reading(minutes: int, temperature: float) -> TemperatureReading:
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return TemperatureReading(timestamp=base + timedelta(minutes=minutes), temperature=temperature)


def test_preferences_persist_to_disk_and_reload(tmp_path: Path) -> None:
    path = tmp_path / "prefs.json"
    store = PreferencesStore(name="test", persistence_path=path)

    store.set_string_list("items", ["a", "b"])
    store.set_value("threshold", 30.0)

    payload = json.loads(path.read_text())
    assert payload == {"items": ["a", "b"], "threshold": 30.0}

    reloaded = PreferencesStore(name="test", persistence_path=path)
    assert reloaded.get_string_list("items") == ["a", "b"]
    assert reloaded.get_value("threshold") == 30.0
    assert reloaded.keys() == ["items", "threshold"]


def test_preferences_return_copies() -> None:
    store = PreferencesStore(name="test")
    store.set_string_list("items", ["a"])

    fetched = store.get_string_list("items")
    fetched.append("mutated")  # type: ignore[union-attr]

    assert store.get_string_list("items") == ["a"]


def test_preferences_missing_key_and_remove() -> None:
    store = PreferencesStore(name="test")

    assert store.get_string_list("missing") is None
    assert store.get_value("missing", default=True) is True

    store.set_value("flag", False)
    store.remove("flag")
    store.remove("flag")
    assert store.keys() == []


def test_preferences_reject_non_string_lists() -> None:
    store = PreferencesStore(name="test")

    with pytest.raises(TypeError):
        store.set_string_list("items", ["a", 1])  # type: ignore[list-item]


def test_corrupt_preferences_file_loads_empty(tmp_path: Path) -> None:
    path = tmp_path / "prefs.json"
    path.write_text("{not json")

    store = PreferencesStore(name="test", persistence_path=path)

    assert store.keys() == []


def test_write_failure_raises_and_rolls_back(tmp_path: Path) -> None:
    path = tmp_path / "prefs.json"
    store = PreferencesStore(name="test", persistence_path=path)
    path.mkdir()

    with pytest.raises(PersistenceFailure):
        store.set_value("threshold", 30.0)

    assert store.get_value("threshold") is None


def test_history_appends_json_records() -> None:
    store = PreferencesStore(name="test")
    history = ReadingHistory(store)
    reading = _reading(0, 21.5)

    count = history.append(reading)

    assert count == 1
    stored = store.get_string_list(READINGS_KEY)
    assert stored is not None
    assert json.loads(stored[0]) == {
        "timestamp": "2024-01-01T00:00:00+00:00",
        "temperature": 21.5,
    }


def test_history_never_exceeds_capacity() -> None:
    history = ReadingHistory(PreferencesStore(name="test"), capacity=1000)

    for minute in range(1005):
        history.append(_reading(minute, float(minute)))

    loaded = history.load()
    assert history.count() == 1000
    assert loaded[0].temperature == 5.0
    assert loaded[-1].temperature == 1004.0


def test_history_load_sorts_and_skips_bad_entries(caplog) -> None:
    store = PreferencesStore(name="test")
    store.set_string_list(
        READINGS_KEY,
        [
            json.dumps(_reading(10, 20.0).to_json()),
            "not json",
            json.dumps({"timestamp": "2024-01-01T00:05:00", "temperature": 19.0}),
            json.dumps({"timestamp": "yesterday", "temperature": 18.0}),
            json.dumps({"timestamp": "2024-01-01T00:06:00Z"}),
        ],
    )
    history = ReadingHistory(store)

    loaded = history.load()

    assert [reading.temperature for reading in loaded] == [19.0, 20.0]
    assert loaded[0].timestamp.tzinfo is not None
    skipped = [r for r in caplog.records if "Skipping unreadable stored reading" in r.getMessage()]
    assert len(skipped) == 3


def test_history_clear_removes_key() -> None:
    store = PreferencesStore(name="test")
    history = ReadingHistory(store)
    history.append(_reading(0, 20.0))

    history.clear()

    assert store.get_string_list(READINGS_KEY) is None
    assert history.load() == []


def test_history_rejects_non_positive_capacity() -> None:
    with pytest.raises(ValueError):
        ReadingHistory(PreferencesStore(name="test"), capacity=0)
