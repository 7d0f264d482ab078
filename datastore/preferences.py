from __future__ import annotations
import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from services.errors import PersistenceFailure
from settings import get_settings

logger = logging.getLogger(__name__)


class PreferencesStore:
    """Durable key-value map holding scalars and string lists.

    Values live in memory and, when ``persistence_path`` is set, are mirrored
    to a JSON file after every change.
    """

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._values: Dict[str, Any] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def get_string_list(self, key: str) -> Optional[List[str]]:
        with self._lock:
            value = self._values.get(key)
            if value is None:
                return None
            if not isinstance(value, list):
                raise TypeError(f"Value under {key!r} is not a string list.")
            return list(value)

    def set_string_list(self, key: str, values: List[str]) -> None:
        if not all(isinstance(value, str) for value in values):
            raise TypeError("String lists may only contain strings.")
        self._write(key, list(values))

    def get_value(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def set_value(self, key: str, value: str | int | float | bool) -> None:
        self._write(key, value)

    def remove(self, key: str) -> None:
        with self._lock:
            if key not in self._values:
                return
            previous = self._values.pop(key)
            try:
                self._persist()
            except PersistenceFailure:
                self._values[key] = previous
                raise

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._values)

    def _write(self, key: str, value: Any) -> None:
        with self._lock:
            missing = key not in self._values
            previous = self._values.get(key)
            self._values[key] = value
            try:
                self._persist()
            except PersistenceFailure:
                if missing:
                    self._values.pop(key, None)
                else:
                    self._values[key] = previous
                raise

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        try:
            self.persistence_path.write_text(json.dumps(self._values, indent=2, sort_keys=True))
        except OSError as exc:
            raise PersistenceFailure(
                f"Could not write store {self.name!r} to {self.persistence_path}: {exc}"
            ) from exc

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(
                "Discarding unreadable preferences file %s",
                self.persistence_path,
                extra={"error": str(exc)},
            )
            data = {}

        if isinstance(data, dict):
            self._values.update(data)


@lru_cache
def build_default_store(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> PreferencesStore:
    settings = get_settings()
    store_name = "preferences" if name is None else name
    store_path = settings.store_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return PreferencesStore(name=store_name, persistence_path=persistence)
