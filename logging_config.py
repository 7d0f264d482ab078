from __future__ import annotations

import logging
import time
from enum import Enum
from logging.config import dictConfig
from typing import Any, Dict, Iterable, Tuple

from settings import get_settings

SESSION_CONTEXT_KEYS: Tuple[str, ...] = (
    "status",
    "device_address",
    "temperature",
    "reading_count",
    "payload",
    "reason",
    "error",
)

# bleak logs every advertisement at DEBUG and httpx every request at INFO.
_QUIET_LOGGERS = ("bleak", "httpx", "httpcore")

_MAX_CONTEXT_VALUE = 80

_configured = False


def _render_context_value(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, float):
        return f"{value:.2f}"
    text = str(value)
    if len(text) > _MAX_CONTEXT_VALUE:
        return text[: _MAX_CONTEXT_VALUE - 3] + "..."
    return text


class SessionContextFormatter(logging.Formatter):
    """UTC formatter that appends session context passed through ``extra=``.

    Only keys listed in ``context_keys`` are rendered, in that order, so a
    log line about a dropped notification reads like
    ``... Dropping malformed notification [payload=b'abc' reason=...]``.
    """

    converter = time.gmtime

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        context_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.context_keys = tuple(context_keys or SESSION_CONTEXT_KEYS)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = [
            f"{key}={_render_context_value(getattr(record, key))}"
            for key in self.context_keys
            if getattr(record, key, None) is not None
        ]
        if not context:
            return line
        return f"{line} [{' '.join(context)}]"


def build_logging_config(level: str | int) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "session": {
                "()": "logging_config.SessionContextFormatter",
                "fmt": "%(asctime)sZ %(levelname)-7s %(name)s: %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "session",
            }
        },
        "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
        "root": {"handlers": ["console"], "level": level},
    }


def configure_logging(level: str | int | None = None) -> None:
    """Install the console handler once per process."""
    global _configured
    if _configured:
        return
    dictConfig(build_logging_config(level if level is not None else get_settings().log_level))
    _configured = True
