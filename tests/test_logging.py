import logging

from logging_config import SessionContextFormatter, build_logging_config
from services.session import SessionStatus


def _record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("services.session", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_appends_known_context_in_order() -> None:
    formatter = SessionContextFormatter(fmt="%(message)s")

    line = formatter.format(
        _record(
            "Connected to AA:01",
            device_address="AA:01",
            status=SessionStatus.connected,
            temperature=21.456,
            unrelated="ignored",
        )
    )

    assert line == "Connected to AA:01 [status=connected device_address=AA:01 temperature=21.46]"


def test_formatter_truncates_long_payloads() -> None:
    formatter = SessionContextFormatter(fmt="%(message)s", context_keys=["payload"])

    line = formatter.format(_record("Dropping malformed notification", payload="x" * 200))

    assert line.endswith("...]")
    assert len(line) < 140


def test_formatter_leaves_plain_messages_alone() -> None:
    formatter = SessionContextFormatter(fmt="%(message)s")

    assert formatter.format(_record("Session initialized")) == "Session initialized"


def test_logging_config_quiets_third_party_loggers() -> None:
    config = build_logging_config("DEBUG")

    assert config["root"]["level"] == "DEBUG"
    assert config["loggers"]["bleak"] == {"level": "WARNING"}
    assert config["loggers"]["httpx"] == {"level": "WARNING"}
