from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest

from gateway_registration.logging import (
    JsonFormatter,
    LoggingSettings,
    configure_logging,
    get_event_logger,
)

_MARKER = "_gateway_registration_logging_configured"


@pytest.fixture
def clean_root() -> Iterator[logging.Logger]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    if hasattr(root, _MARKER):
        delattr(root, _MARKER)


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        "gateway_registration.test", logging.INFO, __file__, 1,
        "registered %s", ("10.0.0.5:9000",), None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    def test_basic_fields(self) -> None:
        payload = json.loads(JsonFormatter().format(_record()))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "gateway_registration.test"
        assert payload["message"] == "registered 10.0.0.5:9000"
        assert "timestamp" in payload

    def test_extra_fields_merged(self) -> None:
        payload = json.loads(
            JsonFormatter().format(
                _record(service="svc", upstream_id="svc_10.0.0.5_9000")
            )
        )

        assert payload["service"] == "svc"
        assert payload["upstream_id"] == "svc_10.0.0.5_9000"


class TestLoggingSettings:
    def test_defaults(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            settings = LoggingSettings.from_env()

        assert settings == LoggingSettings()

    def test_from_env(self) -> None:
        env = {
            "LOG_LEVEL": "debug",
            "LOG_CONSOLE_ENABLED": "false",
            "LOG_DIR": "/var/log/svc",
            "LOG_ROTATE_WHEN": "H",
            "LOG_BACKUP_COUNT": "3",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = LoggingSettings.from_env()

        assert settings.level == logging.DEBUG
        assert settings.console_enabled is False
        assert settings.log_dir == "/var/log/svc"
        assert settings.rotate_when == "H"
        assert settings.backup_count == 3

    def test_invalid_level(self) -> None:
        with patch.dict(os.environ, {"LOG_LEVEL": "LOUD"}, clear=True):
            with pytest.raises(ValueError, match="LOG_LEVEL"):
                LoggingSettings.from_env()

    def test_invalid_bool(self) -> None:
        with patch.dict(os.environ, {"LOG_CONSOLE_ENABLED": "maybe"}, clear=True):
            with pytest.raises(ValueError, match="LOG_CONSOLE_ENABLED"):
                LoggingSettings.from_env()

    def test_bool_spellings_match_registration_config(self) -> None:
        with patch.dict(os.environ, {"LOG_CONSOLE_ENABLED": "n"}, clear=True):
            assert LoggingSettings.from_env().console_enabled is False
        with patch.dict(os.environ, {"LOG_CONSOLE_ENABLED": "y"}, clear=True):
            assert LoggingSettings.from_env().console_enabled is True


class TestConfigureLogging:
    def test_idempotent(self, clean_root: logging.Logger) -> None:
        if hasattr(clean_root, _MARKER):
            delattr(clean_root, _MARKER)
        before = len(clean_root.handlers)
        settings = LoggingSettings(level=logging.WARNING)

        configure_logging(settings)
        configure_logging(settings)

        assert len(clean_root.handlers) == before + 1
        assert clean_root.level == logging.WARNING

    def test_file_handler(
        self, clean_root: logging.Logger, tmp_path: Path
    ) -> None:
        if hasattr(clean_root, _MARKER):
            delattr(clean_root, _MARKER)
        settings = LoggingSettings(
            console_enabled=False, log_dir=str(tmp_path / "logs")
        )

        configure_logging(settings)
        get_event_logger().info(
            "registered", extra={"service": "svc"},
            logger=logging.getLogger("gateway_registration.test"),
        )
        for handler in clean_root.handlers:
            handler.flush()

        lines = (tmp_path / "logs" / "registration.log").read_text(
            encoding="utf-8"
        ).splitlines()
        payload = json.loads(lines[-1])
        assert payload["message"] == "registered"
        assert payload["service"] == "svc"
