from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler

from .protocol import LoggingConfiguratorProtocol
from .settings import LoggingSettings, load_logging_settings

_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}

_MARKER = "_gateway_registration_logging_configured"


class JsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra`` fields are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created).astimezone()
            .isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "thread": record.threadName,
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS and not key.startswith("_"):
                payload[key] = value
        return json.dumps(payload, ensure_ascii=False, default=str)


class StandardLoggingConfigurator(LoggingConfiguratorProtocol):
    def __init__(self, settings: LoggingSettings) -> None:
        self._settings = settings

    def configure(self) -> None:
        root = logging.getLogger()
        if getattr(root, _MARKER, False):
            return
        root.setLevel(self._settings.level)
        formatter = JsonFormatter()
        for handler in self._build_handlers():
            handler.setLevel(self._settings.level)
            handler.setFormatter(formatter)
            root.addHandler(handler)
        setattr(root, _MARKER, True)

    def _build_handlers(self) -> list[logging.Handler]:
        handlers: list[logging.Handler] = []
        if self._settings.console_enabled:
            handlers.append(logging.StreamHandler())
        if self._settings.log_dir:
            os.makedirs(self._settings.log_dir, exist_ok=True)
            handlers.append(
                TimedRotatingFileHandler(
                    os.path.join(self._settings.log_dir, "registration.log"),
                    when=self._settings.rotate_when,
                    backupCount=self._settings.backup_count,
                    encoding="utf-8",
                    delay=True,
                )
            )
        return handlers


def configure_logging(
    settings: LoggingSettings | None = None,
) -> LoggingConfiguratorProtocol:
    """Install JSON handlers on the root logger once per process."""
    configurator = StandardLoggingConfigurator(
        settings or load_logging_settings()
    )
    configurator.configure()
    return configurator
