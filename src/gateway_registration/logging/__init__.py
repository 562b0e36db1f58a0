"""Logging setup for processes embedding gateway registration."""

from .configurator import JsonFormatter, StandardLoggingConfigurator, configure_logging
from .events import StandardLoggingEventLogger, get_event_logger
from .protocol import LoggingConfiguratorProtocol, LoggingEventLoggerProtocol
from .settings import LoggingSettings, load_logging_settings

__all__ = [
    "JsonFormatter",
    "LoggingConfiguratorProtocol",
    "LoggingEventLoggerProtocol",
    "LoggingSettings",
    "StandardLoggingConfigurator",
    "StandardLoggingEventLogger",
    "configure_logging",
    "get_event_logger",
    "load_logging_settings",
]
