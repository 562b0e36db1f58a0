from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import env_bool, env_int, env_str
from ..errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class LoggingSettings:
    level: int = logging.INFO
    console_enabled: bool = True
    log_dir: str | None = None
    rotate_when: str = "midnight"
    backup_count: int = 7

    @classmethod
    def from_env(cls) -> "LoggingSettings":
        """Read ``LOG_*`` variables; invalid values raise ConfigurationError."""
        return cls(
            level=_parse_level(env_str("LOG_LEVEL", "INFO")),
            console_enabled=env_bool("LOG_CONSOLE_ENABLED", True),
            log_dir=env_str("LOG_DIR", "") or None,
            rotate_when=env_str("LOG_ROTATE_WHEN", "midnight"),
            backup_count=env_int("LOG_BACKUP_COUNT", 7),
        )


def load_logging_settings() -> LoggingSettings:
    return LoggingSettings.from_env()


def _parse_level(name: str) -> int:
    levels = logging.getLevelNamesMapping()
    try:
        return levels[name.upper()]
    except KeyError as e:
        raise ConfigurationError(f"invalid LOG_LEVEL: {name!r}") from e
