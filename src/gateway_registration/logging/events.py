from __future__ import annotations

import logging
from collections.abc import Mapping

from .protocol import ExcInfo, LoggingEventLoggerProtocol


class StandardLoggingEventLogger(LoggingEventLoggerProtocol):
    """Forward registration events to a stdlib logger.

    ``fields`` become ``extra`` attributes on the record, which the JSON
    formatter flattens into the output object.
    """

    def info(
        self,
        message: str,
        *args: object,
        logger: logging.Logger | None = None,
        extra: Mapping[str, object] | None = None,
        exc_info: ExcInfo = None,
        stacklevel: int = 3,
    ) -> None:
        self._emit(logging.INFO, message, args, logger, extra, exc_info,
                   stacklevel)

    def warning(
        self,
        message: str,
        *args: object,
        logger: logging.Logger | None = None,
        extra: Mapping[str, object] | None = None,
        exc_info: ExcInfo = None,
        stacklevel: int = 3,
    ) -> None:
        self._emit(logging.WARNING, message, args, logger, extra, exc_info,
                   stacklevel)

    def error(
        self,
        message: str,
        *args: object,
        logger: logging.Logger | None = None,
        extra: Mapping[str, object] | None = None,
        exc_info: ExcInfo = None,
        stacklevel: int = 3,
    ) -> None:
        self._emit(logging.ERROR, message, args, logger, extra, exc_info,
                   stacklevel)

    def exception(
        self,
        message: str,
        *args: object,
        logger: logging.Logger | None = None,
        extra: Mapping[str, object] | None = None,
        exc_info: ExcInfo = None,
        stacklevel: int = 3,
    ) -> None:
        self._emit(logging.ERROR, message, args, logger, extra,
                   True if exc_info is None else exc_info, stacklevel)

    @staticmethod
    def _emit(
        level: int,
        message: str,
        args: tuple[object, ...],
        logger: logging.Logger | None,
        extra: Mapping[str, object] | None,
        exc_info: ExcInfo,
        stacklevel: int,
    ) -> None:
        target = logger or logging.getLogger("gateway_registration")
        kwargs: dict[str, object] = {"stacklevel": stacklevel}
        if extra is not None:
            kwargs["extra"] = dict(extra)
        if exc_info is not None:
            kwargs["exc_info"] = exc_info
        target.log(level, message, *args, **kwargs)  # type: ignore[arg-type]


_EVENT_LOGGER: LoggingEventLoggerProtocol = StandardLoggingEventLogger()


def get_event_logger() -> LoggingEventLoggerProtocol:
    return _EVENT_LOGGER
