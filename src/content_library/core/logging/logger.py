"""
Logger with structured event data.

Call sites pass a short message plus an optional ``data`` mapping::

    logger = get_logger(__name__)
    logger.warning("Failed to delete entry", data={"entry_id": entry_id})

The data is rendered as ``key=value`` pairs after the message so console and
file output stay greppable.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping

from rich.logging import RichHandler

from content_library.ui.console import log_console

if TYPE_CHECKING:
    from content_library.config import LoggerSettings

ROOT_LOGGER_NAME = "content_library"

_configure_lock = threading.Lock()
_configured_handler: logging.Handler | None = None


class Logger:
    """Thin wrapper around :class:`logging.Logger` that accepts event data."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._logger = logging.getLogger(name)

    def debug(self, message: str, data: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        self._emit(logging.DEBUG, message, data, kwargs)

    def info(self, message: str, data: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        self._emit(logging.INFO, message, data, kwargs)

    def warning(self, message: str, data: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        self._emit(logging.WARNING, message, data, kwargs)

    def error(self, message: str, data: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        self._emit(logging.ERROR, message, data, kwargs)

    def exception(
        self, message: str, data: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> None:
        kwargs.setdefault("exc_info", True)
        self._emit(logging.ERROR, message, data, kwargs)

    def _emit(
        self,
        level: int,
        message: str,
        data: Mapping[str, Any] | None,
        kwargs: dict[str, Any],
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        exc_info = kwargs.pop("exc_info", None)
        payload = dict(data or {})
        payload.update(kwargs)
        self._logger.log(
            level,
            _format_event(message, payload),
            exc_info=exc_info,
            extra={"event_data": payload},
        )


def _format_event(message: str, data: Mapping[str, Any]) -> str:
    if not data:
        return message
    rendered = " ".join(f"{key}={value!r}" for key, value in data.items())
    return f"{message} [{rendered}]"


def get_logger(name: str) -> Logger:
    return Logger(name)


def configure_logging(settings: LoggerSettings | None) -> None:
    """Install the handler described by ``settings`` on the package logger.

    Calling this again replaces the previously installed handler.
    """
    global _configured_handler

    root = logging.getLogger(ROOT_LOGGER_NAME)
    with _configure_lock:
        if _configured_handler is not None:
            root.removeHandler(_configured_handler)
            _configured_handler.close()
            _configured_handler = None

        handler: logging.Handler
        if settings is None or settings.type == "none":
            handler = logging.NullHandler()
            root.addHandler(handler)
            root.propagate = False
            _configured_handler = handler
            return

        if settings.type == "file":
            log_path = Path(settings.path).expanduser()
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(log_path, encoding="utf-8")
            handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
            )
        else:
            handler = RichHandler(
                console=log_console,
                show_path=False,
                rich_tracebacks=True,
                markup=False,
            )

        root.setLevel(settings.level.upper())
        root.addHandler(handler)
        root.propagate = False
        _configured_handler = handler
