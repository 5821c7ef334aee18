"""
Structured JSON Logging.

Every record is rendered as a single JSON object per line, on stdout and
in a size-rotated log file.  Structured fields passed through ``extra``
are kept as JSON values (not stringified) so that the ``event`` and
``user_id`` tags written by the services can be filtered directly.

Services never call :func:`logging.getLogger` themselves; they receive a
:class:`StructuredLogger` through their constructor.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, TextIO, Union

from cityreport.utils.general import convert_to_json_safe

_RESERVED_ATTRS: frozenset[str] = frozenset(
    logging.LogRecord(
        name="", level=0, pathname="", lineno=0, msg="", args=(), exc_info=None
    ).__dict__
) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    """Render a record as ``{timestamp, level, logger_name, message, ...}``.

    A structured ``event`` tag is promoted to the top level; any other
    ``extra`` fields are grouped under ``extra``.  Tracebacks go under
    ``exception``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.getMessage(),
        }

        fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        event = fields.pop("event", None)
        if event is not None:
            entry["event"] = str(event)
        if fields:
            entry["extra"] = convert_to_json_safe(fields)

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            entry["exception"] = record.exc_text

        return json.dumps(entry, ensure_ascii=False, default=str)


def _resolve_level(level: Union[int, str, None], fallback: str) -> int:
    if isinstance(level, int):
        return level
    name = (level or fallback).upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


class StructuredLogger:
    """Injectable wrapper around a named :class:`logging.Logger`.

    Handlers are attached once per logger name, so building several
    ``StructuredLogger`` objects for the same name does not duplicate
    output.  Unset arguments fall back to ``LOG_LEVEL``, ``LOG_FILE``,
    ``LOG_MAX_BYTES`` and ``LOG_BACKUP_COUNT`` from :class:`AppConfig`.

    Usage::

        log = StructuredLogger(name="cityreport.sync")
        log.info("Report pushed", extra={"event": "REPORT_PUSHED", "report_id": "abc"})
    """

    def __init__(
        self,
        name: str = "cityreport",
        level: Union[int, str, None] = None,
        stream: Optional[TextIO] = None,
        log_file: Optional[str] = None,
        max_bytes: Optional[int] = None,
        backup_count: Optional[int] = None,
    ) -> None:
        # Settings are read on first construction, not at import.
        from cityreport.config import get_config
        cfg = get_config()

        self._logger: logging.Logger = logging.getLogger(name)
        resolved_level = _resolve_level(level, cfg.LOG_LEVEL)
        self._logger.setLevel(resolved_level)

        if self._logger.handlers:
            return

        formatter = JSONFormatter()
        console = logging.StreamHandler(stream or sys.stdout)
        console.setFormatter(formatter)
        self._logger.addHandler(console)

        target = log_file or cfg.LOG_FILE
        handler = _rotating_handler(
            target,
            max_bytes if max_bytes is not None else cfg.LOG_MAX_BYTES,
            backup_count if backup_count is not None else cfg.LOG_BACKUP_COUNT,
        )
        if handler is None:
            self._logger.warning(
                "Log file '%s' is not writable; logging to console only.", target,
            )
            return
        handler.setFormatter(formatter)
        self._logger.addHandler(handler)

    @property
    def logger(self) -> logging.Logger:
        """The underlying :class:`logging.Logger`."""
        return self._logger

    def debug(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.error(msg, *args, **kwargs)

    def critical(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.critical(msg, *args, **kwargs)


def _rotating_handler(
    log_file: str,
    max_bytes: int,
    backup_count: int,
) -> Optional[RotatingFileHandler]:
    """Open a size-rotated UTF-8 log file, or ``None`` if it cannot be created."""
    try:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(
            filename=str(path),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    except OSError:
        return None


def get_logger(name: str = "cityreport") -> StructuredLogger:
    """Return a :class:`StructuredLogger` for *name* with configured defaults."""
    return StructuredLogger(name=name)
