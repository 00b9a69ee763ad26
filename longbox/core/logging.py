"""Logging configuration.

Application events go through structlog. Standard library loggers of
the libraries Longbox talks to (SQLAlchemy for the GCD dump, httpx for
ComicVine) are written as JSON lines to their own files so that request
retries and SQL noise never drown the identification log.
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import UTC, datetime
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from structlog.types import EventDict, Processor

ExcInfo = tuple[type[BaseException] | None, BaseException | None, TracebackType | None]
TracebackFrame = dict[str, str | int | None]
ExceptionDetails = dict[str, None | str | list[TracebackFrame]]

APP_LOG_FILE = "longbox.json.log"
DB_LOG_FILE = "longbox.db.json.log"
HTTP_LOG_FILE = "longbox.http.json.log"

DB_LOGGERS = ("sqlalchemy", "sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite")
HTTP_LOGGERS = ("httpx", "httpcore")
SERVER_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error")


def format_exception_for_json(exc_info: ExcInfo | None) -> ExceptionDetails:
    """Break an exception into JSON-friendly fields.

    Returns an empty dict when there is no exception. Frames are listed
    outermost first, each with its source line when it can be read.
    """
    if exc_info is None or exc_info == (None, None, None):
        return {}

    exc_type, exc_value, exc_tb = exc_info
    details: ExceptionDetails = {
        "exception_type": exc_type.__name__ if exc_type else None,
        "exception_message": str(exc_value) if exc_value else None,
        "exception_module": exc_type.__module__ if exc_type else None,
    }
    if exc_tb is None:
        return details

    details["traceback_frames"] = [
        {
            "filename": summary.filename,
            "lineno": summary.lineno,
            "function": summary.name,
            "source_line": summary.line or None,
        }
        for summary in traceback.extract_tb(exc_tb)
    ]
    details["traceback_text"] = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
    return details


def exception_processor(
    logger: structlog.BoundLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Replace ``exc_info`` with an ``exception`` block and a one-line summary."""
    exc_info = event_dict.pop("exc_info", None)
    if exc_info is True:
        exc_info = sys.exc_info()
    elif isinstance(exc_info, BaseException):
        exc_info = (type(exc_info), exc_info, exc_info.__traceback__)
    if not exc_info:
        return event_dict

    details = format_exception_for_json(exc_info)  # type: ignore[arg-type]
    if details:
        event_dict["exception"] = details
        if details.get("exception_type") and details.get("exception_message"):
            event_dict["exception_summary"] = (
                f"{details['exception_type']}: {details['exception_message']}"
            )
    return event_dict


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for third-party stdlib loggers."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            payload["exception"] = format_exception_for_json(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def _route_logger(name: str, handler: logging.Handler, level: int) -> None:
    """Make ``handler`` the only destination of a stdlib logger."""
    target = logging.getLogger(name)
    for existing in list(target.handlers):
        existing.close()
        target.removeHandler(existing)
    target.setLevel(level)
    target.propagate = False
    target.addHandler(handler)


def _json_file_handler(path: Path) -> logging.FileHandler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(JSONFormatter())
    return handler


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,  # trace_id, file_id, file_name
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        exception_processor,
        structlog.processors.format_exc_info,
    ]


def setup_logging(debug: bool = False, logs_dir: Path | None = None) -> None:
    """Configure structlog and the stdlib loggers underneath it.

    Without ``logs_dir`` everything goes to stdout: colored console output in
    debug, JSON otherwise. With ``logs_dir`` the application log becomes a
    JSON file, and database and HTTP client logs get JSON files of their own.
    Uvicorn stays on stdout either way.

    Args:
        debug: Log at DEBUG and render for a terminal
        logs_dir: Directory for JSON log files
    """
    level = logging.DEBUG if debug else logging.INFO
    db_level = logging.INFO if debug else logging.WARNING

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)

    file_handlers: dict[str, logging.Handler] = {}
    if logs_dir is not None:
        try:
            logs_dir.mkdir(parents=True, exist_ok=True)
            app_handler = logging.FileHandler(logs_dir / APP_LOG_FILE, encoding="utf-8")
            app_handler.setLevel(level)
            file_handlers = {
                APP_LOG_FILE: app_handler,
                DB_LOG_FILE: _json_file_handler(logs_dir / DB_LOG_FILE),
                HTTP_LOG_FILE: _json_file_handler(logs_dir / HTTP_LOG_FILE),
            }
        except OSError as e:
            sys.stderr.write(f"Warning: file logging disabled: {e}\n")
            file_handlers = {}

    app_handler = file_handlers.get(APP_LOG_FILE, console)
    logging.basicConfig(format="%(message)s", level=level, handlers=[app_handler], force=True)

    for name in SERVER_LOGGERS:
        _route_logger(name, console, level)
    if DB_LOG_FILE in file_handlers:
        for name in DB_LOGGERS:
            _route_logger(name, file_handlers[DB_LOG_FILE], db_level)
    if HTTP_LOG_FILE in file_handlers:
        for name in HTTP_LOGGERS:
            _route_logger(name, file_handlers[HTTP_LOG_FILE], logging.WARNING)

    renderer: Processor
    if debug and not file_handlers:
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[*_shared_processors(), renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    structlog.get_logger("longbox.logging").info(
        "Logging configured",
        level=logging.getLevelName(level),
        debug=debug,
        log_files={name: str(logs_dir / name) for name in file_handlers} if logs_dir else {},
        db_log_level=logging.getLevelName(db_level),
    )
