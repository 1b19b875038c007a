"""
Centralized logging configuration with request_id and sweep_id context support using loguru.

All stdlib logging.getLogger() calls are routed into loguru and written to stderr
as one JSON object per line. The request_id (HTTP requests) and sweep_id
(verification sweeps) context variables are attached automatically.
"""

import json
import logging
import sys
import traceback
from contextvars import ContextVar
from types import FrameType
from typing import Optional

from loguru import logger

from app.core.config import settings

# Context variables, safe across threads and asyncio tasks
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
sweep_id_var: ContextVar[str] = ContextVar("sweep_id", default="-")


class InterceptHandler(logging.Handler):
    """
    Handler that intercepts standard logging calls and redirects them to loguru.
    """

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where the logging call originated
        frame: Optional[FrameType] = sys._getframe(settings.LOGGING_FRAME_DEPTH)
        depth: int = settings.LOGGING_FRAME_DEPTH

        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def context_filter(record):
    """
    Filter that adds request_id and sweep_id from contextvars to log records.
    """
    request_id = request_id_var.get()
    if request_id and request_id != "-":
        record["extra"]["request_id"] = request_id

    sweep_id = sweep_id_var.get()
    if sweep_id and sweep_id != "-":
        record["extra"]["sweep_id"] = sweep_id

    return record


def build_json_record(record) -> dict:
    """
    Build the JSON log record from a loguru record.

    Fields: timestamp, level, logger, message, request_id / sweep_id when set,
    exception (or null), process and thread info.
    """
    log_record = {
        "timestamp": record["time"].strftime("%Y-%m-%d %H:%M:%S"),
        "level": record["level"].name,
        "logger": record["name"],
        "message": record["message"],
    }

    for key in ("request_id", "sweep_id"):
        if key in record["extra"]:
            log_record[key] = record["extra"][key]

    exception = record["exception"]
    if exception:
        traceback_text = None
        if exception.traceback:
            try:
                traceback_text = "".join(
                    traceback.format_exception(
                        exception.type, exception.value, exception.traceback
                    )
                ).strip()
            except Exception:
                traceback_text = str(exception.traceback)

        log_record["exception"] = {
            "type": exception.type.__name__ if exception.type else None,
            "value": str(exception.value) if exception.value else None,
            "traceback": traceback_text,
        }
    else:
        log_record["exception"] = None

    log_record["process"] = {
        "id": record["process"].id,
        "name": record["process"].name,
    }
    log_record["thread"] = {
        "id": record["thread"].id,
        "name": record["thread"].name,
    }

    return log_record


def json_sink(message):
    """Write each record to stderr as a single JSON line."""
    sys.stderr.write(json.dumps(build_json_record(message.record)) + "\n")


def configure_logging(log_level: Optional[str] = None):
    """
    Configure logging for the application using loguru.

    Args:
        log_level: Overrides settings.LOG_LEVEL (used by the sweep CLI)
    """
    logger.remove()

    level = (log_level or settings.LOG_LEVEL).upper()

    logger.add(
        json_sink,
        level=level,
        backtrace=True,
        diagnose=False,
        filter=context_filter,
    )

    # Intercept standard logging
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # Quiet down chatty libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logger.info("Logging configured successfully with loguru")


def set_request_id(request_id: str):
    """Set the request_id for the current context (called by middleware)."""
    request_id_var.set(request_id)


def clear_request_id():
    request_id_var.set("-")


def get_request_id() -> str:
    return request_id_var.get()


def set_sweep_id(sweep_id: str):
    """
    Set the sweep_id for the current context.

    Called at the start of every verification sweep so that all logs emitted
    while the sweep runs (including the Firestore client's) carry the id.
    """
    sweep_id_var.set(sweep_id)


def clear_sweep_id():
    sweep_id_var.set("-")


def get_sweep_id() -> str:
    return sweep_id_var.get()
