"""
Structured Logging Configuration - Single setup for all modules.

Call setup_logging() once at application startup. All modules then use:
    import logging
    logger = logging.getLogger("tastecrm.<area>")

Supports two formats:
- "text": Human-readable with timestamps and module names
- "json": Machine-parseable JSON lines for production/aggregation

Usage:
    from tastecrm.logging_config import setup_logging
    setup_logging()  # Call once at startup
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from tastecrm import config

# Extra fields copied onto JSON records when a caller passes them via extra={}
EXTRA_FIELDS = ("flow", "stage", "row_index", "request_id", "duration_ms",
                "severity", "user_id")


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter for production use."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info and record.exc_info[0]:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        return json.dumps(log_entry)


class TextFormatter(logging.Formatter):
    """Human-readable log formatter for development."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )


_initialized = False


def setup_logging(level: str = None, fmt: str = None, log_file: str = None):
    """Configure logging for the entire application.

    Safe to call multiple times (idempotent).

    Args:
        level: Log level override (default: config.LOG_LEVEL)
        fmt: Format override ("text" or "json", default: config.LOG_FORMAT)
        log_file: Log file path override (default: config.LOG_FILE)
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = level or config.LOG_LEVEL
    fmt = fmt or config.LOG_FORMAT
    log_file = log_file or config.LOG_FILE

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove any existing handlers (prevents duplicate output)
    root_logger.handlers.clear()

    formatter = JSONFormatter() if fmt == "json" else TextFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Quiet down noisy libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logger = logging.getLogger("tastecrm")
    logger.info("Logging configured: level=%s, format=%s%s",
                level, fmt, f", file={log_file}" if log_file else "")


def get_flow_logger(flow_name: str) -> logging.Logger:
    """Get a named logger for a flow module.

    Usage:
        logger = get_flow_logger("segments")
        logger.info("Segmenting", extra={"flow": "segments", "stage": "prompt"})
    """
    return logging.getLogger(f"tastecrm.flows.{flow_name}")
