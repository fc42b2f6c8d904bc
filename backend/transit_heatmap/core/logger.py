"""
Logging Setup with Per-Batch Context

Log lines emitted while a fetch worker handles a batch carry a `[BATCH:n]`
tag, so warnings about skipped rows can be traced back to their request.

Handlers:
---------
- stderr (INFO+, DEBUG+ with `--verbose`); stdout is reserved for results
- optional rotating file (DEBUG+), enabled with `--log-file`

Usage:
------
    from transit_heatmap.core.logger import setup_logging, set_batch_context
    setup_logging(log_file=Path("heatmap.log"))
    set_batch_context(3)   # inside a worker task

Example:
    2026-05-04 14:00:10 [WARNING] [transit_heatmap.requests.parse_response] [BATCH:3] Row 4 status != OK
"""

import logging
import logging.handlers
import contextvars
from pathlib import Path
from typing import List, Optional

_log_batch = contextvars.ContextVar("log_batch", default="-")

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(batch)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Per-request connection chatter from requests' transport layer
QUIET_LOGGERS = ("urllib3",)


def set_batch_context(batch_index: int) -> None:
    """
    Tags subsequent log records of the current task with a batch index.

    Every asyncio task runs in its own copy of the context, so concurrent
    workers do not overwrite each other's tag.
    """
    _log_batch.set(str(batch_index))

def clear_batch_context() -> None:
    _log_batch.set("-")

def get_batch_context() -> str:
    """Returns the active batch index, or "-" outside a batch."""
    return _log_batch.get()


class ContextFilter(logging.Filter):
    """Adds the `batch` attribute used by `LOG_FORMAT` to every record."""
    def filter(self, record: logging.LogRecord) -> bool:
        batch = get_batch_context()
        record.batch = f"[BATCH:{batch}]" if batch != "-" else ""
        return True

class SafeFormatter(logging.Formatter):
    """Formatter that tolerates records which bypassed `ContextFilter`."""
    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "batch"):
            record.batch = ""
        return super().format(record)


def _configure(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())
    return handler

def setup_logging(
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    log_file: Optional[Path] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5
) -> None:
    """
    Replaces the root handlers with a stderr handler and, optionally, a rotating file.

    Args:
        console_level (int): Level of the stderr handler.
        file_level (int): Level of the file handler.
        log_file (Optional[Path]): Rotating log file; console only when None.
        max_bytes (int): Max size in bytes before file rotation.
        backup_count (int): Number of backup files to keep.
    """
    formatter = SafeFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: List[logging.Handler] = [_configure(logging.StreamHandler(), console_level, formatter)]

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, mode="w", maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        handlers.append(_configure(file_handler, file_level, formatter))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers = handlers

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
