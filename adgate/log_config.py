"""Application logging setup.

- Console handler always (docker logs / stdout).
- Optional file handler rotated at midnight when a log directory is given.
- Every record carries the current request's correlation ID (``-`` outside
  of a request) so all lines of one exchange can be grepped together.
"""
from __future__ import annotations

import contextvars
import logging
import os
from logging.handlers import TimedRotatingFileHandler

_LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s [%(request_id)s]: %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")

# Installed handlers, removed again on reconfiguration.
_file_handler: logging.Handler | None = None
_console_handler: logging.Handler | None = None


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


def setup_logging(level: str = "INFO", log_dir: str | None = None, retention_days: int = 30) -> None:
    """Configure the root logger. Safe to call more than once."""
    global _file_handler, _console_handler

    level_str = (level or "INFO").strip().upper()
    if level_str not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        level_str = "INFO"
    log_level = getattr(logging, level_str, logging.INFO)
    retention_days = max(1, min(365, int(retention_days or 30)))

    root = logging.getLogger()

    for h in (_file_handler, _console_handler):
        if h and h in root.handlers:
            root.removeHandler(h)
            h.close()
    _file_handler = None

    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)
    rid_filter = RequestIdFilter()

    ch = logging.StreamHandler()
    ch.setLevel(log_level)
    ch.setFormatter(formatter)
    ch.addFilter(rid_filter)
    _console_handler = ch
    root.addHandler(ch)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        fh = TimedRotatingFileHandler(
            os.path.join(log_dir, "adgate.log"),
            when="midnight",
            interval=1,
            backupCount=retention_days,
            encoding="utf-8",
            utc=True,
        )
        fh.suffix = "%Y-%m-%d"
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        fh.addFilter(rid_filter)
        _file_handler = fh
        root.addHandler(fh)

    root.setLevel(log_level)

    # Access lines come from AccessLogMiddleware.
    logging.getLogger("uvicorn.access").setLevel(max(log_level, logging.WARNING))

    logging.getLogger("adgate").info(
        "logging configured: level=%s dir=%s retention_days=%d", level_str, log_dir or "-", retention_days
    )
