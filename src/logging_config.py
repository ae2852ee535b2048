"""Configure marketplace logging using the Python standard library.

Records are written as one JSON object per line to the console and to a
rotating file.  Besides timestamp, level, logger and message, the formatter
lifts ``request_id`` and ``user_id`` and merges an ``extra`` dict passed via
``logger.info(..., extra={"extra": {...}})`` into the top level.

Settings come from the environment unless passed explicitly:

* ``MARKETPLACE_LOG_DIR``   (default ``logs``)
* ``MARKETPLACE_LOG_LEVEL`` (default ``INFO``)
"""

import json
import logging
import logging.handlers
import os
from datetime import datetime, UTC

LOG_FILENAME = "marketplace.log"

_HANDLER_MARK = "_marketplace_handler"


class JsonFormatter(logging.Formatter):
    """Format log records as JSON strings."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("request_id", "user_id"):
            value = getattr(record, key, None)
            if value is not None:
                log_record[key] = value
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            log_record.update(extra)
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record, default=str)


def _level_from_env() -> int:
    name = os.environ.get("MARKETPLACE_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(log_dir: str | None = None, level: int | None = None) -> None:
    """Install JSON console and rotating-file handlers on the root logger.

    Calling it again replaces the handlers it installed earlier, leaving any
    other handlers (e.g. a test runner's) alone.

    Args:
        log_dir: Directory for ``marketplace.log``; created if missing.
        level: Logging level for the root logger and both handlers.
    """
    log_dir = log_dir or os.environ.get("MARKETPLACE_LOG_DIR", "logs")
    level = level if level is not None else _level_from_env()
    os.makedirs(log_dir, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            root.removeHandler(handler)
            handler.close()

    formatter = JsonFormatter()
    console_handler = logging.StreamHandler()
    file_handler = logging.handlers.RotatingFileHandler(
        filename=os.path.join(log_dir, LOG_FILENAME),
        maxBytes=5 * 1024 * 1024,  # 5 MB per log file
        backupCount=3,
        encoding="utf-8",
    )
    for handler in (console_handler, file_handler):
        handler.setFormatter(formatter)
        handler.setLevel(level)
        setattr(handler, _HANDLER_MARK, True)
        root.addHandler(handler)
