import logging
import json
import os
import sys
from datetime import datetime, timezone
from typing import Optional

LOGGER_NAME = "buildstamp"

# Custom attributes passed via "extra" that end up in JSON lines
EXTRA_KEYS = {
    "platform",
    "path",
    "field",
    "value",
    "editor",
    "updated",
    "error",
}


class JsonFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "time": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in EXTRA_KEYS:
                log[key] = value
        return json.dumps(log)


class ConsoleFormatter(logging.Formatter):
    """Plain CI log lines, tagged so they are easy to grep in build output."""

    def __init__(self, prefix: str = "[VERSION] "):
        super().__init__()
        self.prefix = prefix

    def format(self, record: logging.LogRecord) -> str:
        return f"{self.prefix}{record.getMessage()}"


class _MaxLevelFilter(logging.Filter):
    def __init__(self, level: int):
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.level


def get_console_logger(level=logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """Create the CI console logger.

    Info and warnings go to stdout, errors to stderr. When ``log_file`` is
    given the same records are also written there as JSON lines.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers = []
    logger.propagate = False

    out = logging.StreamHandler(sys.stdout)
    out.addFilter(_MaxLevelFilter(logging.ERROR))
    out.setFormatter(ConsoleFormatter())
    logger.addHandler(out)

    err = logging.StreamHandler(sys.stderr)
    err.setLevel(logging.ERROR)
    err.setFormatter(ConsoleFormatter())
    logger.addHandler(err)

    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        handler = logging.FileHandler(log_file)
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)
    return logger
