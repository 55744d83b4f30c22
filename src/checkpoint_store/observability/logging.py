"""Logging setup for the checkpoint store and result tracker."""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional

PACKAGE_LOGGER = 'checkpoint_store'
PLAIN_FORMAT = '%(asctime)s %(levelname)-7s %(name)s: %(message)s'


class JsonFormatter(logging.Formatter):
    """Formats log records as one JSON object per line."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Standard LogRecord attributes are excluded from the extra fields
        dummy_record = logging.LogRecord("name", logging.INFO, "path", 1, "msg", None, None)
        self._reserved_attrs = set(dummy_record.__dict__.keys())
        self._reserved_attrs.update({"message", "asctime", "stack_info", "taskName"})

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "component": record.name,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in self._reserved_attrs:
                if key == "extra_fields" and isinstance(value, dict):
                    log_entry.update(value)
                else:
                    log_entry[key] = value

        return json.dumps(log_entry, default=str)


def setup_logging(level: Optional[str] = None, json_format: bool = False) -> logging.Logger:
    """Configures the package logger.

    Args:
        level: Optional log level override. Defaults to LOG_LEVEL env var or INFO.
        json_format: Emit JSONL instead of plain text lines.

    Returns:
        The configured package logger.
    """
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(log_level)

    # Progress lines go to stderr so command output stays parseable
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if json_format else logging.Formatter(PLAIN_FORMAT))

    for h in logger.handlers[:]:
        logger.removeHandler(h)

    logger.addHandler(handler)
    logger.propagate = False
    return logger
