"""Configure storefront logging using the Python standard library.

Sets up the root logger with a console handler and a rotating file
handler.  Records are formatted as JSON and carry the context fields the
services attach through ``extra`` (request_id, user_id, tenant_id and a
free-form ``extra`` dict merged at top level).
"""

import json
import logging
import logging.handlers
import os
from datetime import datetime, UTC

_CONTEXT_FIELDS = ("request_id", "user_id", "tenant_id")


class JsonFormatter(logging.Formatter):
    """Format log records as JSON strings."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "module": record.module,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in _CONTEXT_FIELDS:
            if hasattr(record, field):
                log_record[field] = getattr(record, field)
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            # Merge into top level, never overwrite the core fields
            for key, value in extra.items():
                log_record.setdefault(key, value)
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record, default=str)


def configure_logging(log_dir: str = "logs", level: int = logging.INFO, to_file: bool = True) -> None:
    """Configure the root logger with JSON formatting.

    Args:
        log_dir: Directory for ``storefront.log``.  Created if missing.
        level: Logging level for the root logger and its handlers.
        to_file: Attach the rotating file handler when True.
    """
    logger = logging.getLogger()
    logger.setLevel(level)
    # Remove any default handlers (e.g. from basicConfig)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    formatter = JsonFormatter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if to_file:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=os.path.join(log_dir, "storefront.log"),
            maxBytes=5 * 1024 * 1024,  # 5 MB per log file
            backupCount=3,
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        logger.addHandler(file_handler)
