"""Logging configuration for the application."""
import json
import logging
from typing import Any, Dict, Union

# Attributes every LogRecord carries; anything else came in through `extra`.
_STANDARD_ATTRIBUTES = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Formats log records as JSON strings."""

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a log record into a JSON string.

        The formatter includes a default set of attributes from the LogRecord,
        plus any extra attributes passed to the logger (container names,
        database names, elapsed times).
        """
        log_object: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "message": record.getMessage(),
            "name": record.name,
        }

        extra_items = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRIBUTES and key not in log_object
        }
        log_object.update(extra_items)

        if record.exc_info:
            log_object["exception"] = self.formatException(record.exc_info)
        elif record.exc_text:
            log_object["exception"] = record.exc_text

        return json.dumps(log_object, default=str)


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Configure the root logger for the application.

    It sets the logging level and adds a stream handler that uses the
    JSONFormatter to output logs to standard error.
    """
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove any existing handlers to avoid duplicate logs
    if logger.hasHandlers():
        logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
