import logging
import sys
import json
from typing import Dict, Any
from datetime import datetime, timezone


# Custom JSON formatter for structured logging
class JsonFormatter(logging.Formatter):
    """
    A custom logging formatter that outputs log records as JSON strings.

    This formatter includes standard log record attributes like timestamp,
    level, logger name, message, pathname, and line number. Structured data
    passed through ``extra={"context": ...}`` is emitted under the "context"
    key, and exception information is included when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Formats a log record into a JSON string.

        Args:
            record (logging.LogRecord): The log record to format.

        Returns:
            str: A JSON string representing the log record.
        """
        log_record: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "pathname": record.pathname,
            "lineno": record.lineno,
        }
        context = getattr(record, "context", None)
        if context is not None:
            log_record["context"] = context
        # Include exception info if present
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record, default=str)


# Plain formatter; keeps multi-line request/response records readable on a terminal
TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO", log_format: str = "text") -> logging.Logger:
    """
    Configures the application logger.

    A console handler writing to standard output is attached, formatted either
    as JSON lines (``log_format="json"``) or as plain text. Any existing
    handlers are cleared first so that calling this again (e.g. once settings
    are loaded) does not duplicate output.

    Returns:
        logging.Logger: The configured logger instance for the application.
    """
    logger = logging.getLogger("dummy_logger")
    logger.setLevel(level.upper())

    # Clear any existing handlers to avoid duplicate logs
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    if log_format == "json":
        console_handler.setFormatter(JsonFormatter())
    else:
        console_handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    logger.addHandler(console_handler)

    return logger


# Initialize the logger with defaults; create_app() reapplies the configured level and format
logger = setup_logging()
