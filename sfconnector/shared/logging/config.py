"""
Structured logging configuration.

JSON-lines output for connector operation events, used next to (or instead
of) the human-readable console format configured by the command line.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# Context attributes copied into every operation event
_CONTEXT_FIELDS = (
    "username_or_alias",
    "project_folder",
    "in_progress",
    "nesting_depth",
    "aborted",
    "percentage",
)


class StructuredFormatter(logging.Formatter):
    """
    Formats each record as one JSON object.

    Keys: timestamp (UTC, ISO 8601), level, logger, message, plus 'event' when
    the record carries operation event data and 'exception' when it carries
    exc_info.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        event_data = getattr(record, "event_data", None)
        if event_data is not None:
            entry["event"] = event_data

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    logger_name: str = "sfconnector",
    console: bool = True,
) -> logging.Logger:
    """
    Attach JSON handlers to a logger, replacing any it already had.

    Args:
        level: Logging level (default: INFO)
        log_file: Optional path of a JSON-lines log file
        logger_name: Logger to configure; child module loggers inherit it
        console: Whether to also write JSON lines to stderr

    Returns:
        The configured logger.
    """
    handlers: List[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler())
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    formatter = StructuredFormatter()
    for handler in handlers:
        handler.setFormatter(formatter)

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    logger.handlers = handlers
    return logger


def log_operation_event(
    event: str,
    context: Any,
    extra: Optional[Dict[str, Any]] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Log a connector event (operation start/end, abort) with a snapshot of the
    connection context.

    Args:
        event: Event name (e.g. "aborted")
        context: ConnectionContext of the connector
        extra: Event-specific fields
        logger: Logger to use (default: the package logger)
    """
    logger = logger or logging.getLogger("sfconnector")

    event_data: Dict[str, Any] = {
        "name": event,
        "context": {field: getattr(context, field, None) for field in _CONTEXT_FIELDS},
    }
    if extra:
        event_data["details"] = extra

    logger.info(f"Operation event: {event}", extra={"event_data": event_data})
