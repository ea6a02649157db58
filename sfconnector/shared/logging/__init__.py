"""Logging configuration and utilities."""

from sfconnector.shared.logging.config import setup_logging, log_operation_event, StructuredFormatter
from sfconnector.shared.logging.trace_logger import (
    ProcessTraceLogger,
    get_or_create_logger,
    remove_logger,
)

__all__ = [
    "setup_logging",
    "log_operation_event",
    "StructuredFormatter",
    "ProcessTraceLogger",
    "get_or_create_logger",
    "remove_logger",
]
