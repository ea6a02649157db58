"""
Orchestration engine.

Connection context, single-flight guard, batch scheduler, progress channel
and abort controller shared by every connector operation.
"""

from sfconnector.engine.abort import AbortController
from sfconnector.engine.batches import BatchJob, BatchScheduler, available_cores, calculate_increment
from sfconnector.engine.context import ConnectionContext
from sfconnector.engine.errors import (
    ConnectionFailure,
    ConnectorError,
    InvalidInput,
    OperationNotAllowed,
    OperationTimeout,
)
from sfconnector.engine.guard import OperationGuard
from sfconnector.engine.progress import ProgressChannel, ProgressStage, ProgressStatus, ProgressStream

__all__ = [
    "AbortController",
    "BatchJob",
    "BatchScheduler",
    "available_cores",
    "calculate_increment",
    "ConnectionContext",
    "ConnectionFailure",
    "ConnectorError",
    "InvalidInput",
    "OperationNotAllowed",
    "OperationTimeout",
    "OperationGuard",
    "ProgressChannel",
    "ProgressStage",
    "ProgressStatus",
    "ProgressStream",
]
