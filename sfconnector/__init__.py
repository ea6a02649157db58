"""
Salesforce org connector built on the 'sf' CLI.

This package contains:
- engine/: Operation guard, batch scheduler, progress channel, abort controller
- metadata/: Metadata selection trees, registries, package.xml and file helpers
- graph/: Special-types retrieve recipes as a LangGraph workflow
- shared/: CLI processes, result contracts, logging, settings and file utilities
- connector.py: SFConnector, the public operations
"""

from sfconnector.connector import SFConnector
from sfconnector.engine.errors import (
    ConnectionFailure,
    ConnectorError,
    InvalidInput,
    OperationNotAllowed,
    OperationTimeout,
)
from sfconnector.engine.progress import ProgressStage, ProgressStatus

__all__ = [
    "SFConnector",
    "ConnectionFailure",
    "ConnectorError",
    "InvalidInput",
    "OperationNotAllowed",
    "OperationTimeout",
    "ProgressStage",
    "ProgressStatus",
]
