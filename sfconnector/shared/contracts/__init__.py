"""Operation result contracts."""

from sfconnector.shared.contracts.results import (
    AuthOrg,
    BulkStatus,
    DeployStatus,
    ExportTreeDataResult,
    ImportedRecord,
    ImportTreeDataResult,
    RetrievedFile,
    RetrieveResult,
    RetrieveStatus,
    SFDXProjectResult,
)

__all__ = [
    "AuthOrg",
    "BulkStatus",
    "DeployStatus",
    "ExportTreeDataResult",
    "ImportedRecord",
    "ImportTreeDataResult",
    "RetrievedFile",
    "RetrieveResult",
    "RetrieveStatus",
    "SFDXProjectResult",
]
