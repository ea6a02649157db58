"""
Result contracts.

Structured results returned by connector operations, parsed from the
'result' member of the CLI JSON envelope.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AuthOrg(BaseModel):
    """An org authorized in the CLI."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    alias: Optional[str] = Field(default=None, description="Org alias")
    username: Optional[str] = Field(default=None, description="Org username")
    org_id: Optional[str] = Field(default=None, alias="orgId")
    instance_url: Optional[str] = Field(default=None, alias="instanceUrl")
    access_token: Optional[str] = Field(default=None, alias="accessToken", repr=False)
    oauth_method: Optional[str] = Field(default=None, alias="oauthMethod")
    is_dev_hub: bool = Field(default=False, alias="isDevHub")
    is_scratch_org: bool = Field(default=False, alias="isScratchOrg")


class RetrievedFile(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    full_name: Optional[str] = Field(default=None, alias="fullName")
    type: Optional[str] = None
    file_path: Optional[str] = Field(default=None, alias="filePath")
    state: Optional[str] = None
    error: Optional[str] = None


class RetrieveResult(BaseModel):
    """Result of a source or Metadata API retrieve."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = Field(default=None, description="Retrieve job id")
    status: Optional[str] = Field(default=None, description="Job status")
    success: bool = Field(default=True)
    done: bool = Field(default=True)
    zip_file_path: Optional[str] = Field(default=None, alias="zipFilePath")
    files: List[RetrievedFile] = Field(default_factory=list)
    warnings: List[Any] = Field(default_factory=list)

    @classmethod
    def from_response(cls, result: Any) -> "RetrieveResult":
        if not isinstance(result, dict):
            return cls()
        data = dict(result)
        if data.get("files") is None:
            data["files"] = data.get("inboundFiles") or data.get("fileProperties") or []
        if isinstance(data["files"], dict):
            data["files"] = [data["files"]]
        if data.get("warnings") is None:
            data["warnings"] = []
        return cls.model_validate(data)


class RetrieveStatus(BaseModel):
    """Status of an asynchronous Metadata API retrieve."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    retrieve_id: Optional[str] = Field(default=None, alias="id")
    status: Optional[str] = None
    done: bool = False
    success: bool = False
    zip_file_path: Optional[str] = Field(default=None, alias="zipFilePath")


class DeployStatus(BaseModel):
    """Status of a deploy, validation or quick deploy."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = Field(default=None, description="Deploy job id")
    status: Optional[str] = None
    done: bool = False
    success: bool = False
    check_only: bool = Field(default=False, alias="checkOnly")
    number_components_total: int = Field(default=0, alias="numberComponentsTotal")
    number_components_deployed: int = Field(default=0, alias="numberComponentsDeployed")
    number_component_errors: int = Field(default=0, alias="numberComponentErrors")
    number_tests_total: int = Field(default=0, alias="numberTestsTotal")
    number_tests_completed: int = Field(default=0, alias="numberTestsCompleted")
    number_test_errors: int = Field(default=0, alias="numberTestErrors")
    error_message: Optional[str] = Field(default=None, alias="errorMessage")
    details: Dict[str, Any] = Field(default_factory=dict)


class SFDXProjectResult(BaseModel):
    """Result of 'project generate'."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    output_dir: Optional[str] = Field(default=None, alias="outputDir")
    created: List[str] = Field(default_factory=list)
    raw_output: Optional[str] = Field(default=None, alias="rawOutput")


class BulkStatus(BaseModel):
    """Status of one bulk delete job."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    job_id: Optional[str] = Field(default=None, alias="jobId")
    state: Optional[str] = None
    created_date: Optional[str] = Field(default=None, alias="createdDate")
    number_records_processed: int = Field(default=0, alias="numberRecordsProcessed")
    number_records_failed: int = Field(default=0, alias="numberRecordsFailed")


class ExportTreeDataResult(BaseModel):
    """One file written by a tree export."""

    file: str
    records: int = 0
    is_plan_file: bool = False


class ImportedRecord(BaseModel):
    ref_id: str
    id: Optional[str] = None
    sobject: Optional[str] = None


class ImportTreeDataResult(BaseModel):
    """
    Outcome of a tree import.

    Exactly one of results (inserted records) or errors (per-record
    errors reported by the API) is set.
    """

    results: Optional[List[ImportedRecord]] = None
    errors: Optional[List[Any]] = None
