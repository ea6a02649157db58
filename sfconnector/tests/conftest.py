"""
Shared test fixtures.

FakeRunner stands in for the 'sf' CLI: it answers each Process by its action
and can create scratch projects and retrieved files on disk, so the full
connector (special-types graph included) runs without the CLI.
"""

import asyncio
import os
from typing import Any, Callable, Dict, List, Optional

import pytest

from sfconnector.connector import SFConnector
from sfconnector.shared.process.runner import Process, ProcessResponse
from sfconnector.shared.settings import ConnectorSettings


USERNAME = "dev@example.com"

ADMIN_PROFILE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<Profile xmlns="http://soap.sforce.com/2006/04/metadata">
    <userPermissions>
        <enabled>true</enabled>
        <name>ViewSetup</name>
    </userPermissions>
    <custom>false</custom>
    <userPermissions>
        <enabled>true</enabled>
        <name>ApiEnabled</name>
    </userPermissions>
</Profile>
"""

OLD_PROFILE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<Profile xmlns="http://soap.sforce.com/2006/04/metadata">
    <custom>false</custom>
</Profile>
"""

METADATA_OBJECTS = [
    {"xmlName": "ApexClass", "directoryName": "classes", "suffix": "cls", "metaFile": True},
    {"xmlName": "CustomApplication", "directoryName": "applications", "suffix": "app"},
    {
        "xmlName": "CustomObject",
        "directoryName": "objects",
        "suffix": "object",
        "childXmlNames": ["CustomField", "RecordType", "ListView"],
    },
    {"xmlName": "CustomTab", "directoryName": "tabs", "suffix": "tab"},
    {"xmlName": "PermissionSet", "directoryName": "permissionsets", "suffix": "permissionset"},
    {"xmlName": "Profile", "directoryName": "profiles", "suffix": "profile"},
    {"xmlName": "Report", "directoryName": "reports", "suffix": "report", "inFolder": True},
]


def _arg(process: Process, flag: str) -> Optional[str]:
    if flag not in process.command:
        return None
    return process.command[process.command.index(flag) + 1]


class FakeRunner:
    """
    In-memory process runner.

    Attributes:
        calls: Every process run, in order
        handlers: Per-action overrides returning a result or a ProcessResponse
        described: Type name -> 'org list metadata' records (missing types
            answer INVALID_TYPE)
        records: SOQL text -> records
        retrieved_files: Path relative to the project -> content written on
            retrieve
        delay: Seconds each process takes
    """

    def __init__(self):
        self.calls: List[Process] = []
        self.handlers: Dict[str, Callable[[Process], Any]] = {}
        self.auth_orgs = [
            {"alias": "dev", "username": USERNAME, "instanceUrl": "https://dev.my.salesforce.com"},
            {"alias": "qa", "username": "qa@example.com", "instanceUrl": "https://qa.my.salesforce.com"},
        ]
        self.metadata_objects = list(METADATA_OBJECTS)
        self.described: Dict[str, List[Dict[str, Any]]] = {}
        self.records: Dict[str, List[Dict[str, Any]]] = {}
        self.retrieved_files: Dict[str, str] = {}
        self.delay = 0.0

    def actions(self) -> List[str]:
        return [process.action for process in self.calls]

    async def run(self, process: Process) -> ProcessResponse:
        self.calls.append(process)
        if self.delay:
            await asyncio.sleep(self.delay)
        handler = self.handlers.get(process.action) or getattr(self, f"_{process.action}", None)
        outcome = handler(process) if handler is not None else {}
        if process.killed:
            return ProcessResponse(status=1, message="Process killed", name="KILLED")
        if isinstance(outcome, ProcessResponse):
            return outcome
        return ProcessResponse(status=0, result=outcome)

    # Default answers

    def _list_auth_orgs(self, process: Process) -> Any:
        return self.auth_orgs

    def _list_metadata_types(self, process: Process) -> Any:
        return {"metadataObjects": self.metadata_objects}

    def _describe_metadata_type(self, process: Process) -> Any:
        type_name = _arg(process, "--metadata-type")
        if type_name not in self.described:
            return ProcessResponse(
                status=1,
                name="INVALID_TYPE",
                message=f"INVALID_TYPE: Unknown type '{type_name}'",
            )
        return self.described[type_name]

    def _query(self, process: Process) -> Any:
        return {"records": self.records.get(_arg(process, "--query"), [])}

    def _create_project(self, process: Process) -> Any:
        name = _arg(process, "--name")
        project = os.path.join(_arg(process, "--output-dir"), name)
        os.makedirs(os.path.join(project, "force-app", "main", "default"), exist_ok=True)
        if "--manifest" in process.command:
            os.makedirs(os.path.join(project, "manifest"), exist_ok=True)
        for file_name in ("sfdx-project.json", ".forceignore"):
            with open(os.path.join(project, file_name), "w", encoding="utf-8") as f:
                f.write("{}" if file_name.endswith(".json") else "**/jsconfig.json\n")
        return {"outputDir": project, "created": [f"{name}/sfdx-project.json"]}

    def _retrieve(self, process: Process) -> Any:
        files = []
        for relative, content in self.retrieved_files.items():
            path = os.path.join(process.cwd, relative)
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)
            files.append({"filePath": path, "state": "Changed"})
        return {"id": "09S000000000001", "status": "Succeeded", "success": True, "files": files}


def write_file(path: str, content: str = "") -> str:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)
    return path


def make_connector(runner: FakeRunner, project_folder: Optional[str] = None, **kwargs) -> SFConnector:
    settings = ConnectorSettings(wait_for_files_timeout=0.5, wait_for_files_interval=0.01)
    return SFConnector(
        username_or_alias=kwargs.pop("username_or_alias", USERNAME),
        project_folder=project_folder,
        runner=runner,
        settings=settings,
        session_id="test-session-001",
        **kwargs,
    )


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def project(tmp_path) -> str:
    """A source-format project with an Admin profile and one custom field."""
    root = tmp_path / "project"
    source = root / "force-app" / "main" / "default"
    write_file(str(source / "profiles" / "Admin.profile-meta.xml"), OLD_PROFILE_XML)
    write_file(str(source / "objects" / "Account" / "Account.object-meta.xml"), "<CustomObject/>")
    write_file(str(source / "objects" / "Account" / "fields" / "Rating__c.field-meta.xml"), "<CustomField/>")
    write_file(str(source / "classes" / "Util.cls"), "public class Util {}")
    write_file(str(source / "classes" / "Util.cls-meta.xml"), "<ApexClass/>")
    return str(root)


@pytest.fixture
def tmp_folder(tmp_path) -> str:
    folder = tmp_path / "tmp"
    folder.mkdir()
    return str(folder)
