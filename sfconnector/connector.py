"""
Salesforce org connector.

SFConnector is the public surface of the package. Every operation runs under
the connection's single-flight guard, spawns its CLI processes through the
injected runner, reports progress through the connection's progress channel
and honours cooperative abort by returning what it collected so far.
"""

import json
import logging
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Union

from sfconnector.engine.abort import AbortController
from sfconnector.engine.batches import BatchJob, BatchScheduler, calculate_increment
from sfconnector.engine.context import ConnectionContext
from sfconnector.engine.errors import ConnectionFailure, InvalidInput
from sfconnector.engine.guard import OperationGuard
from sfconnector.engine.progress import ProgressChannel, ProgressObserver, ProgressStage
from sfconnector.graph.build import create_special_types_graph
from sfconnector.graph.config import GraphConfig, get_config
from sfconnector.metadata.factory import (
    create_metadata_details,
    create_metadata_type_from_records,
    create_metadata_type_from_response,
    create_not_included_metadata_type,
    create_sobject_from_schema,
    group_folders_by_type,
    parse_export_tree_output,
)
from sfconnector.metadata.models import MetadataDetail, MetadataType, SObject
from sfconnector.metadata.registry import (
    FOLDERS_QUERY,
    METADATA_QUERIES,
    NOT_INCLUDED_METADATA,
    is_folder_type,
)
from sfconnector.metadata.tree import (
    MetadataMap,
    metadata_members,
    metadata_type_names,
    order_metadata,
    validate_metadata_json,
)
from sfconnector.shared.contracts.results import (
    AuthOrg,
    BulkStatus,
    DeployStatus,
    ExportTreeDataResult,
    ImportedRecord,
    ImportTreeDataResult,
    RetrieveResult,
    RetrieveStatus,
    SFDXProjectResult,
)
from sfconnector.shared.files import get_project_org_alias, validate_file_path, validate_folder_path
from sfconnector.shared.logging.config import log_operation_event
from sfconnector.shared.logging.trace_logger import get_or_create_logger, remove_logger
from sfconnector.shared.process.commands import CommandFactory
from sfconnector.shared.process.runner import Process, ProcessResponse, ProcessRunner
from sfconnector.shared.settings import ConnectorSettings, load_settings


logger = logging.getLogger(__name__)

INVALID_TYPE_ERROR = "INVALID_TYPE"
DELETED_RETRIEVE_ERROR = "Retrieve result has been deleted"
IMPORT_HTTP_400_ERROR = "ERROR_HTTP_400"


def _force_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _same_name(left: Optional[str], right: Optional[str]) -> bool:
    if not left or not right:
        return False
    return left.strip().lower() == right.strip().lower()


class SFConnector:
    """
    Connection to one Salesforce org through the 'sf' CLI.

    Args:
        username_or_alias: Org username or alias authorized in the CLI
        api_version: API version for every command (default: settings)
        project_folder: Local project root
        namespace_prefix: Org namespace prefix
        runner: Process runner (default: a ProcessRunner on the real CLI)
        settings: Connector settings (default: loaded from the environment)
        graph_config: Special-types graph configuration
        session_id: Identifier used in logs and process traces
    """

    def __init__(
        self,
        username_or_alias: Optional[str] = None,
        api_version: Optional[str] = None,
        project_folder: Optional[str] = None,
        namespace_prefix: Optional[str] = None,
        runner: Optional[Any] = None,
        settings: Optional[ConnectorSettings] = None,
        graph_config: Optional[GraphConfig] = None,
        session_id: Optional[str] = None,
    ):
        self.settings = settings or load_settings()
        self.session_id = session_id or str(uuid.uuid4())
        self.context = ConnectionContext(
            username_or_alias=username_or_alias,
            api_version=api_version or self.settings.api_version,
            namespace_prefix=namespace_prefix or "",
        )
        self.context.project_folder = project_folder

        trace_logger = None
        if self.settings.trace_dir:
            trace_logger = get_or_create_logger(self.session_id, self.settings.trace_dir)
        self.runner = runner or ProcessRunner(self.settings, trace_logger)
        self.commands = CommandFactory(self.settings.cli_command)

        self.guard = OperationGuard(self.context)
        self.progress = ProgressChannel(self.context)
        self._abort = AbortController(self.context)
        self.graph_config = graph_config or get_config(
            wait_for_files_timeout=self.settings.wait_for_files_timeout,
            wait_for_files_interval=self.settings.wait_for_files_interval,
        )
        self._special_types_graph = None

    # ========================================================================
    # Connection settings
    # ========================================================================

    @property
    def username_or_alias(self) -> Optional[str]:
        return self.context.username_or_alias

    @property
    def api_version(self) -> Optional[str]:
        return self.context.api_version

    @property
    def project_folder(self) -> Optional[str]:
        return self.context.project_folder

    @property
    def package_folder(self) -> Optional[str]:
        return self.context.package_folder

    @property
    def package_file(self) -> Optional[str]:
        return self.context.package_file

    @property
    def namespace_prefix(self) -> str:
        return self.context.namespace_prefix

    @property
    def multi_thread(self) -> bool:
        return self.context.multi_thread

    @property
    def aborted(self) -> bool:
        return self._abort.aborted

    @property
    def in_progress(self) -> bool:
        return self.context.in_progress

    def set_username_or_alias(self, username_or_alias: Optional[str]) -> "SFConnector":
        self.context.username_or_alias = username_or_alias
        return self

    def set_api_version(self, api_version: Optional[str]) -> "SFConnector":
        self.context.api_version = str(api_version) if api_version is not None else None
        return self

    def set_project_folder(self, project_folder: Optional[str]) -> "SFConnector":
        """Set the project root; package folder and file follow it."""
        self.context.project_folder = project_folder
        return self

    def set_package_folder(self, package_folder: Optional[str]) -> "SFConnector":
        self.context.set_package_folder(package_folder)
        return self

    def set_package_file(self, package_file: Optional[str]) -> "SFConnector":
        self.context.set_package_file(package_file)
        return self

    def set_namespace_prefix(self, namespace_prefix: Optional[str]) -> "SFConnector":
        self.context.namespace_prefix = namespace_prefix or ""
        return self

    def set_multi_thread(self) -> "SFConnector":
        self.context.multi_thread = True
        return self

    def set_single_thread(self) -> "SFConnector":
        self.context.multi_thread = False
        return self

    def on_progress(self, observer: Optional[ProgressObserver]) -> "SFConnector":
        """Default progress observer, used when an operation gets none."""
        self.context.progress_observer = observer
        return self

    def on_abort(self, observer: Optional[Callable[[], None]]) -> "SFConnector":
        self.context.abort_observer = observer
        return self

    def abort_connection(self) -> None:
        """
        Abort the running operation.

        Raises the abort flag, kills every in-flight process and notifies the
        abort observer. The running operation returns its partial results.
        """
        self._abort.abort()
        log_operation_event("aborted", self.context, logger=logger)

    def close(self) -> Optional[Dict[str, Any]]:
        """
        Finish the connector's process trace session.

        Returns:
            Session totals, or None when tracing is disabled.
        """
        trace_logger = getattr(self.runner, "trace_logger", None)
        if trace_logger is None:
            return None
        summary = trace_logger.log_session_summary()
        remove_logger(self.session_id)
        return summary

    # ========================================================================
    # Internals
    # ========================================================================

    def _log_prefix(self, operation: str) -> str:
        return f"[connector={self.session_id}] [op={operation}] "

    @contextmanager
    def _operation(self, name: str, nested: bool = False, reset_progress: bool = False) -> Iterator[str]:
        top_level = not self.context.allow_concurrence
        _log = self._log_prefix(name)
        with self.guard.operation(nested=nested):
            if reset_progress and top_level:
                self.progress.reset()
            logger.debug(f"{_log}Started | top_level={top_level}")
            try:
                yield _log
            finally:
                if top_level:
                    self.progress.close_streams()
                logger.debug(f"{_log}Finished | aborted={self.context.aborted}")

    async def _run(self, process: Process) -> ProcessResponse:
        self._abort.register(process)
        try:
            return await self.runner.run(process)
        finally:
            self._abort.unregister(process)

    async def _call(self, process: Process) -> Optional[ProcessResponse]:
        """
        Run a process and check its envelope.

        Returns:
            The response, or None when the process failed because the
            connection was aborted.

        Raises:
            ConnectionFailure: If the CLI reports a non-zero status.
        """
        response = await self._run(process)
        if response.status != 0:
            if self._abort.aborted:
                logger.info(f"{self._log_prefix(process.action)}Process {process.name} stopped by abort")
                return None
            raise ConnectionFailure(
                response.message or f"Process '{process.name}' failed with status {response.status}",
                name=response.name,
                status=response.status,
            )
        return response

    def _require_username(self, username_or_alias: Optional[str] = None) -> str:
        username = username_or_alias or self.context.username_or_alias
        if not username:
            raise InvalidInput("A username or alias is required")
        return username

    # ========================================================================
    # Orgs
    # ========================================================================

    async def list_auth_orgs(self) -> List[AuthOrg]:
        """Orgs authorized in the CLI."""
        with self._operation("list_auth_orgs"):
            response = await self._call(self.commands.list_auth_orgs())
            if response is None:
                return []
            return [AuthOrg.model_validate(org) for org in _force_list(response.result) if isinstance(org, dict)]

    async def get_auth_org(self, username_or_alias: Optional[str] = None) -> Optional[AuthOrg]:
        """
        Authorized org of a username or alias.

        Falls back to the connection's username or alias, then to the target
        org configured in the project.

        Args:
            username_or_alias: Username or alias to look up

        Returns:
            The matching AuthOrg, or None if no authorized org matches.
        """
        with self._operation("get_auth_org", nested=True) as _log:
            auth_orgs = await self.list_auth_orgs()
            default_username = (
                username_or_alias
                or self.context.username_or_alias
                or get_project_org_alias(self.context.project_folder)
            )
            if not auth_orgs or not default_username:
                return None
            result = None
            for auth_org in auth_orgs:
                if "@" in default_username:
                    if _same_name(auth_org.username, default_username):
                        result = auth_org
                elif _same_name(auth_org.alias, default_username):
                    result = auth_org
                if result is None and (
                    _same_name(auth_org.username, default_username) or _same_name(auth_org.alias, default_username)
                ):
                    result = auth_org
            logger.info(f"{_log}Resolved '{default_username}' -> {result.username if result else None}")
            return result

    async def get_auth_username(self) -> Optional[str]:
        """
        Username of the connection's org.

        Matches the connection's username or alias (or the target org
        configured in the project) against the authorized orgs.

        Returns:
            The username, or None if no authorized org matches.
        """
        with self._operation("get_auth_username", nested=True):
            auth_org = await self.get_auth_org()
            return auth_org.username if auth_org else None

    async def get_server_instance(self, username_or_alias: Optional[str] = None) -> Optional[str]:
        """Instance URL of an authorized org (default: the connection's org)."""
        username_or_alias = self._require_username(username_or_alias)
        with self._operation("get_server_instance", nested=True):
            for auth_org in await self.list_auth_orgs():
                if "@" in username_or_alias:
                    if auth_org.username == username_or_alias:
                        return auth_org.instance_url
                elif auth_org.alias == username_or_alias:
                    return auth_org.instance_url
            return None

    async def set_auth_org(self, username_or_alias: Optional[str] = None) -> None:
        """Make an org the target org of the project and of this connection."""
        username = self._require_username(username_or_alias)
        with self._operation("set_auth_org", reset_progress=True):
            project_folder = validate_folder_path(self.context.project_folder, "project folder")
            response = await self._call(self.commands.set_auth_org(username, project_folder))
            if response is not None:
                self.context.username_or_alias = username

    async def query(self, soql: str, use_tooling_api: bool = False) -> List[Dict[str, Any]]:
        """
        Run a SOQL query.

        Args:
            soql: Query text
            use_tooling_api: Query the Tooling API

        Returns:
            Records (empty when aborted).
        """
        if not soql or not isinstance(soql, str):
            raise InvalidInput("A SOQL query is required")
        with self._operation("query"):
            process = self.commands.query(
                self.context.username_or_alias, soql, use_tooling_api, self.context.api_version
            )
            response = await self._call(process)
            if response is None or not isinstance(response.result, dict):
                return []
            return _force_list(response.result.get("records"))

    # ========================================================================
    # Describe
    # ========================================================================

    async def list_metadata_types(self) -> List[MetadataDetail]:
        with self._operation("list_metadata_types"):
            process = self.commands.list_metadata_types(self.context.username_or_alias, self.context.api_version)
            response = await self._call(process)
            if response is None:
                return []
            result = response.result
            objects = result.get("metadataObjects") if isinstance(result, dict) else result
            return create_metadata_details(objects)

    async def _get_folders_by_type(self) -> Dict[str, List[Dict[str, Any]]]:
        if self._abort.aborted:
            return {}
        return group_folders_by_type(await self.query(FOLDERS_QUERY))

    async def _download_type(
        self,
        type_name: str,
        download_all: bool,
        folders_by_type: Optional[Dict[str, List[Dict[str, Any]]]],
        group_global_actions: bool = False,
    ) -> Optional[MetadataType]:
        if is_folder_type(type_name):
            records = await self.query(METADATA_QUERIES[type_name])
            return create_metadata_type_from_records(
                type_name, records, folders_by_type, self.context.namespace_prefix, download_all
            )
        if type_name in NOT_INCLUDED_METADATA:
            return create_not_included_metadata_type(type_name)
        process = self.commands.describe_metadata_type(
            self.context.username_or_alias, type_name, api_version=self.context.api_version
        )
        response = await self._call(process)
        if response is None:
            return None
        return create_metadata_type_from_response(
            type_name, response.result, self.context.namespace_prefix, download_all, group_global_actions
        )

    async def _download_metadata(
        self,
        type_names: Sequence[str],
        download_all: bool,
        folders_by_type: Optional[Dict[str, List[Dict[str, Any]]]],
        progress: Optional[ProgressObserver],
        group_global_actions: bool = False,
    ) -> MetadataMap:
        _log = self._log_prefix("describe_metadata_types")
        metadata: MetadataMap = {}
        for type_name in type_names:
            if self._abort.aborted:
                logger.info(f"{_log}Aborted before '{type_name}' | downloaded={len(metadata)}")
                return metadata
            self.progress.emit(ProgressStage.BEFORE_DOWNLOAD, progress, type_name=type_name)
            try:
                metadata_type = await self._download_type(
                    type_name, download_all, folders_by_type, group_global_actions
                )
            except ConnectionFailure as e:
                if self._abort.aborted:
                    return metadata
                if INVALID_TYPE_ERROR not in (e.message or "") and e.name != INVALID_TYPE_ERROR:
                    raise
                logger.warning(f"{_log}Skipping '{type_name}': {e.message}")
                self.progress.emit(ProgressStage.ERROR_DOWNLOAD, progress, type_name=type_name, data=e.message)
                continue
            if metadata_type is None:
                if self._abort.aborted:
                    return metadata
                continue
            self.progress.advance()
            if metadata_type.have_children():
                metadata[type_name] = metadata_type
            self.progress.emit(ProgressStage.AFTER_DOWNLOAD, progress, type_name=type_name, data=metadata_type)
        return metadata

    async def describe_metadata_types(
        self,
        types_or_details: Optional[Union[str, MetadataDetail, Sequence[Union[str, MetadataDetail]]]],
        download_all: bool = True,
        group_global_actions: bool = False,
        progress: Optional[ProgressObserver] = None,
    ) -> MetadataMap:
        """
        Describe the members of metadata types in the org.

        Report, Dashboard, Document and EmailTemplate are listed with SOQL;
        types the CLI cannot list come from the static registry. Types the
        org does not support (INVALID_TYPE) are skipped. Types with no
        members are left out of the result.

        Args:
            types_or_details: Type names or MetadataDetail objects
            download_all: Include members from every namespace
            group_global_actions: Group global QuickActions under a
                'GlobalActions' object instead of one object per action
            progress: Per-call progress observer

        Returns:
            Ordered tree of the described types (partial when aborted).
        """
        with self._operation("describe_metadata_types", nested=True, reset_progress=True) as _log:
            type_names = metadata_type_names(types_or_details)
            self.progress.set_total(calculate_increment(type_names))
            self.progress.emit(ProgressStage.PREPARE, progress)

            folders_by_type = None
            if any(is_folder_type(type_name) for type_name in type_names):
                folders_by_type = await self._get_folders_by_type()

            scheduler = BatchScheduler(self.context.multi_thread)
            batches = scheduler.get_batches(type_names)
            logger.info(f"{_log}Describing {len(type_names)} types in {len(batches)} batches")

            async def _worker(batch: BatchJob) -> MetadataMap:
                return await self._download_metadata(
                    batch.records, download_all, folders_by_type, progress, group_global_actions
                )

            metadata = await scheduler.run(batches, _worker)
            return order_metadata(metadata)

    async def list_sobjects(self, category: Optional[str] = None) -> List[str]:
        """SObject names, optionally filtered by category ('all', 'custom', 'standard')."""
        with self._operation("list_sobjects"):
            process = self.commands.list_sobjects(self.context.username_or_alias, category, self.context.api_version)
            response = await self._call(process)
            if response is None:
                return []
            return [name for name in _force_list(response.result) if isinstance(name, str)]

    async def _download_sobjects(
        self,
        sobjects: Sequence[str],
        progress: Optional[ProgressObserver],
    ) -> Dict[str, SObject]:
        result: Dict[str, SObject] = {}
        for sobject_name in sobjects:
            if self._abort.aborted:
                return result
            self.progress.emit(ProgressStage.BEFORE_DOWNLOAD, progress, type_name="CustomObject", object_name=sobject_name)
            process = self.commands.describe_sobject(
                self.context.username_or_alias, sobject_name, self.context.api_version
            )
            try:
                response = await self._call(process)
            except ConnectionFailure:
                if self._abort.aborted:
                    return result
                raise
            if response is None:
                return result
            sobject = create_sobject_from_schema(response.result)
            self.progress.advance()
            if sobject is not None:
                result[sobject_name] = sobject
            self.progress.emit(
                ProgressStage.AFTER_DOWNLOAD, progress,
                type_name="CustomObject", object_name=sobject_name, data=sobject,
            )
        return result

    async def describe_sobjects(
        self,
        sobjects: Union[str, Sequence[str]],
        progress: Optional[ProgressObserver] = None,
    ) -> Dict[str, SObject]:
        """
        Describe SObject schemas.

        Args:
            sobjects: SObject name or names
            progress: Per-call progress observer

        Returns:
            SObject name -> SObject, ordered by name (partial when aborted).
        """
        sobject_names = [sobjects] if isinstance(sobjects, str) else list(sobjects or [])
        with self._operation("describe_sobjects", reset_progress=True) as _log:
            self.progress.set_total(calculate_increment(sobject_names))
            self.progress.emit(ProgressStage.PREPARE, progress)

            scheduler = BatchScheduler(self.context.multi_thread)
            batches = scheduler.get_batches(sobject_names)
            logger.info(f"{_log}Describing {len(sobject_names)} SObjects in {len(batches)} batches")

            async def _worker(batch: BatchJob) -> Dict[str, SObject]:
                return await self._download_sobjects(batch.records, progress)

            result = await scheduler.run(batches, _worker)
            return {name: result[name] for name in sorted(result.keys(), key=lambda name: name.lower())}

    # ========================================================================
    # Retrieve and deploy
    # ========================================================================

    async def retrieve(
        self,
        use_metadata_api: bool = False,
        target_dir: Optional[str] = None,
        wait_minutes: Optional[int] = None,
    ) -> Optional[RetrieveResult]:
        """
        Retrieve the project's package.xml members from the org.

        Args:
            use_metadata_api: Retrieve in Metadata API format into target_dir
            target_dir: Output folder for Metadata API retrieves
            wait_minutes: Minutes to wait for the retrieve to finish

        Returns:
            RetrieveResult, or None when aborted.
        """
        with self._operation("retrieve", reset_progress=True):
            project_folder = validate_folder_path(self.context.project_folder, "project folder")
            package_file = validate_file_path(self.context.package_file, "package file")
            if use_metadata_api:
                target_dir = validate_folder_path(target_dir, "target folder")
                process = self.commands.mdapi_retrieve(
                    self.context.username_or_alias, package_file, project_folder, target_dir,
                    self.context.api_version, wait_minutes,
                )
            else:
                process = self.commands.source_retrieve(
                    self.context.username_or_alias, package_file, project_folder,
                    self.context.api_version, wait_minutes,
                )
            response = await self._call(process)
            if response is None:
                return None
            return RetrieveResult.from_response(response.result)

    async def retrieve_report(self, retrieve_id: str, target_dir: str) -> Optional[RetrieveStatus]:
        """Status of an asynchronous retrieve; a purged result counts as succeeded."""
        if not retrieve_id:
            raise InvalidInput("A retrieve id is required")
        with self._operation("retrieve_report", reset_progress=True):
            target_dir = validate_folder_path(target_dir, "target folder")
            process = self.commands.retrieve_report(self.context.username_or_alias, retrieve_id, target_dir)
            try:
                response = await self._call(process)
            except ConnectionFailure as e:
                if DELETED_RETRIEVE_ERROR in (e.message or ""):
                    return RetrieveStatus(retrieve_id=retrieve_id, status="Succeeded", done=True, success=True)
                raise
            if response is None:
                return None
            return RetrieveStatus.model_validate(response.result or {})

    def _deploy_sources(self, use_metadata_api: bool) -> Dict[str, Optional[str]]:
        project_folder = validate_folder_path(self.context.project_folder, "project folder")
        if use_metadata_api:
            return {
                "project_folder": project_folder,
                "metadata_dir": validate_folder_path(self.context.package_folder, "package folder"),
            }
        return {
            "project_folder": project_folder,
            "package_file": validate_file_path(self.context.package_file, "package file"),
        }

    async def validate_deploy(
        self,
        test_level: Optional[str] = None,
        run_tests: Optional[Union[str, List[str]]] = None,
        use_metadata_api: bool = False,
        wait_minutes: Optional[int] = None,
    ) -> Optional[DeployStatus]:
        """Validate a deploy of the project's package without saving it."""
        with self._operation("validate_deploy", reset_progress=True):
            process = self.commands.validate_deploy(
                self.context.username_or_alias,
                test_level=test_level,
                run_tests=run_tests,
                api_version=self.context.api_version,
                wait_minutes=wait_minutes,
                **self._deploy_sources(use_metadata_api),
            )
            response = await self._call(process)
            return DeployStatus.model_validate(response.result or {}) if response else None

    async def deploy_package(
        self,
        test_level: Optional[str] = None,
        run_tests: Optional[Union[str, List[str]]] = None,
        use_metadata_api: bool = False,
        wait_minutes: Optional[int] = None,
    ) -> Optional[DeployStatus]:
        """Deploy the project's package to the org."""
        with self._operation("deploy_package", reset_progress=True):
            process = self.commands.deploy(
                self.context.username_or_alias,
                test_level=test_level,
                run_tests=run_tests,
                api_version=self.context.api_version,
                wait_minutes=wait_minutes,
                **self._deploy_sources(use_metadata_api),
            )
            response = await self._call(process)
            return DeployStatus.model_validate(response.result or {}) if response else None

    async def deploy(
        self,
        types: Union[str, List[str], Dict[str, Any]],
        test_level: Optional[str] = None,
        run_tests: Optional[Union[str, List[str]]] = None,
        wait_minutes: Optional[int] = None,
    ) -> Optional[DeployStatus]:
        """
        Deploy selected metadata from the source-format project.

        Args:
            types: Comma separated names, list of names (e.g. 'ApexClass' or
                'ApexClass:Util') or a Metadata JSON selection
            test_level: Deploy test level
            run_tests: Tests to run (comma separated or list)
            wait_minutes: Minutes to wait for the deploy

        Returns:
            DeployStatus, or None when aborted.
        """
        members = metadata_members(types)
        if not members:
            raise InvalidInput("Nothing selected to deploy")
        username = self._require_username()
        with self._operation("deploy", reset_progress=True):
            project_folder = validate_folder_path(self.context.project_folder, "project folder")
            process = self.commands.deploy_metadata(
                username,
                project_folder,
                members,
                test_level=test_level,
                run_tests=run_tests,
                api_version=self.context.api_version,
                wait_minutes=wait_minutes,
            )
            response = await self._call(process)
            return DeployStatus.model_validate(response.result or {}) if response else None

    async def quick_deploy(self, deploy_id: str) -> Optional[DeployStatus]:
        """Deploy a previously validated deploy."""
        if not deploy_id:
            raise InvalidInput("A deploy id is required")
        with self._operation("quick_deploy", reset_progress=True):
            project_folder = validate_folder_path(self.context.project_folder, "project folder")
            process = self.commands.quick_deploy(
                self.context.username_or_alias, deploy_id, project_folder, self.context.api_version
            )
            response = await self._call(process)
            return DeployStatus.model_validate(response.result or {}) if response else None

    async def deploy_report(self, deploy_id: str, wait_minutes: Optional[int] = None) -> Optional[DeployStatus]:
        if not deploy_id:
            raise InvalidInput("A deploy id is required")
        with self._operation("deploy_report", reset_progress=True):
            process = self.commands.deploy_report(self.context.username_or_alias, deploy_id, wait_minutes)
            response = await self._call(process)
            return DeployStatus.model_validate(response.result or {}) if response else None

    async def cancel_deploy(self, deploy_id: str, wait_minutes: Optional[int] = None) -> Optional[DeployStatus]:
        if not deploy_id:
            raise InvalidInput("A deploy id is required")
        with self._operation("cancel_deploy", reset_progress=True):
            process = self.commands.cancel_deploy(self.context.username_or_alias, deploy_id, wait_minutes)
            response = await self._call(process)
            return DeployStatus.model_validate(response.result or {}) if response else None

    # ========================================================================
    # Projects
    # ========================================================================

    async def convert_project_to_sfdx(self, target_dir: str) -> None:
        """Convert the Metadata API package folder into source format."""
        with self._operation("convert_project_to_sfdx", reset_progress=True):
            package_file = validate_file_path(self.context.package_file, "package file")
            package_folder = validate_folder_path(self.context.package_folder, "package folder")
            target_dir = validate_folder_path(target_dir, "target folder")
            await self._call(self.commands.convert_to_source(
                package_folder, package_file, target_dir, self.context.api_version
            ))

    async def convert_project_to_metadata_api(self, target_dir: str) -> None:
        """Convert the source-format project into Metadata API format."""
        if not target_dir:
            raise InvalidInput("A target folder is required")
        with self._operation("convert_project_to_metadata_api", reset_progress=True):
            package_file = validate_file_path(self.context.package_file, "package file")
            project_folder = validate_folder_path(self.context.project_folder, "project folder")
            await self._call(self.commands.convert_to_metadata_api(
                package_file, project_folder, target_dir, self.context.api_version
            ))

    async def create_sfdx_project(
        self,
        project_name: str,
        project_folder: Optional[str] = None,
        template: Optional[str] = None,
        with_manifest: bool = False,
    ) -> Optional[SFDXProjectResult]:
        """
        Generate a source-format project and switch the connection to it.

        Args:
            project_name: Name of the new project folder
            project_folder: Parent folder (default: the current project folder)
            template: Project template
            with_manifest: Generate manifest/package.xml

        Returns:
            SFDXProjectResult, or None when aborted.
        """
        if not project_name:
            raise InvalidInput("A project name is required")
        with self._operation("create_sfdx_project", reset_progress=True) as _log:
            parent_folder = validate_folder_path(project_folder or self.context.project_folder, "project folder")
            process = self.commands.create_project(
                project_name, parent_folder, template, self.context.namespace_prefix, with_manifest
            )
            response = await self._call(process)
            if response is None:
                return None
            result = SFDXProjectResult.model_validate(response.result if isinstance(response.result, dict) else {})
            self.context.project_folder = f"{parent_folder}/{project_name}"
            logger.info(f"{_log}Project folder is now {self.context.project_folder}")
            return result

    # ========================================================================
    # Data and apex
    # ========================================================================

    async def export_tree_data(
        self,
        soql: str,
        output_path: str,
        prefix: Optional[str] = None,
    ) -> List[ExportTreeDataResult]:
        """Export query results as tree data files with a plan file."""
        if not soql:
            raise InvalidInput("A SOQL query is required")
        with self._operation("export_tree_data", reset_progress=True):
            output_path = validate_folder_path(output_path, "output folder")
            process = self.commands.export_tree_data(
                self.context.username_or_alias, soql, output_path, prefix, self.context.api_version
            )
            response = await self._call(process)
            if response is None:
                return []
            return parse_export_tree_output(response.result)

    async def import_tree_data(self, plan_file: str) -> Optional[ImportTreeDataResult]:
        """
        Import tree data from a plan file.

        Record errors reported by the API (HTTP 400) are returned in
        'errors' instead of raising.
        """
        with self._operation("import_tree_data", reset_progress=True):
            plan_file = validate_file_path(plan_file, "plan file")
            response = await self._run(
                self.commands.import_tree_data(self.context.username_or_alias, plan_file, self.context.api_version)
            )
            if response.status == 0:
                results = [
                    ImportedRecord(ref_id=f"@{record.get('refId')}", id=record.get("id"), sobject=record.get("type"))
                    for record in _force_list(response.result) if isinstance(record, dict)
                ]
                return ImportTreeDataResult(results=results)
            if self._abort.aborted:
                return None
            if response.name == IMPORT_HTTP_400_ERROR:
                try:
                    errors = json.loads(response.message or "{}").get("results")
                except (json.JSONDecodeError, AttributeError):
                    errors = [response.message]
                return ImportTreeDataResult(errors=_force_list(errors))
            raise ConnectionFailure(response.message or "Import failed", name=response.name, status=response.status)

    async def bulk_delete(self, csv_file: str, sobject: str) -> List[BulkStatus]:
        """Delete the records listed in a CSV file with the Bulk API."""
        if not sobject:
            raise InvalidInput("An SObject name is required")
        with self._operation("bulk_delete", reset_progress=True):
            csv_file = validate_file_path(csv_file, "CSV file")
            project_folder = validate_folder_path(self.context.project_folder, "project folder")
            process = self.commands.bulk_delete(
                self.context.username_or_alias, csv_file, sobject, project_folder, self.context.api_version
            )
            response = await self._call(process)
            if response is None:
                return []
            return [BulkStatus.model_validate(status) for status in _force_list(response.result) if isinstance(status, dict)]

    async def execute_apex_anonymous(self, script_file: str) -> Any:
        """Run an anonymous Apex script; returns the CLI result (logs, success, ...)."""
        with self._operation("execute_apex_anonymous", reset_progress=True):
            script_file = validate_file_path(script_file, "script file")
            project_folder = validate_folder_path(self.context.project_folder, "project folder")
            process = self.commands.execute_apex_anonymous(
                self.context.username_or_alias, script_file, project_folder, self.context.api_version
            )
            response = await self._call(process)
            return response.result if response else None

    # ========================================================================
    # Special types
    # ========================================================================

    def _graph(self):
        if self._special_types_graph is None:
            self._special_types_graph = create_special_types_graph()
        return self._special_types_graph

    async def _run_special_types(
        self,
        recipe: str,
        tmp_folder: str,
        types: Optional[Union[str, Dict[str, Any]]] = None,
        download_all: bool = True,
        compress: bool = False,
        sort_order: Optional[str] = None,
        progress: Optional[ProgressObserver] = None,
    ) -> Dict[str, Any]:
        with self._operation(f"{recipe}_special_types", nested=True, reset_progress=True) as _log:
            tmp_folder = validate_folder_path(tmp_folder, "temp folder")
            selection = validate_metadata_json(types) if types else None
            self._require_username()
            original_project_folder = self.context.project_folder
            if recipe != "permissions":
                validate_folder_path(original_project_folder, "project folder")

            initial_state = {
                "connector": self,
                "recipe": recipe,
                "tmp_folder": tmp_folder,
                "types": selection,
                "download_all": download_all,
                "compress": compress,
                "sort_order": sort_order,
                "progress": progress,
                "original_project_folder": original_project_folder,
                "data_to_retrieve": [],
                "folder_metadata_map": None,
                "local_metadata": None,
                "org_metadata": None,
                "metadata": None,
                "retrieve_result": None,
                "user_permissions": None,
                "aborted": False,
                "copied_files": [],
                "stages": [],
                "session_id": self.session_id,
            }

            logger.info(f"{_log}Invoking special types graph | recipe={recipe}, tmp_folder={tmp_folder}")
            try:
                final_state = await self._graph().ainvoke(
                    initial_state, config={"recursion_limit": self.graph_config.recursion_limit}
                )
            finally:
                self.context.restore_project(original_project_folder)

            logger.info(
                f"{_log}Recipe finished | stages={final_state.get('stages')}, "
                f"copied={len(final_state.get('copied_files', []))}, aborted={final_state.get('aborted')}"
            )
            return final_state

    async def load_user_permissions(
        self,
        tmp_folder: str,
        progress: Optional[ProgressObserver] = None,
    ) -> List[str]:
        """
        User permissions available in the org.

        Retrieves the Admin profile into a scratch project under tmp_folder
        and reads its userPermissions entries.
        """
        final_state = await self._run_special_types("permissions", tmp_folder, progress=progress)
        return final_state.get("user_permissions") or []

    async def retrieve_local_special_types(
        self,
        tmp_folder: str,
        types: Optional[Union[str, Dict[str, Any]]] = None,
        compress: bool = False,
        sort_order: Optional[str] = None,
        progress: Optional[ProgressObserver] = None,
    ) -> Optional[RetrieveResult]:
        """
        Refresh the special types present in the local project.

        Args:
            tmp_folder: Folder for the scratch project (recreated)
            types: Metadata JSON selection (object or file path); None for
                every special type
            compress: Canonicalize the copied files
            sort_order: Compress sort order
            progress: Per-call progress observer

        Returns:
            RetrieveResult of the scratch retrieve (None when aborted first).
        """
        final_state = await self._run_special_types(
            "local", tmp_folder, types, compress=compress, sort_order=sort_order, progress=progress
        )
        return final_state.get("retrieve_result")

    async def retrieve_mixed_special_types(
        self,
        tmp_folder: str,
        types: Optional[Union[str, Dict[str, Any]]] = None,
        download_all: bool = True,
        compress: bool = False,
        sort_order: Optional[str] = None,
        progress: Optional[ProgressObserver] = None,
    ) -> Optional[RetrieveResult]:
        """Refresh the local special types with everything the org has for them."""
        final_state = await self._run_special_types(
            "mixed", tmp_folder, types, download_all, compress, sort_order, progress
        )
        return final_state.get("retrieve_result")

    async def retrieve_org_special_types(
        self,
        tmp_folder: str,
        types: Optional[Union[str, Dict[str, Any]]] = None,
        download_all: bool = True,
        compress: bool = False,
        sort_order: Optional[str] = None,
        progress: Optional[ProgressObserver] = None,
    ) -> Optional[RetrieveResult]:
        """Retrieve every special type from the org into the local project."""
        final_state = await self._run_special_types(
            "org", tmp_folder, types, download_all, compress, sort_order, progress
        )
        return final_state.get("retrieve_result")
