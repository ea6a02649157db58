"""
Salesforce CLI command factory.

Each method returns a Process for one 'sf' command with JSON output.
"""

from typing import List, Optional, Union

from sfconnector.shared.process.runner import Process


class CommandFactory:
    """Builds Process objects for the 'sf' CLI."""

    def __init__(self, cli: str = "sf"):
        self.cli = cli

    def _command(self, *parts: str) -> List[str]:
        return [self.cli, *parts, "--json"]

    @staticmethod
    def _target(command: List[str], username_or_alias: Optional[str]) -> List[str]:
        if username_or_alias:
            command += ["--target-org", username_or_alias]
        return command

    @staticmethod
    def _api(command: List[str], api_version: Optional[str]) -> List[str]:
        if api_version:
            command += ["--api-version", str(api_version)]
        return command

    @staticmethod
    def _wait(command: List[str], wait_minutes: Optional[int]) -> List[str]:
        if wait_minutes is not None:
            command += ["--wait", str(wait_minutes)]
        return command

    # ------------------------------------------------------------------
    # Orgs and queries
    # ------------------------------------------------------------------

    def list_auth_orgs(self) -> Process:
        return Process("list_auth_orgs", self._command("org", "list", "auth"))

    def query(
        self,
        username_or_alias: Optional[str],
        soql: str,
        use_tooling_api: bool = False,
        api_version: Optional[str] = None,
    ) -> Process:
        command = self._command("data", "query", "--query", soql)
        if use_tooling_api:
            command.append("--use-tooling-api")
        self._target(command, username_or_alias)
        return Process("query", self._api(command, api_version))

    def set_auth_org(self, username_or_alias: str, project_folder: str) -> Process:
        command = self._command("config", "set", f"target-org={username_or_alias}")
        return Process("set_auth_org", command, cwd=project_folder)

    # ------------------------------------------------------------------
    # Describe
    # ------------------------------------------------------------------

    def list_metadata_types(self, username_or_alias: Optional[str], api_version: Optional[str] = None) -> Process:
        command = self._target(self._command("org", "list", "metadata-types"), username_or_alias)
        return Process("list_metadata_types", self._api(command, api_version))

    def describe_metadata_type(
        self,
        username_or_alias: Optional[str],
        type_name: str,
        folder: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> Process:
        command = self._command("org", "list", "metadata", "--metadata-type", type_name)
        if folder:
            command += ["--folder", folder]
        self._target(command, username_or_alias)
        return Process("describe_metadata_type", self._api(command, api_version))

    def list_sobjects(
        self,
        username_or_alias: Optional[str],
        category: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> Process:
        command = self._command("sobject", "list", "--sobject", category or "all")
        self._target(command, username_or_alias)
        return Process("list_sobjects", self._api(command, api_version))

    def describe_sobject(
        self,
        username_or_alias: Optional[str],
        sobject: str,
        api_version: Optional[str] = None,
    ) -> Process:
        command = self._command("sobject", "describe", "--sobject", sobject)
        self._target(command, username_or_alias)
        return Process("describe_sobject", self._api(command, api_version))

    # ------------------------------------------------------------------
    # Retrieve and deploy
    # ------------------------------------------------------------------

    def source_retrieve(
        self,
        username_or_alias: Optional[str],
        package_file: str,
        project_folder: str,
        api_version: Optional[str] = None,
        wait_minutes: Optional[int] = None,
    ) -> Process:
        command = self._command("project", "retrieve", "start", "--manifest", package_file)
        self._target(command, username_or_alias)
        self._api(command, api_version)
        return Process("retrieve", self._wait(command, wait_minutes), cwd=project_folder)

    def mdapi_retrieve(
        self,
        username_or_alias: Optional[str],
        package_file: str,
        project_folder: str,
        target_dir: str,
        api_version: Optional[str] = None,
        wait_minutes: Optional[int] = None,
    ) -> Process:
        command = self._command(
            "project", "retrieve", "start",
            "--manifest", package_file,
            "--target-metadata-dir", target_dir,
        )
        self._target(command, username_or_alias)
        self._api(command, api_version)
        return Process("retrieve", self._wait(command, wait_minutes), cwd=project_folder)

    def retrieve_report(self, username_or_alias: Optional[str], retrieve_id: str, target_dir: str) -> Process:
        command = self._command(
            "project", "retrieve", "report",
            "--job-id", retrieve_id,
            "--target-metadata-dir", target_dir,
        )
        return Process("retrieve_report", self._target(command, username_or_alias))

    def _deploy_options(
        self,
        command: List[str],
        username_or_alias: Optional[str],
        test_level: Optional[str],
        run_tests: Optional[Union[str, List[str]]],
        api_version: Optional[str],
        wait_minutes: Optional[int],
    ) -> List[str]:
        if test_level:
            command += ["--test-level", test_level]
        if run_tests:
            tests = run_tests if isinstance(run_tests, list) else [t.strip() for t in run_tests.split(",")]
            for test in tests:
                if test:
                    command += ["--tests", test]
        self._target(command, username_or_alias)
        self._api(command, api_version)
        return self._wait(command, wait_minutes)

    def deploy(
        self,
        username_or_alias: Optional[str],
        project_folder: str,
        package_file: Optional[str] = None,
        metadata_dir: Optional[str] = None,
        test_level: Optional[str] = None,
        run_tests: Optional[Union[str, List[str]]] = None,
        api_version: Optional[str] = None,
        wait_minutes: Optional[int] = None,
    ) -> Process:
        command = self._command("project", "deploy", "start")
        if metadata_dir:
            command += ["--metadata-dir", metadata_dir]
        elif package_file:
            command += ["--manifest", package_file]
        self._deploy_options(command, username_or_alias, test_level, run_tests, api_version, wait_minutes)
        return Process("deploy", command, cwd=project_folder)

    def deploy_metadata(
        self,
        username_or_alias: Optional[str],
        project_folder: str,
        members: List[str],
        test_level: Optional[str] = None,
        run_tests: Optional[Union[str, List[str]]] = None,
        api_version: Optional[str] = None,
        wait_minutes: Optional[int] = None,
    ) -> Process:
        command = self._command("project", "deploy", "start")
        for member in members:
            command += ["--metadata", member]
        self._deploy_options(command, username_or_alias, test_level, run_tests, api_version, wait_minutes)
        return Process("deploy_metadata", command, cwd=project_folder)

    def validate_deploy(
        self,
        username_or_alias: Optional[str],
        project_folder: str,
        package_file: Optional[str] = None,
        metadata_dir: Optional[str] = None,
        test_level: Optional[str] = None,
        run_tests: Optional[Union[str, List[str]]] = None,
        api_version: Optional[str] = None,
        wait_minutes: Optional[int] = None,
    ) -> Process:
        command = self._command("project", "deploy", "validate")
        if metadata_dir:
            command += ["--metadata-dir", metadata_dir]
        elif package_file:
            command += ["--manifest", package_file]
        self._deploy_options(command, username_or_alias, test_level, run_tests, api_version, wait_minutes)
        return Process("validate_deploy", command, cwd=project_folder)

    def quick_deploy(
        self,
        username_or_alias: Optional[str],
        deploy_id: str,
        project_folder: str,
        api_version: Optional[str] = None,
    ) -> Process:
        command = self._command("project", "deploy", "quick", "--job-id", deploy_id)
        self._target(command, username_or_alias)
        return Process("quick_deploy", self._api(command, api_version), cwd=project_folder)

    def deploy_report(
        self,
        username_or_alias: Optional[str],
        deploy_id: str,
        wait_minutes: Optional[int] = None,
    ) -> Process:
        command = self._command("project", "deploy", "report", "--job-id", deploy_id)
        self._target(command, username_or_alias)
        return Process("deploy_report", self._wait(command, wait_minutes))

    def cancel_deploy(
        self,
        username_or_alias: Optional[str],
        deploy_id: str,
        wait_minutes: Optional[int] = None,
    ) -> Process:
        command = self._command("project", "deploy", "cancel", "--job-id", deploy_id)
        self._target(command, username_or_alias)
        return Process("cancel_deploy", self._wait(command, wait_minutes))

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def convert_to_source(self, package_folder: str, package_file: str, target_dir: str, api_version: Optional[str] = None) -> Process:
        command = self._command(
            "project", "convert", "mdapi",
            "--root-dir", package_folder,
            "--manifest", package_file,
            "--output-dir", target_dir,
        )
        return Process("convert_to_source", self._api(command, api_version))

    def convert_to_metadata_api(self, package_file: str, project_folder: str, target_dir: str, api_version: Optional[str] = None) -> Process:
        command = self._command(
            "project", "convert", "source",
            "--manifest", package_file,
            "--output-dir", target_dir,
        )
        return Process("convert_to_metadata_api", self._api(command, api_version), cwd=project_folder)

    def create_project(
        self,
        project_name: str,
        output_dir: str,
        template: Optional[str] = None,
        namespace_prefix: Optional[str] = None,
        with_manifest: bool = False,
    ) -> Process:
        command = self._command("project", "generate", "--name", project_name, "--output-dir", output_dir)
        if template:
            command += ["--template", template]
        if namespace_prefix:
            command += ["--namespace", namespace_prefix]
        if with_manifest:
            command.append("--manifest")
        return Process("create_project", command)

    # ------------------------------------------------------------------
    # Data and apex
    # ------------------------------------------------------------------

    def export_tree_data(
        self,
        username_or_alias: Optional[str],
        soql: str,
        output_dir: str,
        prefix: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> Process:
        command = self._command("data", "export", "tree", "--query", soql, "--output-dir", output_dir, "--plan")
        if prefix:
            command += ["--prefix", prefix]
        self._target(command, username_or_alias)
        return Process("export_tree_data", self._api(command, api_version))

    def import_tree_data(self, username_or_alias: Optional[str], plan_file: str, api_version: Optional[str] = None) -> Process:
        command = self._command("data", "import", "tree", "--plan", plan_file)
        self._target(command, username_or_alias)
        return Process("import_tree_data", self._api(command, api_version))

    def bulk_delete(
        self,
        username_or_alias: Optional[str],
        csv_file: str,
        sobject: str,
        project_folder: str,
        api_version: Optional[str] = None,
    ) -> Process:
        command = self._command("data", "delete", "bulk", "--file", csv_file, "--sobject", sobject, "--wait", "10")
        self._target(command, username_or_alias)
        return Process("bulk_delete", self._api(command, api_version), cwd=project_folder)

    def execute_apex_anonymous(
        self,
        username_or_alias: Optional[str],
        script_file: str,
        project_folder: str,
        api_version: Optional[str] = None,
    ) -> Process:
        command = self._command("apex", "run", "--file", script_file)
        self._target(command, username_or_alias)
        return Process("execute_apex_anonymous", self._api(command, api_version), cwd=project_folder)
