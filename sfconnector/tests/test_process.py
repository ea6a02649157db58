"""
Tests for CLI output decoding, command construction and the process runner.
"""

import asyncio
import json
import sys
import time

import pytest

from sfconnector.engine.errors import ConnectionFailure
from sfconnector.shared.process.commands import CommandFactory
from sfconnector.shared.process.runner import Process, ProcessRunner, parse_output
from sfconnector.shared.settings import ConnectorSettings


_SLOW_SCRIPT = "import time; time.sleep(10)"


class _KillingRunner(ProcessRunner):
    """Kills the process while its spawn is still pending."""

    async def _spawn(self, process):
        process.kill()
        return await super()._spawn(process)


# ============================================================================
# TestParseOutput
# ============================================================================


class TestParseOutput:
    """Tests for decoding the CLI JSON envelope."""

    def test_success_envelope(self):
        stdout = json.dumps({"status": 0, "result": {"records": [{"Id": "001"}]}})

        response = parse_output(stdout, "", 0)

        assert response.status == 0
        assert response.result == {"records": [{"Id": "001"}]}

    def test_error_envelope(self):
        stdout = json.dumps({"status": 1, "name": "INVALID_TYPE", "message": "INVALID_TYPE: Foo"})

        response = parse_output(stdout, "", 1)

        assert response.status == 1
        assert response.name == "INVALID_TYPE"
        assert response.message == "INVALID_TYPE: Foo"

    def test_text_before_envelope_ignored(self):
        stdout = "Warning: update available\n" + json.dumps({"status": 0, "result": []})

        assert parse_output(stdout, "", 0).result == []

    def test_non_json_output_maps_to_exit_code(self):
        response = parse_output("", "command not found", 127)

        assert response.status == 127
        assert response.message == "command not found"

    def test_plain_text_success(self):
        response = parse_output("done", "", 0)

        assert response.status == 0
        assert response.result == "done"


# ============================================================================
# TestCommandFactory
# ============================================================================


class TestCommandFactory:
    """Tests for command construction."""

    def test_every_command_requests_json(self):
        commands = CommandFactory("sf")
        processes = [
            commands.list_auth_orgs(),
            commands.query("dev", "SELECT Id FROM Account", True, "60.0"),
            commands.describe_metadata_type("dev", "CustomField", api_version="60.0"),
            commands.create_project("Temp", "/tmp", with_manifest=True),
        ]

        for process in processes:
            assert process.command[0] == "sf"
            assert "--json" in process.command

    def test_query_options(self):
        process = CommandFactory().query("dev", "SELECT Id FROM ApexClass", True, "59.0")

        assert process.action == "query"
        assert "--use-tooling-api" in process.command
        assert process.command[process.command.index("--target-org") + 1] == "dev"
        assert process.command[process.command.index("--api-version") + 1] == "59.0"

    def test_project_commands_run_in_project(self):
        process = CommandFactory().set_auth_org("dev", "/work/project")

        assert process.cwd == "/work/project"
        assert "target-org=dev" in process.command

    def test_process_names_are_unique(self):
        commands = CommandFactory()

        assert commands.list_auth_orgs().name != commands.list_auth_orgs().name


# ============================================================================
# TestProcessRunner
# ============================================================================


class TestProcessRunner:
    """Tests for running real subprocesses."""

    def test_missing_executable_is_connection_failure(self):
        runner = ProcessRunner(ConnectorSettings(process_retries=1))
        process = Process("list_auth_orgs", ["sfconnector-missing-cli-binary", "--json"])

        with pytest.raises(ConnectionFailure) as e:
            asyncio.run(runner.run(process))

        assert e.value.name == "CLI_NOT_FOUND"

    def test_killed_process_is_never_spawned(self):
        process = Process("retrieve", [sys.executable, "-c", _SLOW_SCRIPT])
        process.kill()

        start = time.perf_counter()
        response = asyncio.run(ProcessRunner().run(process))

        assert response.status == 1
        assert response.name == "KILLED"
        assert time.perf_counter() - start < 2

    def test_kill_during_spawn_stops_child(self):
        process = Process("retrieve", [sys.executable, "-c", _SLOW_SCRIPT])

        start = time.perf_counter()
        response = asyncio.run(_KillingRunner().run(process))

        assert response.status != 0
        assert process.killed is True
        assert time.perf_counter() - start < 5
