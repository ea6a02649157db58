"""
Tests for the connection context and the single-flight operation guard.
"""

import asyncio

import pytest

from sfconnector.engine.context import ConnectionContext
from sfconnector.engine.errors import OperationNotAllowed
from sfconnector.engine.guard import OperationGuard

from conftest import FakeRunner, make_connector


def _fail_spawn(process):
    raise OSError("spawn failed")


# ============================================================================
# TestConnectionContext
# ============================================================================


class TestConnectionContext:
    """Tests for the derived project paths."""

    def test_project_folder_derives_package_paths(self, tmp_path):
        context = ConnectionContext()
        context.project_folder = str(tmp_path)

        expected = str(tmp_path).replace("\\", "/")
        assert context.project_folder == expected
        assert context.package_folder == expected + "/manifest"
        assert context.package_file == expected + "/manifest/package.xml"

    def test_clearing_project_folder_clears_package_paths(self, tmp_path):
        context = ConnectionContext()
        context.project_folder = str(tmp_path)
        context.project_folder = None

        assert context.package_folder is None
        assert context.package_file is None

    def test_allow_concurrence_follows_nesting_depth(self):
        context = ConnectionContext()
        assert context.allow_concurrence is False
        context.nesting_depth = 2
        assert context.allow_concurrence is True


# ============================================================================
# TestOperationGuard
# ============================================================================


class TestOperationGuard:
    """Tests for start/end and nested operations."""

    def test_second_top_level_operation_rejected(self):
        context = ConnectionContext()
        guard = OperationGuard(context)
        guard.start()

        with pytest.raises(OperationNotAllowed):
            guard.start()

    def test_start_resets_abort_and_processes(self):
        context = ConnectionContext(aborted=True)
        context.processes["query-1"] = object()
        guard = OperationGuard(context)

        guard.start()

        assert context.aborted is False
        assert context.in_progress is True
        assert context.processes == {}

    def test_nested_calls_pass_during_composite_operation(self):
        context = ConnectionContext()
        guard = OperationGuard(context)

        with guard.operation(nested=True):
            with guard.operation():
                assert context.in_progress is True
            # Inner exit does not release the connection
            assert context.in_progress is True

        assert context.in_progress is False
        assert context.nesting_depth == 0

    def test_nesting_depth_restored_on_error(self):
        context = ConnectionContext()
        guard = OperationGuard(context)

        with pytest.raises(RuntimeError):
            with guard.operation(nested=True):
                raise RuntimeError("boom")

        assert context.nesting_depth == 0
        assert context.in_progress is False


# ============================================================================
# TestConnectorGuard
# ============================================================================


class TestConnectorGuard:
    """Tests for the guard as seen through public operations."""

    def test_concurrent_top_level_calls_rejected(self):
        runner = FakeRunner()
        runner.delay = 0.05
        connector = make_connector(runner)

        async def _run():
            return await asyncio.gather(
                connector.list_auth_orgs(),
                connector.list_auth_orgs(),
                return_exceptions=True,
            )

        first, second = asyncio.run(_run())

        assert len(first) == 2
        assert isinstance(second, OperationNotAllowed)
        assert connector.in_progress is False

    def test_composite_operation_calls_nested_operations(self):
        connector = make_connector(FakeRunner(), username_or_alias="dev")

        username = asyncio.run(connector.get_auth_username())

        assert username == "dev@example.com"
        assert connector.in_progress is False

    def test_connection_released_after_failure(self):
        runner = FakeRunner()
        runner.handlers["list_auth_orgs"] = _fail_spawn
        connector = make_connector(runner)

        with pytest.raises(OSError):
            asyncio.run(connector.list_auth_orgs())

        assert connector.in_progress is False
        assert asyncio.run(connector.query("SELECT Id FROM Account")) == []
