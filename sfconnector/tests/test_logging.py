"""
Tests for structured logging, process traces and the command-line entry point.
"""

import asyncio
import json
import logging
import sys

from sfconnector.main import main
from sfconnector.shared.logging.config import StructuredFormatter, log_operation_event, setup_logging
from sfconnector.shared.logging.trace_logger import (
    ProcessTraceLogger,
    _logger_registry,
    get_or_create_logger,
    remove_logger,
)
from sfconnector.shared.process.runner import Process, ProcessRunner

from conftest import FakeRunner, make_connector


def _read_lines(path):
    with open(path, "r", encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


# ============================================================================
# TestStructuredFormatter
# ============================================================================


class TestStructuredFormatter:
    """Tests for JSON log formatting."""

    def test_format_includes_event_data(self):
        record = logging.LogRecord("sfconnector.test", logging.INFO, "", 0, "hello %s", ("world",), None)
        record.event_data = {"name": "operation_start"}

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "sfconnector.test"
        assert entry["message"] == "hello world"
        assert entry["event"] == {"name": "operation_start"}

    def test_setup_logging_writes_file(self, tmp_path):
        log_file = tmp_path / "connector.log"
        logger = setup_logging(logging.INFO, str(log_file), logger_name="sfconnector.test.file", console=False)
        connector = make_connector(FakeRunner())

        log_operation_event("aborted", connector.context, extra={"operation": "describe"}, logger=logger)
        for handler in logger.handlers:
            handler.flush()

        entries = _read_lines(log_file)
        assert len(logger.handlers) == 1
        assert entries[0]["event"]["name"] == "aborted"
        assert entries[0]["event"]["context"]["username_or_alias"] == "dev@example.com"
        assert entries[0]["event"]["details"] == {"operation": "describe"}


# ============================================================================
# TestProcessTrace
# ============================================================================


class TestProcessTrace:
    """Tests for the per-session process trace."""

    def test_log_process_and_summary(self, tmp_path):
        trace = ProcessTraceLogger("session-a", str(tmp_path))

        trace.log_process("query-1", ["sf", "data", "query"], 12.345, 0, cwd="/tmp")
        trace.log_process("retrieve-2", ["sf", "project", "retrieve", "start"], 20.0, 1, error="Retrieve failed")
        summary = trace.log_session_summary()

        entries = _read_lines(trace.log_file)
        assert [entry["type"] for entry in entries] == ["process", "process", "session_summary"]
        assert entries[0]["duration_ms"] == 12.35
        assert "error" not in entries[0]
        assert entries[1]["error"] == "Retrieve failed"
        assert summary["process_count"] == 2
        assert summary["failed_count"] == 1

    def test_registry_shares_logger_per_session(self, tmp_path):
        first = get_or_create_logger("session-b", str(tmp_path))
        second = get_or_create_logger("session-b", str(tmp_path))

        assert first is second

        remove_logger("session-b")
        assert "session-b" not in _logger_registry

    def test_runner_traces_each_process(self, tmp_path):
        trace = ProcessTraceLogger("session-c", str(tmp_path))
        runner = ProcessRunner(trace_logger=trace)
        script = "import json; print(json.dumps({'status': 0, 'result': ['ok']}))"

        response = asyncio.run(runner.run(Process("echo", [sys.executable, "-c", script])))

        entries = _read_lines(trace.log_file)
        assert response.result == ["ok"]
        assert entries[0]["name"].startswith("echo-")
        assert entries[0]["status"] == 0

    def test_connector_close_writes_summary(self, tmp_path):
        trace = get_or_create_logger("test-session-001", str(tmp_path))
        runner = FakeRunner()
        runner.trace_logger = trace
        connector = make_connector(runner)

        summary = connector.close()

        assert summary["session_id"] == "test-session-001"
        assert "test-session-001" not in _logger_registry

    def test_close_without_trace(self):
        assert make_connector(FakeRunner()).close() is None


# ============================================================================
# TestMain
# ============================================================================


class TestMain:
    """Tests for the command-line entry point."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()
