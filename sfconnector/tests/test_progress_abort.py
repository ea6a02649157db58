"""
Tests for progress reporting and cooperative abort.
"""

import asyncio

from sfconnector.engine.abort import AbortController
from sfconnector.engine.context import ConnectionContext
from sfconnector.engine.progress import ProgressChannel, ProgressStage
from sfconnector.shared.process.runner import Process

from conftest import FakeRunner, make_connector


class _Recorder:
    """Progress observer collecting every call."""

    def __init__(self):
        self.events = []

    def __call__(self, stage, increment, percentage, type_name, object_name, item_name, data):
        self.events.append((stage, increment, percentage, type_name, object_name, item_name, data))

    @property
    def stages(self):
        return [event[0] for event in self.events]


class _KillableProcess:
    def __init__(self, name, error=None):
        self.name = name
        self.error = error
        self.killed = False

    def kill(self):
        if self.error is not None:
            raise self.error
        self.killed = True


# ============================================================================
# TestProgressChannel
# ============================================================================


class TestProgressChannel:
    """Tests for observer selection and progress arithmetic."""

    def test_per_call_observer_takes_precedence(self):
        context = ConnectionContext()
        default, per_call = _Recorder(), _Recorder()
        context.progress_observer = default
        channel = ProgressChannel(context)

        channel.emit(ProgressStage.PREPARE, per_call)
        channel.emit(ProgressStage.RETRIEVE)

        assert per_call.stages == [ProgressStage.PREPARE]
        assert default.stages == [ProgressStage.RETRIEVE]

    def test_observer_receives_positional_fields(self):
        context = ConnectionContext()
        channel = ProgressChannel(context)
        recorder = _Recorder()
        channel.set_total(25.0)
        channel.advance()

        channel.emit(ProgressStage.COPY_FILE, recorder, "Profile", "Admin", None, "/tmp/Admin.profile-meta.xml")

        assert recorder.events == [
            (ProgressStage.COPY_FILE, 25.0, 25.0, "Profile", "Admin", None, "/tmp/Admin.profile-meta.xml")
        ]

    def test_observer_errors_are_swallowed(self):
        context = ConnectionContext()
        channel = ProgressChannel(context)

        def _broken(*args):
            raise RuntimeError("observer failed")

        status = channel.emit(ProgressStage.PREPARE, _broken)

        assert status.stage == ProgressStage.PREPARE

    def test_percentage_accumulates_without_correction(self):
        context = ConnectionContext()
        channel = ProgressChannel(context)
        channel.set_total(33.33)
        for _ in range(3):
            channel.advance()

        assert round(context.percentage, 2) == 99.99

    def test_stream_receives_events_until_closed(self):
        context = ConnectionContext()
        channel = ProgressChannel(context)

        async def _run():
            stream = channel.open_stream()
            channel.emit(ProgressStage.PREPARE)
            channel.emit(ProgressStage.RETRIEVE)
            channel.close_streams()
            return [status.stage async for status in stream]

        assert asyncio.run(_run()) == [ProgressStage.PREPARE, ProgressStage.RETRIEVE]

    def test_full_stream_drops_oldest_event(self):
        context = ConnectionContext()
        channel = ProgressChannel(context)

        async def _run():
            stream = channel.open_stream(maxsize=2)
            for stage in (ProgressStage.PREPARE, ProgressStage.RETRIEVE, ProgressStage.COPY_DATA):
                channel.emit(stage)
            stream.close()
            return stream, [status.stage async for status in stream]

        stream, stages = asyncio.run(_run())

        assert stream.dropped >= 1
        assert ProgressStage.PREPARE not in stages


# ============================================================================
# TestAbortController
# ============================================================================


class TestAbortController:
    """Tests for abort flag, process kills and the abort observer."""

    def test_abort_kills_registered_processes(self):
        context = ConnectionContext()
        controller = AbortController(context)
        running = _KillableProcess("query-1")
        finished = _KillableProcess("query-2", error=ProcessLookupError("gone"))
        controller.register(running)
        controller.register(finished)
        notified = []
        context.abort_observer = lambda: notified.append(True)

        controller.abort()

        assert controller.aborted is True
        assert running.killed is True
        assert context.processes == {}
        assert notified == [True]

    def test_unregister_removes_process(self):
        context = ConnectionContext()
        controller = AbortController(context)
        process = Process("query", ["sf", "data", "query", "--json"])
        controller.register(process)
        controller.unregister(process)

        assert context.processes == {}


# ============================================================================
# TestConnectorAbort
# ============================================================================


class TestConnectorAbort:
    """Tests for abort during a describe loop."""

    def test_abort_after_first_type_returns_partial_result(self):
        runner = FakeRunner()
        type_names = ["ApexClass", "ApexPage", "CustomTab", "Flow", "Layout"]
        for type_name in type_names:
            runner.described[type_name] = [{"fullName": f"{type_name}One"}]
        connector = make_connector(runner)
        aborted = []
        connector.on_abort(lambda: aborted.append(True))

        def _describe_then_abort(process):
            type_name = process.command[process.command.index("--metadata-type") + 1]
            if len(runner.calls) == 1:
                connector.abort_connection()
            return runner.described[type_name]

        runner.handlers["describe_metadata_type"] = _describe_then_abort

        result = asyncio.run(connector.describe_metadata_types(type_names))

        assert len(result) <= 1
        assert len(runner.calls) == 1
        assert aborted == [True]
        assert connector.in_progress is False

    def test_abort_flag_reset_by_next_operation(self):
        connector = make_connector(FakeRunner())
        connector.abort_connection()
        assert connector.aborted is True

        orgs = asyncio.run(connector.list_auth_orgs())

        assert connector.aborted is False
        assert len(orgs) == 2
