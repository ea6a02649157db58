"""
Salesforce CLI process runner.

Spawns one CLI command per Process with asyncio subprocesses and decodes the
JSON envelope the CLI prints with --json:

    {"status": 0, "result": {...}, "message": "...", "name": "..."}
"""

import asyncio
import itertools
import json
import logging
import time
from typing import Any, List, Optional

from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from sfconnector.engine.errors import ConnectionFailure
from sfconnector.shared.logging.trace_logger import ProcessTraceLogger
from sfconnector.shared.settings import ConnectorSettings


logger = logging.getLogger(__name__)

_sequence = itertools.count(1)


class ProcessResponse(BaseModel):
    """Decoded CLI envelope."""

    status: int = Field(default=0, description="0 on success")
    result: Any = Field(default=None, description="Command payload")
    message: Optional[str] = Field(default=None, description="Error message")
    name: Optional[str] = Field(default=None, description="Error name (e.g. INVALID_TYPE)")
    warnings: List[Any] = Field(default_factory=list)


class Process:
    """
    One CLI invocation.

    Attributes:
        action: Logical action (e.g. 'describe_metadata_type')
        command: Full command line, executable first
        cwd: Working directory, if the command depends on a project
        name: Unique name used to register the process for abort
    """

    def __init__(self, action: str, command: List[str], cwd: Optional[str] = None):
        self.action = action
        self.command = list(command)
        self.cwd = cwd
        self.name = f"{action}-{next(_sequence)}"
        self.killed = False
        self._handle: Optional[asyncio.subprocess.Process] = None

    def attach(self, handle: asyncio.subprocess.Process) -> None:
        self._handle = handle

    def kill(self) -> None:
        """Kill the running subprocess (no-op if it has not started)."""
        self.killed = True
        if self._handle is not None and self._handle.returncode is None:
            self._handle.kill()

    def __repr__(self) -> str:
        return f"Process(name={self.name!r}, command={self.command!r})"


def _is_transient_spawn_error(error: BaseException) -> bool:
    return isinstance(error, OSError) and not isinstance(error, FileNotFoundError)


def parse_output(stdout: str, stderr: str, return_code: int) -> ProcessResponse:
    """
    Decode CLI output into a ProcessResponse.

    Text printed before the JSON envelope (update notices, warnings) is
    ignored. Output without a JSON envelope maps onto the exit code.
    """
    text = (stdout or "").strip()
    start = text.find("{")
    if start != -1:
        try:
            envelope = json.loads(text[start:])
        except json.JSONDecodeError:
            envelope = None
        if isinstance(envelope, dict):
            return ProcessResponse(
                status=int(envelope.get("status", return_code) or 0),
                result=envelope.get("result"),
                message=envelope.get("message"),
                name=envelope.get("name"),
                warnings=envelope.get("warnings") or [],
            )
    return ProcessResponse(
        status=return_code,
        result=text or None,
        message=(stderr or "").strip() or (text if return_code != 0 else None),
    )


class ProcessRunner:
    """
    Runs Process objects against the real CLI.

    Args:
        settings: Connector settings (spawn retries)
        trace_logger: Optional per-session process trace
    """

    def __init__(
        self,
        settings: Optional[ConnectorSettings] = None,
        trace_logger: Optional[ProcessTraceLogger] = None,
    ):
        self.settings = settings or ConnectorSettings()
        self.trace_logger = trace_logger

    async def _spawn(self, process: Process) -> asyncio.subprocess.Process:
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.settings.process_retries),
                wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
                retry=retry_if_exception(_is_transient_spawn_error),
                reraise=True,
            ):
                with attempt:
                    return await asyncio.create_subprocess_exec(
                        *process.command,
                        cwd=process.cwd,
                        stdout=asyncio.subprocess.PIPE,
                        stderr=asyncio.subprocess.PIPE,
                    )
        except FileNotFoundError as e:
            raise ConnectionFailure(
                f"Salesforce CLI executable '{process.command[0]}' not found",
                name="CLI_NOT_FOUND",
            ) from e

    async def run(self, process: Process) -> ProcessResponse:
        """
        Run a process to completion.

        Args:
            process: Process to run

        Returns:
            Decoded response. A killed process returns its (failed) envelope.

        Raises:
            ConnectionFailure: If the CLI executable is missing.
        """
        _log = f"[process={process.name}] "
        if process.killed:
            logger.debug(f"{_log}Killed before start, not spawning")
            return ProcessResponse(status=1, message="Process killed", name="KILLED")

        logger.debug(f"{_log}Running: {' '.join(process.command)}")
        start_time = time.perf_counter()

        handle = await self._spawn(process)
        process.attach(handle)
        if process.killed and handle.returncode is None:
            # Killed while the spawn was pending
            handle.kill()
        stdout, stderr = await handle.communicate()
        response = parse_output(
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
            handle.returncode if handle.returncode is not None else -1,
        )
        if process.killed and response.status == 0:
            response.status = 1
            response.message = response.message or "Process killed"

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"{_log}Finished in {duration_ms:.2f}ms | status={response.status}")
        if self.trace_logger is not None:
            self.trace_logger.log_process(
                name=process.name,
                command=process.command,
                duration_ms=duration_ms,
                status=response.status,
                cwd=process.cwd,
                error=response.message if response.status != 0 else None,
            )
        return response
