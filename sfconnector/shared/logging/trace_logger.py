"""
Process trace logger.

Writes one JSON Lines file per session recording every CLI invocation with
its duration and outcome.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


# Session-based logger registry so every process of a session shares one trace
_logger_registry: Dict[str, "ProcessTraceLogger"] = {}


def get_or_create_logger(session_id: str, logs_dir: str = "logs") -> "ProcessTraceLogger":
    """
    Get an existing trace logger for the session or create a new one.

    Args:
        session_id: Unique session identifier
        logs_dir: Directory to store trace files (default: "logs")

    Returns:
        ProcessTraceLogger instance for this session
    """
    if session_id not in _logger_registry:
        _logger_registry[session_id] = ProcessTraceLogger(session_id, logs_dir)
    return _logger_registry[session_id]


def remove_logger(session_id: str) -> None:
    """
    Remove a trace logger from the registry (e.g., after the session ends).

    Args:
        session_id: Session ID to remove
    """
    _logger_registry.pop(session_id, None)


class ProcessTraceLogger:
    """
    Per-session trace of CLI processes.

    Trace files are written in JSON Lines format (one JSON object per line)
    under <logs_dir>/<session_id>/process_trace.json.
    """

    def __init__(self, session_id: str, logs_dir: str = "logs"):
        self.session_id = session_id
        self.base_logs_dir = Path(logs_dir)
        self.session_dir = self.base_logs_dir / session_id
        self.log_file = self.session_dir / "process_trace.json"

        self.session_dir.mkdir(parents=True, exist_ok=True)

        self._process_count = 0
        self._failed_count = 0
        self._total_duration_ms = 0.0

    def _get_timestamp(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def _append_to_log(self, entry: Dict[str, Any]) -> None:
        with open(self.log_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")

    def log_process(
        self,
        name: str,
        command: List[str],
        duration_ms: float,
        status: int,
        cwd: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        """
        Record one finished CLI process.

        Args:
            name: Unique process name
            command: Full command line
            duration_ms: Wall time of the process in milliseconds
            status: Envelope status (0 = success)
            cwd: Working directory, if any
            error: Error message when the process failed
        """
        self._process_count += 1
        self._total_duration_ms += duration_ms
        if status != 0:
            self._failed_count += 1

        entry = {
            "type": "process",
            "timestamp": self._get_timestamp(),
            "session_id": self.session_id,
            "name": name,
            "command": command,
            "cwd": cwd,
            "duration_ms": round(duration_ms, 2),
            "status": status,
        }
        if error:
            entry["error"] = error

        self._append_to_log(entry)

    def log_session_summary(self) -> Dict[str, Any]:
        """Log and return the totals of the session."""
        summary = {
            "type": "session_summary",
            "timestamp": self._get_timestamp(),
            "session_id": self.session_id,
            **self.get_accumulated_stats(),
        }
        self._append_to_log(summary)
        return summary

    def get_accumulated_stats(self) -> Dict[str, Any]:
        return {
            "process_count": self._process_count,
            "failed_count": self._failed_count,
            "total_duration_ms": round(self._total_duration_ms, 2),
        }
