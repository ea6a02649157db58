"""
Connector settings.

Values come from the environment (and a local .env file when present).
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv
load_dotenv()

# Seconds the special-types retrieve waits for files to land
DEFAULT_WAIT_FOR_FILES_TIMEOUT = 120.0


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{value}'")


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{value}'")


@dataclass
class ConnectorSettings:
    """
    Runtime settings for the connector and its process runner.

    Attributes:
        cli_command: Executable of the Salesforce CLI
        api_version: Default API version ('' = CLI default)
        process_retries: Spawn attempts for a CLI process
        wait_for_files_timeout: Seconds to wait for retrieved files
        wait_for_files_interval: Seconds between file checks
        trace_dir: Folder for per-session process traces (None = disabled)
        log_level: Log level name for the command-line entry point
    """

    cli_command: str = "sf"
    api_version: Optional[str] = None
    process_retries: int = 3
    wait_for_files_timeout: float = DEFAULT_WAIT_FOR_FILES_TIMEOUT
    wait_for_files_interval: float = 0.5
    trace_dir: Optional[str] = None
    log_level: str = "INFO"


def load_settings() -> ConnectorSettings:
    """Build ConnectorSettings from SF_* environment variables."""
    return ConnectorSettings(
        cli_command=os.environ.get("SF_CLI_COMMAND", "sf"),
        api_version=os.environ.get("SF_API_VERSION") or None,
        process_retries=max(_env_int("SF_PROCESS_RETRIES", 3), 1),
        wait_for_files_timeout=_env_float("SF_WAIT_FOR_FILES_TIMEOUT", DEFAULT_WAIT_FOR_FILES_TIMEOUT),
        wait_for_files_interval=_env_float("SF_WAIT_FOR_FILES_INTERVAL", 0.5),
        trace_dir=os.environ.get("SF_TRACE_DIR") or None,
        log_level=os.environ.get("SF_LOG_LEVEL", "INFO").upper(),
    )
