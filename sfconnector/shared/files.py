"""
Path validation and file utilities.
"""

import asyncio
import json
import logging
import os
import shutil
from typing import List, Optional

from tenacity import AsyncRetrying, RetryError, retry_if_result, stop_after_delay, wait_fixed

from sfconnector.engine.errors import InvalidInput, OperationTimeout


logger = logging.getLogger(__name__)


def _absolute(path: str) -> str:
    return os.path.abspath(os.path.expanduser(path)).replace("\\", "/")


def validate_folder_path(path: Optional[str], name: str = "folder") -> str:
    """
    Check that a path names an existing folder.

    Returns:
        Absolute path with forward slashes.

    Raises:
        InvalidInput: If the path is missing, does not exist or is a file.
    """
    if not path or not isinstance(path, str):
        raise InvalidInput(f"The {name} path is required")
    absolute = _absolute(path)
    if not os.path.exists(absolute):
        raise InvalidInput(f"The {name} '{path}' does not exist or you do not have access to it")
    if not os.path.isdir(absolute):
        raise InvalidInput(f"The {name} '{path}' is not a folder")
    return absolute


def validate_file_path(path: Optional[str], name: str = "file") -> str:
    """
    Check that a path names an existing file.

    Returns:
        Absolute path with forward slashes.

    Raises:
        InvalidInput: If the path is missing, does not exist or is a folder.
    """
    if not path or not isinstance(path, str):
        raise InvalidInput(f"The {name} path is required")
    absolute = _absolute(path)
    if not os.path.exists(absolute):
        raise InvalidInput(f"The {name} '{path}' does not exist or you do not have access to it")
    if not os.path.isfile(absolute):
        raise InvalidInput(f"The {name} '{path}' is not a file")
    return absolute


def get_all_files(folder: str) -> List[str]:
    """Every file under a folder (recursive); empty if it does not exist."""
    result: List[str] = []
    if not os.path.isdir(folder):
        return result
    for root, _dirs, files in os.walk(folder):
        for file_name in files:
            result.append(os.path.join(root, file_name))
    return result


def delete_path(path: str) -> None:
    if os.path.isdir(path):
        shutil.rmtree(path)
    elif os.path.exists(path):
        os.remove(path)


def ensure_folder(path: str) -> str:
    os.makedirs(path, exist_ok=True)
    return path


def recreate_folder(path: str) -> str:
    """Delete a folder if it exists and create it empty."""
    delete_path(path)
    return ensure_folder(path)


def get_project_org_alias(project_folder: Optional[str]) -> Optional[str]:
    """
    Read the target org configured in a project.

    Looks at .sf/config.json ('target-org') first, then the legacy
    .sfdx/sfdx-config.json ('defaultusername').
    """
    if not project_folder:
        return None
    candidates = [
        (os.path.join(project_folder, ".sf", "config.json"), "target-org"),
        (os.path.join(project_folder, ".sfdx", "sfdx-config.json"), "defaultusername"),
    ]
    for path, key in candidates:
        if not os.path.isfile(path):
            continue
        try:
            with open(path, "r", encoding="utf-8") as f:
                config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"[files] Could not read {path}: {e}")
            continue
        if config.get(key):
            return config[key]
    return None


async def wait_for_files(folder: str, timeout: float, interval: float) -> List[str]:
    """
    Poll a folder until at least one file exists under it.

    Args:
        folder: Folder to watch
        timeout: Maximum seconds to wait
        interval: Seconds between checks

    Returns:
        Files found.

    Raises:
        OperationTimeout: If no file appears within the timeout.
    """
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_delay(timeout),
            wait=wait_fixed(interval),
            retry=retry_if_result(lambda files: not files),
        ):
            with attempt:
                files = await asyncio.to_thread(get_all_files, folder)
            if not attempt.retry_state.outcome.failed:
                attempt.retry_state.set_result(files)
    except RetryError as e:
        raise OperationTimeout(
            f"No files appeared in '{folder}' after {timeout} seconds"
        ) from e
    return files
