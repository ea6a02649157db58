"""
Graph configuration for the special-types retrieve.

Centralizes the options of the LangGraph workflow so recipes can be tuned
without modifying the graph wiring.
"""

from dataclasses import dataclass
from typing import Optional

from sfconnector.shared.settings import DEFAULT_WAIT_FOR_FILES_TIMEOUT


@dataclass
class GraphConfig:
    """
    Configuration for the special-types graph.

    Attributes:
        recursion_limit: Maximum number of graph steps
        project_name: Name of the scratch project created in the temp folder
        wait_for_files_timeout: Seconds to wait for retrieved files
        wait_for_files_interval: Seconds between file checks
    """

    recursion_limit: int = 30
    project_name: str = "TempProject"

    # Bounded poll for the retrieved files
    wait_for_files_timeout: float = DEFAULT_WAIT_FOR_FILES_TIMEOUT
    wait_for_files_interval: float = 0.5


DEFAULT_CONFIG = GraphConfig()


def get_config(
    recursion_limit: Optional[int] = None,
    project_name: Optional[str] = None,
    wait_for_files_timeout: Optional[float] = None,
    wait_for_files_interval: Optional[float] = None,
) -> GraphConfig:
    """
    Create a configuration with optional overrides.

    Args:
        recursion_limit: Override for recursion limit
        project_name: Override for the scratch project name
        wait_for_files_timeout: Override for the file wait timeout
        wait_for_files_interval: Override for the file wait interval

    Returns:
        GraphConfig with specified overrides applied
    """
    return GraphConfig(
        recursion_limit=recursion_limit or DEFAULT_CONFIG.recursion_limit,
        project_name=project_name or DEFAULT_CONFIG.project_name,
        wait_for_files_timeout=wait_for_files_timeout
        if wait_for_files_timeout is not None
        else DEFAULT_CONFIG.wait_for_files_timeout,
        wait_for_files_interval=wait_for_files_interval
        if wait_for_files_interval is not None
        else DEFAULT_CONFIG.wait_for_files_interval,
    )
