"""
Connection context.

The single mutable state object owned by one connector. Every engine
component (guard, progress channel, abort controller, scheduler) receives the
context explicitly instead of reaching into ambient state.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional


def _absolute(path: Optional[str]) -> Optional[str]:
    if path is None:
        return None
    return os.path.abspath(os.path.expanduser(path)).replace("\\", "/")


@dataclass
class ConnectionContext:
    """
    State of one logical connection.

    Attributes:
        username_or_alias: Org username or alias authorized in the CLI
        api_version: API version used for every command (None = CLI default)
        namespace_prefix: Org namespace prefix ('' when none)
        multi_thread: Fan work out over all available cores when True
        percentage: Accumulated progress of the current operation
        increment: Progress added per completed item
        aborted: Cooperative cancellation flag
        in_progress: True while a top-level operation is running
        nesting_depth: Number of composite operations currently allowing
            nested public calls
        processes: In-flight process handles keyed by process name
    """

    username_or_alias: Optional[str] = None
    api_version: Optional[str] = None
    namespace_prefix: str = ""
    multi_thread: bool = False
    percentage: float = 0.0
    increment: float = 0.0
    aborted: bool = False
    in_progress: bool = False
    nesting_depth: int = 0
    processes: Dict[str, Any] = field(default_factory=dict)
    progress_observer: Optional[Callable[..., None]] = None
    abort_observer: Optional[Callable[[], None]] = None
    _project_folder: Optional[str] = field(default=None, repr=False)
    package_folder: Optional[str] = None
    package_file: Optional[str] = None

    @property
    def allow_concurrence(self) -> bool:
        """True while a composite operation lets nested calls through."""
        return self.nesting_depth > 0

    @property
    def project_folder(self) -> Optional[str]:
        return self._project_folder

    @project_folder.setter
    def project_folder(self, value: Optional[str]) -> None:
        # Derived paths always follow the project folder
        self._project_folder = _absolute(value)
        if self._project_folder is None:
            self.package_folder = None
            self.package_file = None
        else:
            self.package_folder = self._project_folder + "/manifest"
            self.package_file = self._project_folder + "/manifest/package.xml"

    def set_package_folder(self, value: Optional[str]) -> None:
        self.package_folder = _absolute(value)

    def set_package_file(self, value: Optional[str]) -> None:
        self.package_file = _absolute(value)

    def reset_progress(self) -> None:
        self.percentage = 0.0
        self.increment = 0.0

    def restore_project(self, project_folder: Optional[str]) -> None:
        """Point project, package folder and package file back at a project."""
        self.project_folder = project_folder
