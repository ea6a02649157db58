"""
Cooperative cancellation.

Aborting raises the context's abort flag, kills every registered process and
notifies the abort observer. Download loops check the flag before each item
and return what they have collected so far.
"""

import logging
from typing import Any

from sfconnector.engine.context import ConnectionContext


logger = logging.getLogger(__name__)


class AbortController:
    """Owns the abort flag and the in-flight process table of a connection."""

    def __init__(self, context: ConnectionContext):
        self._context = context

    @property
    def aborted(self) -> bool:
        return self._context.aborted

    def register(self, process: Any) -> None:
        self._context.processes[process.name] = process

    def unregister(self, process: Any) -> None:
        self._context.processes.pop(process.name, None)

    def kill_processes(self) -> int:
        """
        Kill every registered process.

        Returns:
            Number of processes that were signalled.
        """
        killed = 0
        for name, process in list(self._context.processes.items()):
            try:
                process.kill()
                killed += 1
            except (ProcessLookupError, OSError) as e:
                # Already finished
                logger.debug(f"[abort] Could not kill '{name}': {e}")
            self._context.processes.pop(name, None)
        return killed

    def abort(self) -> None:
        self._context.aborted = True
        killed = self.kill_processes()
        logger.info(f"[abort] Connection aborted | killed_processes={killed}")
        if self._context.abort_observer is not None:
            self._context.abort_observer()
