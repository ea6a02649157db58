"""
Single-flight operation guard.

Exactly one logical operation may run on a connection at a time. Composite
operations (the special-types recipes, describe with folder queries, ...)
call other public operations internally; they raise the context's nesting
depth for their own duration so those inner calls pass the guard without
resetting the running operation's state.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from sfconnector.engine.context import ConnectionContext
from sfconnector.engine.errors import OperationNotAllowed


logger = logging.getLogger(__name__)


class OperationGuard:
    """Gates every public operation of one connection."""

    def __init__(self, context: ConnectionContext):
        self._context = context

    def start(self) -> None:
        """
        Enter an operation.

        Raises:
            OperationNotAllowed: If another top-level operation is in flight
                and no composite operation allows nested calls.
        """
        context = self._context
        if context.allow_concurrence:
            return
        if context.in_progress:
            raise OperationNotAllowed(
                "Connection in use. Abort the current operation to execute other."
            )
        context.aborted = False
        context.in_progress = True
        context.processes.clear()

    def end(self) -> None:
        """Leave an operation. Only a top-level exit releases the connection."""
        context = self._context
        if context.allow_concurrence:
            return
        context.in_progress = False
        context.processes.clear()

    @contextmanager
    def allow_nested(self) -> Iterator[None]:
        """Let nested public calls through while the block runs."""
        self._context.nesting_depth += 1
        try:
            yield
        finally:
            self._context.nesting_depth -= 1

    @contextmanager
    def operation(self, nested: bool = False) -> Iterator[None]:
        """
        Guard one public operation.

        Args:
            nested: True for composite operations that call other public
                operations internally.
        """
        self.start()
        try:
            if nested:
                with self.allow_nested():
                    yield
            else:
                yield
        finally:
            self.end()
