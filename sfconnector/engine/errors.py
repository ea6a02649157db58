"""
Connector error taxonomy.

Every public operation either returns a structured result or raises one of
these exceptions. Aborting an operation is not an error: it returns the
partial data collected so far.
"""

from typing import Optional


class ConnectorError(Exception):
    """Base class for all connector errors."""

    pass


class OperationNotAllowed(ConnectorError):
    """Raised when a second logical operation starts on a busy connection."""

    pass


class ConnectionFailure(ConnectorError):
    """
    Raised when an external CLI invocation returns a non-zero status.

    Attributes:
        name: Error name reported by the CLI envelope (e.g. 'INVALID_TYPE')
        status: Status code reported by the CLI envelope
    """

    def __init__(
        self,
        message: str,
        name: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.name = name
        self.status = status


class InvalidInput(ConnectorError, ValueError):
    """Raised when a required parameter is missing or has the wrong shape."""

    pass


class OperationTimeout(ConnectorError, TimeoutError):
    """Raised when a bounded wait (e.g. for retrieved files) runs out."""

    pass
