"""
Error taxonomy for principal and permission operations.

Every failure raised by the library derives from MssqlPermissionsError so
callers can catch one type. Sub-classes tell the caller what went wrong:

- ValidationError: malformed identifier, missing field or invalid combination
- TopologyError: the operation is not allowed against this server/database
- ConnectivityError: no connection, or the ping failed
- NotFoundError: a GET found no row (lets callers do create-or-update)
- DriverError: anything else reported by the ODBC driver
- OperationCancelledError: the cancellation token fired or its deadline passed
"""

from __future__ import annotations


class MssqlPermissionsError(Exception):
    """Base class for all library errors."""

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation


class ValidationError(MssqlPermissionsError, ValueError):
    """Input failed validation before any database round-trip."""


class TopologyError(MssqlPermissionsError):
    """Operation is not permitted by the server dialect or target database."""


class ConnectivityError(MssqlPermissionsError):
    """Database handle missing, closed or not answering a ping."""


class NotFoundError(MssqlPermissionsError, LookupError):
    """The requested principal or permission does not exist."""


class DriverError(MssqlPermissionsError):
    """Wraps an error raised by the underlying driver."""


class OperationCancelledError(MssqlPermissionsError):
    """Cancellation was requested or the operation deadline expired."""
