"""
SQL Server access: connector, pooled database handle, DDL builder and queries.
"""

from .cancellation import CancelToken
from .connector import Connector, ServerDialect
from .database import Database, Session

__all__ = ["CancelToken", "Connector", "Database", "ServerDialect", "Session"]
