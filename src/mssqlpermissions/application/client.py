"""
Client facade wiring the operation classes to one connector.

This module provides a single entry point for library users and the CLI:

    client = PermissionsClient(settings.to_connector())
    client.permissions.grant(Role(name="reporting"), Permission(name="SELECT"), schema="sales")
    client.close()
"""

import logging
from typing import Optional

from mssqlpermissions.application.base import OperationContext
from mssqlpermissions.application.database_roles import DatabaseRoleOperations
from mssqlpermissions.application.logins import LoginOperations
from mssqlpermissions.application.permissions import PermissionOperations
from mssqlpermissions.application.server_roles import ServerRoleOperations
from mssqlpermissions.application.users import UserOperations
from mssqlpermissions.infrastructure.sql.connector import Connector, ServerDialect
from mssqlpermissions.infrastructure.sql.database import Database

logger = logging.getLogger(__name__)


class PermissionsClient:
    """
    Lazily connected container of operation services.

    The first property access connects and probes the server; every
    service then shares the same context.
    """

    def __init__(self, connector: Connector):
        self.connector = connector

        self._database: Optional[Database] = None
        self._context: Optional[OperationContext] = None
        self._logins: Optional[LoginOperations] = None
        self._server_roles: Optional[ServerRoleOperations] = None
        self._users: Optional[UserOperations] = None
        self._database_roles: Optional[DatabaseRoleOperations] = None
        self._permissions: Optional[PermissionOperations] = None

    def __enter__(self) -> "PermissionsClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def context(self) -> OperationContext:
        """Get the operation context, connecting on first use."""
        if self._context is None:
            self._database = self.connector.connect()
            self._context = OperationContext.from_connector(self.connector, self._database)
        return self._context

    @property
    def dialect(self) -> ServerDialect:
        return self.context.dialect

    @property
    def logins(self) -> LoginOperations:
        """Get the login operations."""
        if self._logins is None:
            self._logins = LoginOperations(self.context)
        return self._logins

    @property
    def server_roles(self) -> ServerRoleOperations:
        """Get the server role operations."""
        if self._server_roles is None:
            self._server_roles = ServerRoleOperations(self.context, logins=self.logins)
        return self._server_roles

    @property
    def users(self) -> UserOperations:
        """Get the database user operations."""
        if self._users is None:
            self._users = UserOperations(self.context)
        return self._users

    @property
    def database_roles(self) -> DatabaseRoleOperations:
        """Get the database role operations."""
        if self._database_roles is None:
            self._database_roles = DatabaseRoleOperations(self.context, users=self.users)
        return self._database_roles

    @property
    def permissions(self) -> PermissionOperations:
        """Get the permission operations."""
        if self._permissions is None:
            self._permissions = PermissionOperations(self.context)
        return self._permissions

    def close(self) -> None:
        if self._database is not None:
            self._database.close()
            logger.debug("Closed database handle for %s", self.connector.database)
        self._database = None
        self._context = None
        self._logins = None
        self._server_roles = None
        self._users = None
        self._database_roles = None
        self._permissions = None
