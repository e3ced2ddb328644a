"""
Server role operations.

All reads and writes require master; writes are not available on Azure SQL
Database at all.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from mssqlpermissions.application.base import BaseOperations, OperationContext, chain_error
from mssqlpermissions.application.logins import LoginOperations
from mssqlpermissions.domain.errors import MssqlPermissionsError, NotFoundError
from mssqlpermissions.domain.models import Login, Role
from mssqlpermissions.domain.validators import validate_principal_name
from mssqlpermissions.infrastructure.sql import queries
from mssqlpermissions.infrastructure.sql.cancellation import CancelToken
from mssqlpermissions.infrastructure.sql.ddl import Ddl
from mssqlpermissions.infrastructure.sql.result_mapper import map_login, map_many, map_role

logger = logging.getLogger(__name__)

DEFAULT_OWNER_PRINCIPAL_ID = 1  # sa


class ServerRoleOperations(BaseOperations):
    """Create, read and drop server roles and manage their members."""

    def __init__(self, context: OperationContext, logins: Optional[LoginOperations] = None) -> None:
        super().__init__(context)
        self.logins = logins or LoginOperations(context)

    def get(self, role: Role, token: Optional[CancelToken] = None) -> Role:
        self._require_master("get server role")
        validate_principal_name(role.name, "server role")

        token = self._token(token)
        self._guard(token)

        row = self._fetch_one("retrieve server role", queries.SERVER_ROLE, {"name": role.name}, token)
        if row is None:
            raise NotFoundError("server role not found", operation="get server role")
        return map_role(row)

    def create(self, role: Role, token: Optional[CancelToken] = None) -> None:
        """
        CREATE SERVER ROLE ... AUTHORIZATION <owner>.

        The owner is looked up by owning_principal_id, 1 (sa) when unset.
        """
        self._forbid_azure("create server role")
        self._require_master("create server role")
        validate_principal_name(role.name, "server role")

        target = role.model_copy(
            update={"owning_principal_id": role.owning_principal_id or DEFAULT_OWNER_PRINCIPAL_ID}
        )

        token = self._token(token)
        self._guard(token)

        owner = self._fetch_one(
            "retrieve server role owner",
            queries.SERVER_PRINCIPAL_BY_ID,
            {"principal_id": target.owning_principal_id},
            token,
        )
        if owner is None:
            raise NotFoundError(
                f"cannot get login with principal id {target.owning_principal_id}: login not found",
                operation="create server role",
            )

        ddl = (
            Ddl("CREATE SERVER ROLE ").name("name", target.name)
            .text(" AUTHORIZATION ").name("owner_name", owner["name"])
        )
        logger.info("Creating server role %s (owner %s)", target.name, owner["name"])
        self._run_ddl("create server role", ddl, token)

    def delete(self, role: Role, token: Optional[CancelToken] = None) -> None:
        """Drop every member, then the role; public and fixed roles keep their members."""
        self._forbid_azure("delete server role")
        self._require_master("delete server role")
        validate_principal_name(role.name, "server role")

        token = self._token(token)
        self._guard(token)

        logger.info("Dropping server role %s", role.name)
        self._execute("delete server role", queries.DROP_SERVER_ROLE, {"name": role.name}, token)

    def add_member(self, role: Role, login: Login, token: Optional[CancelToken] = None) -> None:
        self._alter_member(role, login, "ADD", token)

    def remove_member(self, role: Role, login: Login, token: Optional[CancelToken] = None) -> None:
        self._alter_member(role, login, "DROP", token)

    def add_members(self, role: Role, logins: Iterable[Login], token: Optional[CancelToken] = None) -> None:
        for login in logins:
            try:
                self.add_member(role, login, token)
            except MssqlPermissionsError as exc:
                raise chain_error(exc, f"cannot add member {login.name} to server role {role.name}") from exc

    def remove_members(self, role: Role, logins: Iterable[Login], token: Optional[CancelToken] = None) -> None:
        for login in logins:
            try:
                self.remove_member(role, login, token)
            except MssqlPermissionsError as exc:
                raise chain_error(exc, f"cannot remove member {login.name} from server role {role.name}") from exc

    def _alter_member(self, role: Role, login: Login, verb: str, token: Optional[CancelToken]) -> None:
        action = "add server role member" if verb == "ADD" else "remove server role member"
        self._forbid_azure(action)
        self._require_master(action)
        validate_principal_name(role.name, "server role")
        validate_principal_name(login.name, "login")

        token = self._token(token)
        # both GETs guard the connection
        current_login = self.logins.get(Login(name=login.name, external=login.external), token)
        current_role = self.get(role, token)

        ddl = (
            Ddl("ALTER SERVER ROLE ").name("role_name", current_role.name)
            .text(f" {verb} MEMBER ").name("login_name", current_login.name)
        )
        logger.info("%s server role %s member %s", verb.title(), current_role.name, current_login.name)
        self._run_ddl(action, ddl, token)

    def get_members(self, role: Role, token: Optional[CancelToken] = None) -> List[Login]:
        self._require_master("get server role members")
        validate_principal_name(role.name, "server role")

        token = self._token(token)
        self._guard(token)

        rows = self._fetch_all(
            "retrieve server role members", queries.SERVER_ROLE_MEMBERS, {"name": role.name}, token
        )
        return map_many(rows, map_login)
