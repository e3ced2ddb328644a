"""
Database role operations: lifecycle and membership.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from mssqlpermissions.application.base import BaseOperations, OperationContext, chain_error, ddl_step
from mssqlpermissions.application.users import UserOperations
from mssqlpermissions.domain.errors import MssqlPermissionsError, NotFoundError, ValidationError
from mssqlpermissions.domain.models import Role, User
from mssqlpermissions.domain.validators import validate_principal_name
from mssqlpermissions.infrastructure.sql import queries
from mssqlpermissions.infrastructure.sql.cancellation import CancelToken
from mssqlpermissions.infrastructure.sql.ddl import Ddl
from mssqlpermissions.infrastructure.sql.result_mapper import map_many, map_role, map_user

logger = logging.getLogger(__name__)

DEFAULT_OWNER_PRINCIPAL_ID = 1  # dbo


class DatabaseRoleOperations(BaseOperations):
    """Create, read and drop database roles and manage their members."""

    def __init__(self, context: OperationContext, users: Optional[UserOperations] = None) -> None:
        super().__init__(context)
        self.users = users or UserOperations(context)

    def get(self, role: Role, token: Optional[CancelToken] = None) -> Role:
        if not role.name and not role.principal_id:
            raise ValidationError("a database role must have a name or a principal id", operation="get database role")

        token = self._token(token)
        self._guard(token)

        if role.name:
            sql, params = queries.DATABASE_ROLE_BY_NAME, {"name": role.name}
        else:
            sql, params = queries.DATABASE_ROLE_BY_PRINCIPAL_ID, {"principal_id": role.principal_id}

        row = self._fetch_one("retrieve database role", sql, params, token)
        if row is None:
            raise NotFoundError("database role not found", operation="get database role")
        return map_role(row)

    def create(self, role: Role, token: Optional[CancelToken] = None) -> None:
        """CREATE ROLE ... AUTHORIZATION <owner>, owner 1 (dbo) when unset."""
        validate_principal_name(role.name, "database role")
        target = role.model_copy(
            update={"owning_principal_id": role.owning_principal_id or DEFAULT_OWNER_PRINCIPAL_ID}
        )

        token = self._token(token)
        self._guard(token)

        owner = self._fetch_one(
            "retrieve database role owner",
            queries.DATABASE_PRINCIPAL_BY_ID,
            {"principal_id": target.owning_principal_id},
            token,
        )
        if owner is None:
            raise NotFoundError(
                f"cannot get database principal with principal id {target.owning_principal_id}",
                operation="create database role",
            )

        ddl = (
            Ddl("CREATE ROLE ").name("name", target.name)
            .text(" AUTHORIZATION ").name("owner_name", owner["name"])
        )
        logger.info("Creating database role %s (owner %s)", target.name, owner["name"])
        self._run_ddl("create database role", ddl, token)

    def delete(self, role: Role, token: Optional[CancelToken] = None) -> None:
        """Drop every member, then DROP ROLE, in one transaction."""
        validate_principal_name(role.name, "database role")

        token = self._token(token)
        current = self.get(role, token)
        members = self.get_members(current, token)

        steps = [ddl_step(self._member_ddl(current.name, member.name, "DROP")) for member in members]
        steps.append(ddl_step(Ddl("DROP ROLE ").name("name", current.name)))

        logger.info("Dropping database role %s (%d members)", current.name, len(members))
        self._driver_call("delete database role", lambda: self.db.run_in_transaction(steps, token))

    def add_member(self, role: Role, user: User, token: Optional[CancelToken] = None) -> None:
        self._alter_member(role, user, "ADD", token)

    def remove_member(self, role: Role, user: User, token: Optional[CancelToken] = None) -> None:
        self._alter_member(role, user, "DROP", token)

    def add_members(self, role: Role, users: Iterable[User], token: Optional[CancelToken] = None) -> None:
        for user in users:
            try:
                self.add_member(role, user, token)
            except MssqlPermissionsError as exc:
                raise chain_error(exc, f"cannot add member {user.name} to database role {role.name}") from exc

    def remove_members(self, role: Role, users: Iterable[User], token: Optional[CancelToken] = None) -> None:
        for user in users:
            try:
                self.remove_member(role, user, token)
            except MssqlPermissionsError as exc:
                raise chain_error(exc, f"cannot remove member {user.name} from database role {role.name}") from exc

    def get_members(self, role: Role, token: Optional[CancelToken] = None) -> List[User]:
        validate_principal_name(role.name, "database role")

        token = self._token(token)
        self._guard(token)

        rows = self._fetch_all(
            "retrieve database role members", queries.DATABASE_ROLE_MEMBERS, {"name": role.name}, token
        )
        return map_many(rows, map_user)

    def _alter_member(self, role: Role, user: User, verb: str, token: Optional[CancelToken]) -> None:
        action = "add database role member" if verb == "ADD" else "remove database role member"
        validate_principal_name(role.name, "database role")
        validate_principal_name(user.name, "user")

        token = self._token(token)
        current_user = self.users.get(User(name=user.name), token)
        current_role = self.get(Role(name=role.name), token)

        logger.info("%s database role %s member %s", verb.title(), current_role.name, current_user.name)
        self._run_ddl(action, self._member_ddl(current_role.name, current_user.name, verb), token)

    @staticmethod
    def _member_ddl(role_name: str, member_name: str, verb: str) -> Ddl:
        return (
            Ddl("ALTER ROLE ").name("role_name", role_name)
            .text(f" {verb} MEMBER ").name("member_name", member_name)
        )

