"""
Permission operations on database roles.

Two scopes are supported: database wide and schema (ON SCHEMA::<schema>).
Every method validates all of its input before any round-trip. The
permission token and schema name are the only values written unquoted into
DDL, and only after passing the identifier validators.

Bulk methods come in two forms: ``*_many`` applies one statement per
permission and stops at the first failure, ``*_many_atomic`` applies all of
them in one transaction.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence, Tuple

from mssqlpermissions.application.base import BaseOperations, chain_error, ddl_step
from mssqlpermissions.domain.errors import MssqlPermissionsError, NotFoundError
from mssqlpermissions.domain.models import Permission, PermissionVerb, Role
from mssqlpermissions.domain.validators import (
    normalize_permission_state,
    validate_permission,
    validate_principal_name,
    validate_role,
    validate_schema_name,
)
from mssqlpermissions.infrastructure.sql import queries
from mssqlpermissions.infrastructure.sql.cancellation import CancelToken
from mssqlpermissions.infrastructure.sql.ddl import Ddl
from mssqlpermissions.infrastructure.sql.result_mapper import map_many, map_permission

logger = logging.getLogger(__name__)

VerbResolver = Callable[[Permission], PermissionVerb]


def permission_ddl(
    verb: PermissionVerb, role: Role, permission: Permission, schema: Optional[str] = None
) -> Ddl:
    """
    ``<VERB> <permission> [ON SCHEMA::<schema>] TO|FROM [role]``.

    Callers must have validated role, permission and schema.
    """
    statement = f"{verb.value} {permission.name}"
    if schema:
        statement += f" ON SCHEMA::{schema}"
    statement += " FROM " if verb is PermissionVerb.REVOKE else " TO "
    return Ddl(statement).name("role_name", role.name)


def _fixed(verb: PermissionVerb) -> VerbResolver:
    return lambda _permission: verb


class PermissionOperations(BaseOperations):
    """GRANT, DENY and REVOKE on database roles, plus permission reads."""

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(
        role: Role,
        permissions: Sequence[Permission],
        schema: Optional[str],
        resolve: VerbResolver,
    ) -> List[Tuple[PermissionVerb, Permission]]:
        validate_role(role)
        if schema is not None:
            validate_schema_name(schema)
        plan = []
        for permission in permissions:
            validate_permission(permission)
            plan.append((resolve(permission), permission))
        return plan

    # ------------------------------------------------------------------
    # Single permission
    # ------------------------------------------------------------------

    def assign(
        self,
        role: Role,
        permission: Permission,
        *,
        schema: Optional[str] = None,
        token: Optional[CancelToken] = None,
    ) -> None:
        """Apply GRANT or DENY as given by the permission's state."""
        self._apply(role, [permission], schema, normalize_permission_state, token)

    def grant(self, role: Role, permission: Permission, *, schema: Optional[str] = None,
              token: Optional[CancelToken] = None) -> None:
        self._apply(role, [permission], schema, _fixed(PermissionVerb.GRANT), token)

    def deny(self, role: Role, permission: Permission, *, schema: Optional[str] = None,
             token: Optional[CancelToken] = None) -> None:
        self._apply(role, [permission], schema, _fixed(PermissionVerb.DENY), token)

    def revoke(self, role: Role, permission: Permission, *, schema: Optional[str] = None,
               token: Optional[CancelToken] = None) -> None:
        self._apply(role, [permission], schema, _fixed(PermissionVerb.REVOKE), token)

    # ------------------------------------------------------------------
    # Bulk, statement by statement
    # ------------------------------------------------------------------

    def assign_many(self, role: Role, permissions: Sequence[Permission], *, schema: Optional[str] = None,
                    token: Optional[CancelToken] = None) -> None:
        self._apply(role, permissions, schema, normalize_permission_state, token)

    def grant_many(self, role: Role, permissions: Sequence[Permission], *, schema: Optional[str] = None,
                   token: Optional[CancelToken] = None) -> None:
        self._apply(role, permissions, schema, _fixed(PermissionVerb.GRANT), token)

    def deny_many(self, role: Role, permissions: Sequence[Permission], *, schema: Optional[str] = None,
                  token: Optional[CancelToken] = None) -> None:
        self._apply(role, permissions, schema, _fixed(PermissionVerb.DENY), token)

    def revoke_many(self, role: Role, permissions: Sequence[Permission], *, schema: Optional[str] = None,
                    token: Optional[CancelToken] = None) -> None:
        self._apply(role, permissions, schema, _fixed(PermissionVerb.REVOKE), token)

    def _apply(
        self,
        role: Role,
        permissions: Sequence[Permission],
        schema: Optional[str],
        resolve: VerbResolver,
        token: Optional[CancelToken],
    ) -> None:
        plan = self._validate(role, permissions, schema, resolve)

        token = self._token(token)
        self._guard(token)

        bulk = len(plan) > 1
        for verb, permission in plan:
            action = f"{verb.value.lower()} permission"
            logger.info("%s %s%s on role %s", verb.value, permission.name,
                        f" ON SCHEMA::{schema}" if schema else "", role.name)
            try:
                self._run_ddl(action, permission_ddl(verb, role, permission, schema), token)
            except MssqlPermissionsError as exc:
                if not bulk:
                    raise
                raise chain_error(exc, f"cannot {action} {permission.name} for role {role.name}") from exc

    # ------------------------------------------------------------------
    # Bulk, all or nothing
    # ------------------------------------------------------------------

    def grant_many_atomic(self, role: Role, permissions: Sequence[Permission], *,
                          schema: Optional[str] = None, token: Optional[CancelToken] = None) -> None:
        self._apply_atomic(role, permissions, schema, PermissionVerb.GRANT, token)

    def deny_many_atomic(self, role: Role, permissions: Sequence[Permission], *,
                         schema: Optional[str] = None, token: Optional[CancelToken] = None) -> None:
        self._apply_atomic(role, permissions, schema, PermissionVerb.DENY, token)

    def revoke_many_atomic(self, role: Role, permissions: Sequence[Permission], *,
                           schema: Optional[str] = None, token: Optional[CancelToken] = None) -> None:
        self._apply_atomic(role, permissions, schema, PermissionVerb.REVOKE, token)

    def _apply_atomic(
        self,
        role: Role,
        permissions: Sequence[Permission],
        schema: Optional[str],
        verb: PermissionVerb,
        token: Optional[CancelToken],
    ) -> None:
        plan = self._validate(role, permissions, schema, _fixed(verb))

        token = self._token(token)
        self._guard(token)

        steps = [ddl_step(permission_ddl(v, role, p, schema)) for v, p in plan]
        logger.info("%s %d permissions on role %s in one transaction", verb.value, len(steps), role.name)
        self._driver_call(
            f"{verb.value.lower()} permissions in transaction",
            lambda: self.db.run_in_transaction(steps, token),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_for_role(self, role: Role, *, schema: Optional[str] = None,
                      token: Optional[CancelToken] = None) -> List[Permission]:
        """Database-level (class 0) or schema-level (class 3) permissions of a role."""
        validate_role(role)
        if schema is not None:
            validate_schema_name(schema)

        token = self._token(token)
        self._guard(token)

        if schema is None:
            sql, params = queries.DATABASE_PERMISSIONS_FOR_ROLE, {"name": role.name}
        else:
            sql, params = queries.SCHEMA_PERMISSIONS_FOR_ROLE, {"name": role.name, "schema_name": schema}

        rows = self._fetch_all("retrieve permissions", sql, params, token)
        return map_many(rows, map_permission)

    def get_for_role(self, role: Role, permission: Permission, *, schema: Optional[str] = None,
                     token: Optional[CancelToken] = None) -> Permission:
        """
        Single permission row of a role.

        Raises:
            NotFoundError: "permissions not found" (database scope) or
                "permission not found" (schema scope)
        """
        validate_role(role)
        validate_permission(permission)
        if schema is not None:
            validate_schema_name(schema)

        token = self._token(token)
        self._guard(token)

        params = {"name": role.name, "permission_name": permission.name}
        if schema is None:
            sql, missing = queries.DATABASE_PERMISSION_FOR_ROLE, "permissions not found"
        else:
            sql, missing = queries.SCHEMA_PERMISSION_FOR_ROLE, "permission not found"
            params["schema_name"] = schema

        row = self._fetch_one("retrieve permission", sql, params, token)
        if row is None:
            raise NotFoundError(missing, operation="get permission")
        return map_permission(row)

    def list_for_server_principal(self, name: str, token: Optional[CancelToken] = None) -> List[Permission]:
        """Server-level permissions of a login or server role (read only)."""
        self._require_master("get server permissions")
        validate_principal_name(name, "server principal")

        token = self._token(token)
        self._guard(token)

        rows = self._fetch_all(
            "retrieve server permissions", queries.SERVER_PERMISSIONS_FOR_PRINCIPAL, {"name": name}, token
        )
        return map_many(rows, map_permission)

    def get_for_server_principal(self, name: str, permission: Permission,
                                 token: Optional[CancelToken] = None) -> Permission:
        self._require_master("get server permission")
        validate_principal_name(name, "server principal")
        validate_permission(permission)

        token = self._token(token)
        self._guard(token)

        row = self._fetch_one(
            "retrieve server permission",
            queries.SERVER_PERMISSION_FOR_PRINCIPAL,
            {"name": name, "permission_name": permission.name},
            token,
        )
        if row is None:
            raise NotFoundError("permission not found", operation="get server permission")
        return map_permission(row)
