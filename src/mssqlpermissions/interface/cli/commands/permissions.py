"""
Permission commands for database roles.

Grant, deny and revoke accept several permission names at once; with
``--atomic`` they run inside one transaction.
"""

import logging
from typing import List, Optional

import typer

from mssqlpermissions.domain.models import Permission, PermissionVerb, Role
from mssqlpermissions.interface.cli.state import get_state

logger = logging.getLogger(__name__)

app = typer.Typer(help="Database role permission commands", no_args_is_help=True)

SCHEMA_OPTION = typer.Option(None, "--schema", "-s", help="Scope to a schema instead of the database")


def _scope(schema: Optional[str]) -> str:
    return f"schema {schema}" if schema else "database"


@app.command("list")
def list_permissions(
    ctx: typer.Context,
    role: str = typer.Argument(..., help="Database role name"),
    schema: Optional[str] = SCHEMA_OPTION,
) -> None:
    """List the permissions held by a role."""
    state = get_state(ctx)
    with state.client() as client:
        permissions = client.permissions.list_for_role(Role(name=role), schema=schema)
        state.formatter.display_permissions(permissions, title=f"Permissions of {role} on {_scope(schema)}")


@app.command("server")
def server_permissions(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Server principal name"),
) -> None:
    """List the server-level permissions of a login or server role."""
    state = get_state(ctx)
    with state.client() as client:
        permissions = client.permissions.list_for_server_principal(name)
        state.formatter.display_permissions(permissions, title=f"Server permissions of {name}")


def _change(ctx: typer.Context, verb: PermissionVerb, role: str, names: List[str],
            schema: Optional[str], atomic: bool) -> None:
    state = get_state(ctx)
    target = Role(name=role)
    permissions = [Permission(name=name.upper()) for name in names]
    with state.client() as client:
        ops = client.permissions
        if atomic:
            apply = {
                PermissionVerb.GRANT: ops.grant_many_atomic,
                PermissionVerb.DENY: ops.deny_many_atomic,
                PermissionVerb.REVOKE: ops.revoke_many_atomic,
            }[verb]
        else:
            apply = {
                PermissionVerb.GRANT: ops.grant_many,
                PermissionVerb.DENY: ops.deny_many,
                PermissionVerb.REVOKE: ops.revoke_many,
            }[verb]
        apply(target, permissions, schema=schema)
        state.formatter.success(
            f"{verb.value} {', '.join(p.name for p in permissions)} on {_scope(schema)} for {role}"
        )


@app.command("grant")
def grant(
    ctx: typer.Context,
    role: str = typer.Argument(..., help="Database role name"),
    names: List[str] = typer.Argument(..., help="Permission names, e.g. SELECT \"VIEW DEFINITION\""),
    schema: Optional[str] = SCHEMA_OPTION,
    atomic: bool = typer.Option(False, "--atomic", help="All or nothing in one transaction"),
) -> None:
    """Grant permissions to a role."""
    _change(ctx, PermissionVerb.GRANT, role, names, schema, atomic)


@app.command("deny")
def deny(
    ctx: typer.Context,
    role: str = typer.Argument(..., help="Database role name"),
    names: List[str] = typer.Argument(..., help="Permission names"),
    schema: Optional[str] = SCHEMA_OPTION,
    atomic: bool = typer.Option(False, "--atomic", help="All or nothing in one transaction"),
) -> None:
    """Deny permissions to a role."""
    _change(ctx, PermissionVerb.DENY, role, names, schema, atomic)


@app.command("revoke")
def revoke(
    ctx: typer.Context,
    role: str = typer.Argument(..., help="Database role name"),
    names: List[str] = typer.Argument(..., help="Permission names"),
    schema: Optional[str] = SCHEMA_OPTION,
    atomic: bool = typer.Option(False, "--atomic", help="All or nothing in one transaction"),
) -> None:
    """Revoke permissions from a role."""
    _change(ctx, PermissionVerb.REVOKE, role, names, schema, atomic)
