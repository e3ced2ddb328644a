"""
Server role and database role commands.
"""

import logging

import typer

from mssqlpermissions.domain.models import Role
from mssqlpermissions.interface.cli.state import get_state

logger = logging.getLogger(__name__)

server_app = typer.Typer(help="Server role commands", no_args_is_help=True)
database_app = typer.Typer(help="Database role commands", no_args_is_help=True)


@server_app.command("members")
def server_role_members(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Server role name"),
) -> None:
    """List the logins that belong to a server role."""
    state = get_state(ctx)
    with state.client() as client:
        members = client.server_roles.get_members(Role(name=name))
        state.formatter.display_logins(members, title=f"Members of server role {name}")


@database_app.command("members")
def database_role_members(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Database role name"),
) -> None:
    """List the users that belong to a database role."""
    state = get_state(ctx)
    with state.client() as client:
        members = client.database_roles.get_members(Role(name=name))
        state.formatter.display_users(members, title=f"Members of role {name}")
