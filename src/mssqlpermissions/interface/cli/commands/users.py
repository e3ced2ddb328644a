"""
Database user commands.
"""

import logging

import typer

from mssqlpermissions.domain.models import User
from mssqlpermissions.interface.cli.state import get_state

logger = logging.getLogger(__name__)

app = typer.Typer(help="Database user commands", no_args_is_help=True)


@app.command("show")
def show(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="User name"),
) -> None:
    """Show one database user."""
    state = get_state(ctx)
    with state.client() as client:
        user = client.users.get(User(name=name))
        state.formatter.display_users([user], title=f"User {user.name}")
