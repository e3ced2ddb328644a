"""
Login commands.
"""

import logging

import typer

from mssqlpermissions.domain.models import Login
from mssqlpermissions.interface.cli.state import get_state

logger = logging.getLogger(__name__)

app = typer.Typer(help="Server login commands (master database only)", no_args_is_help=True)


@app.command("show")
def show(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Login name"),
    external: bool = typer.Option(False, "--external", help="Look up an Entra ID login"),
) -> None:
    """Show one login."""
    state = get_state(ctx)
    with state.client() as client:
        login = client.logins.get(Login(name=name, external=external))
        state.formatter.display_logins([login], title=f"Login {login.name}")


@app.command("kill-sessions")
def kill_sessions(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Login whose sessions are terminated"),
) -> None:
    """Terminate every session opened by a login."""
    state = get_state(ctx)
    with state.client() as client:
        client.logins.kill_sessions(name)
        state.formatter.success(f"Sessions of {name} terminated")
