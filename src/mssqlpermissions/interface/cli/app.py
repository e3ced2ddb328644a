"""
Root typer application for mssqlpermissions.

Global options are handled in the callback; each principal kind is a
sub-application.
"""

import logging
from pathlib import Path
from typing import Optional

import typer

from mssqlpermissions import __version__
from mssqlpermissions.infrastructure.logging_config import setup_logging
from mssqlpermissions.interface.cli.commands import logins, permissions, roles, users
from mssqlpermissions.interface.cli.commands.probe import probe
from mssqlpermissions.interface.cli.state import CliState

app = typer.Typer(
    name="mssqlpermissions",
    help="Manage SQL Server and Azure SQL logins, users, roles and permissions",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)

app.command("probe")(probe)
app.add_typer(logins.app, name="login")
app.add_typer(roles.server_app, name="server-role")
app.add_typer(users.app, name="user")
app.add_typer(roles.database_app, name="role")
app.add_typer(permissions.app, name="permissions")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"mssqlpermissions {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    config_dir: Path = typer.Option(Path("config"), "--config-dir", "-c", help="Directory holding connection.json"),
    config_file: str = typer.Option("connection.json", "--config-file", help="Connection file name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also write a debug log to this file"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    """
    [bold blue]mssqlpermissions[/bold blue] - principals and permissions for SQL Server.
    """
    setup_logging(logging.DEBUG if verbose else logging.INFO, log_file)
    ctx.obj = CliState(config_dir=config_dir, config_file=config_file)
