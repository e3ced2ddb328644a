"""
CLI result formatters for principals, permissions and the server probe.

Display logic only; commands hand over domain models and never build
tables themselves.
"""

import logging
from typing import List

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from mssqlpermissions.domain.models import Login, Permission, User
from mssqlpermissions.infrastructure.sql.connector import ServerDialect

logger = logging.getLogger(__name__)
console = Console()


def _yes_no(value: bool) -> str:
    return "[green]yes[/green]" if value else "[dim]no[/dim]"


class ResultFormatter:
    """Render command results as rich tables and panels."""

    def __init__(self, output: Console | None = None):
        self.console = output or console

    def display_dialect(self, dialect: ServerDialect, host: str, database: str) -> None:
        version = dialect.version.splitlines()[0] if dialect.version else "unknown"
        body = (
            f"[cyan]Server:[/cyan] {host}\n"
            f"[cyan]Database:[/cyan] {database}\n"
            f"[cyan]Version:[/cyan] {version}\n"
            f"[cyan]Azure SQL:[/cyan] {_yes_no(dialect.is_azure)}\n"
            f"[cyan]Contained authentication:[/cyan] {_yes_no(dialect.contained)}\n"
            f"[cyan]Default language:[/cyan] {dialect.default_language or '-'}"
        )
        self.console.print(Panel(body, title="Server probe", border_style="blue"))

    def display_logins(self, logins: List[Login], title: str) -> None:
        table = Table(title=title)
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Principal ID", justify="right")
        table.add_column("Type", style="yellow")
        table.add_column("External")
        table.add_column("Disabled")
        table.add_column("Default database", style="blue")
        table.add_column("Default language", style="blue")

        for login in logins:
            table.add_row(
                escape(login.name),
                str(login.principal_id),
                login.type,
                _yes_no(login.external),
                _yes_no(login.is_disabled),
                login.default_database or "-",
                login.default_language or "-",
            )

        self.console.print(table)
        self.console.print(f"[blue]{len(logins)} login(s)[/blue]")

    def display_users(self, users: List[User], title: str) -> None:
        table = Table(title=title)
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Principal ID", justify="right")
        table.add_column("External")
        table.add_column("Contained")
        table.add_column("Login", style="magenta")
        table.add_column("Default schema", style="blue")
        table.add_column("Default language", style="blue")

        for user in users:
            table.add_row(
                escape(user.name),
                str(user.principal_id),
                _yes_no(user.external),
                _yes_no(user.contained),
                escape(user.login_name) or "-",
                user.default_schema or "-",
                user.default_language or "-",
            )

        self.console.print(table)
        self.console.print(f"[blue]{len(users)} user(s)[/blue]")

    def display_permissions(self, permissions: List[Permission], title: str) -> None:
        table = Table(title=title)
        table.add_column("Permission", style="cyan", no_wrap=True)
        table.add_column("State", style="green")
        table.add_column("Class", style="yellow")
        table.add_column("Major ID", justify="right")
        table.add_column("Grantor", justify="right")

        for permission in permissions:
            state = permission.state_desc or permission.state
            if state.startswith("DENY") or state == "D":
                state = f"[red]{state}[/red]"
            table.add_row(
                permission.name,
                state,
                permission.class_desc or permission.permission_class,
                str(permission.major_id),
                str(permission.grantor_principal_id),
            )

        self.console.print(table)
        self.console.print(f"[blue]{len(permissions)} permission(s)[/blue]")

    def success(self, message: str) -> None:
        self.console.print(f"[green]✅ {escape(message)}[/green]")

    def error(self, message: str) -> None:
        self.console.print(f"[red]❌ Error:[/red] {escape(message)}")
