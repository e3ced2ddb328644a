"""
Probe command: connect, detect the server dialect and print it.
"""

import logging

import typer

from mssqlpermissions.interface.cli.state import get_state

logger = logging.getLogger(__name__)


def probe(ctx: typer.Context) -> None:
    """Connect to the configured database and show what the server reports."""
    state = get_state(ctx)
    with state.client() as client:
        dialect = client.dialect
        state.formatter.display_dialect(dialect, state.settings.host, state.settings.database)
