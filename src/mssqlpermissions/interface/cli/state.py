"""
Per-invocation CLI state shared by the command groups through ``ctx.obj``.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

import typer

from mssqlpermissions.application.client import PermissionsClient
from mssqlpermissions.domain.connection import ConnectionSettings
from mssqlpermissions.domain.errors import MssqlPermissionsError
from mssqlpermissions.infrastructure.config_loader import ConfigLoader
from mssqlpermissions.interface.cli.formatters import ResultFormatter

logger = logging.getLogger(__name__)


@dataclass
class CliState:
    """Options from the root callback plus lazily loaded settings."""

    config_dir: Path
    config_file: str = "connection.json"
    formatter: ResultFormatter = field(default_factory=ResultFormatter)
    _settings: Optional[ConnectionSettings] = None

    @property
    def settings(self) -> ConnectionSettings:
        if self._settings is None:
            self._settings = ConfigLoader(self.config_dir).load_connection(self.config_file)
        return self._settings

    @contextmanager
    def client(self) -> Iterator[PermissionsClient]:
        """
        Open a client for one command and turn failures into exit code 1.
        """
        client = None
        try:
            client = PermissionsClient(self.settings.to_connector())
            yield client
        except (MssqlPermissionsError, FileNotFoundError, ValueError) as e:
            logger.debug("Command failed", exc_info=True)
            self.formatter.error(str(e))
            raise typer.Exit(1)
        finally:
            if client is not None:
                client.close()


def get_state(ctx: typer.Context) -> CliState:
    state = ctx.find_object(CliState)
    if state is None:
        raise typer.BadParameter("CLI state missing; run through the mssqlpermissions entry point")
    return state
