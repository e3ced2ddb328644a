"""
Base classes and context for principal and permission operations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, List, Optional

import pyodbc

from mssqlpermissions.domain.connection import DEFAULT_TIMEOUT
from mssqlpermissions.domain.errors import DriverError, MssqlPermissionsError, TopologyError
from mssqlpermissions.infrastructure.sql.cancellation import CancelToken
from mssqlpermissions.infrastructure.sql.ddl import Ddl
from mssqlpermissions.infrastructure.sql.guard import DEFAULT_ATTEMPTS, ensure_connection_with_retry

if TYPE_CHECKING:
    from mssqlpermissions.infrastructure.sql.connector import Connector, ServerDialect
    from mssqlpermissions.infrastructure.sql.database import Database, Params, Row, Session

logger = logging.getLogger(__name__)


@dataclass
class OperationContext:
    """
    Shared state for all operation classes.

    The dialect is the frozen probe result of the connector that opened
    ``database``; operations read it and never recompute it.
    """

    database: Optional[Database]
    dialect: ServerDialect
    database_name: str
    retry_attempts: int = DEFAULT_ATTEMPTS

    @classmethod
    def from_connector(cls, connector: Connector, database: Database) -> "OperationContext":
        return cls(database=database, dialect=connector.dialect, database_name=connector.database)

    @property
    def is_azure(self) -> bool:
        return self.dialect.is_azure

    @property
    def is_master(self) -> bool:
        return self.database_name.lower() == "master"


class BaseOperations:
    """
    Common plumbing: tokens, the connection guard, topology checks and
    driver error wrapping.
    """

    def __init__(self, context: OperationContext) -> None:
        self.ctx = context

    @property
    def db(self) -> Database:
        return self.ctx.database

    def _token(self, token: Optional[CancelToken]) -> CancelToken:
        if token is not None:
            return token
        timeout = self.ctx.database.timeout if self.ctx.database is not None else DEFAULT_TIMEOUT
        return CancelToken(timeout)

    def _guard(self, token: CancelToken) -> None:
        ensure_connection_with_retry(self.ctx.database, token, self.ctx.retry_attempts)

    def _require_master(self, action: str) -> None:
        """Login and server role work only happens from master."""
        if not self.ctx.is_master:
            suffix = " on Azure Database" if self.ctx.is_azure else ""
            raise TopologyError(f"cannot {action} from non master database{suffix}", operation=action)

    def _forbid_azure(self, action: str) -> None:
        if self.ctx.is_azure:
            raise TopologyError(f"cannot {action} on Azure Database", operation=action)

    def _driver_call(self, action: str, call: Callable[[], Any]) -> Any:
        try:
            return call()
        except pyodbc.Error as exc:
            raise DriverError(
                f"cannot {action}. Underlying sql error: {exc}", operation=action
            ) from exc

    def _execute(self, action: str, sql: str, params: Params, token: CancelToken) -> None:
        self._driver_call(action, lambda: self.db.execute(sql, params, token=token))

    def _fetch_one(self, action: str, sql: str, params: Params, token: CancelToken) -> Optional[Row]:
        return self._driver_call(action, lambda: self.db.fetch_one(sql, params, token=token))

    def _fetch_all(self, action: str, sql: str, params: Params, token: CancelToken) -> List[Row]:
        return self._driver_call(action, lambda: self.db.fetch_all(sql, params, token=token))

    def _run_ddl(self, action: str, ddl: Ddl, token: CancelToken) -> None:
        sql, params = ddl.build()
        self._execute(action, sql, params, token)


def chain_error(exc: MssqlPermissionsError, context: str) -> MssqlPermissionsError:
    """Same error type, message prefixed with the bulk step that failed."""
    return type(exc)(f"{context}: {exc.message}", operation=exc.operation)


def ddl_step(ddl: Ddl) -> Callable[[Session], None]:
    """Transaction step executing one DDL statement."""
    sql, params = ddl.build()

    def step(session: Session) -> None:
        session.execute(sql, params)

    return step
