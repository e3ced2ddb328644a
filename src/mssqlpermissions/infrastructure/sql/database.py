"""
ODBC database handle.

Handles:
- Opening pooled pyodbc connections, one per operation
- Named parameter emulation on top of pyodbc's qmark markers
- Query execution with rows returned as dictionaries
- The single transactional primitive used by bulk permission changes
"""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence

import pyodbc

from mssqlpermissions.domain.errors import ConnectivityError, OperationCancelledError
from mssqlpermissions.infrastructure.sql.cancellation import CancelToken

logger = logging.getLogger(__name__)

Row = Dict[str, Any]
Params = Optional[Mapping[str, Any]]

_PARAM_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _sql_type(value: Any) -> str:
    # bool first, it is an int subclass
    if isinstance(value, bool):
        return "BIT"
    if isinstance(value, int):
        return "BIGINT"
    return "NVARCHAR(MAX)"


def bind_parameters(sql: str, params: Params = None) -> tuple[str, List[Any]]:
    """
    Turn a statement using ``@name`` variables into a qmark batch.

    Each named value becomes ``DECLARE @name <type> = ?;`` ahead of the
    statement, so the body keeps referring to ``@name`` and the values
    still travel as bound parameters.

    Returns:
        (batch text, positional values)
    """
    lines = ["SET NOCOUNT ON;"]
    values: List[Any] = []
    for name, value in (params or {}).items():
        if not _PARAM_NAME.match(name):
            raise ValueError(f"invalid parameter name: {name!r}")
        lines.append(f"DECLARE @{name} {_sql_type(value)} = ?;")
        values.append(value)
    lines.append(sql)
    return "\n".join(lines), values


def _rows(cursor) -> List[Row]:
    """Read the first result set of a batch as a list of dictionaries."""
    while cursor.description is None:
        if not cursor.nextset():
            return []

    columns = [column[0] for column in cursor.description]
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


def _cancel_cursor(cursor) -> None:
    """Ask the driver to stop the statement running on ``cursor``."""
    try:
        cursor.cancel()
    except pyodbc.Error as exc:
        logger.warning("Cursor cancel failed: %s", exc)


class Session:
    """
    A single open connection, used for one operation or one transaction.

    Not thread safe; never outlives the ``with`` block that produced it.
    """

    def __init__(self, connection, token: CancelToken) -> None:
        self._connection = connection
        self._token = token

    @contextmanager
    def _cursor(self, sql: str, params: Params) -> Iterator[Any]:
        """
        Execute one batch and yield its cursor.

        While the cursor is open, cancelling the token cancels the statement
        at the driver. A token cancelled before the cursor is released turns
        the call into OperationCancelledError.
        """
        self._token.raise_if_cancelled()
        self._connection.timeout = self._token.query_timeout()
        batch, values = bind_parameters(sql, params)
        cursor = self._connection.cursor()
        unregister = self._token.on_cancel(lambda: _cancel_cursor(cursor))
        try:
            try:
                cursor.execute(batch, *values)
                yield cursor
            except pyodbc.Error as exc:
                if self._token.cancelled:
                    raise OperationCancelledError("query cancelled") from exc
                if self._token.expired:
                    raise OperationCancelledError("query cancelled by deadline") from exc
                raise
            self._token.raise_if_cancelled()
        finally:
            unregister()
            cursor.close()

    def execute(self, sql: str, params: Params = None) -> None:
        with self._cursor(sql, params) as cursor:
            # drain every result set so errors raised later in the batch surface
            while cursor.nextset():
                pass

    def fetch_all(self, sql: str, params: Params = None) -> List[Row]:
        with self._cursor(sql, params) as cursor:
            return _rows(cursor)

    def fetch_one(self, sql: str, params: Params = None) -> Optional[Row]:
        rows = self.fetch_all(sql, params)
        return rows[0] if rows else None

    def commit(self) -> None:
        self._token.raise_if_cancelled()
        self._connection.commit()

    def rollback(self) -> None:
        self._connection.rollback()


TransactionStep = Callable[[Session], None]


class Database:
    """
    Handle over the ODBC driver-manager connection pool.

    Every call opens a pooled connection and closes it on all paths, so the
    handle itself is safe to share between threads as long as each caller
    brings its own cancellation token.
    """

    def __init__(
        self,
        connection_string: str,
        *,
        timeout: int = 30,
        connect: Optional[Callable[..., Any]] = None,
    ) -> None:
        self._connection_string = connection_string
        self._timeout = timeout
        self._connect = connect or pyodbc.connect
        self._closed = False

    @property
    def timeout(self) -> int:
        return self._timeout

    @property
    def closed(self) -> bool:
        return self._closed

    def token(self, token: Optional[CancelToken] = None) -> CancelToken:
        """Caller's token, or a fresh one bounded by the default timeout."""
        return token if token is not None else CancelToken(self._timeout)

    @contextmanager
    def session(self, token: Optional[CancelToken] = None, *, autocommit: bool = True) -> Iterator[Session]:
        if self._closed:
            raise ConnectivityError("database connection is closed")
        token = self.token(token)
        token.raise_if_cancelled()

        login_timeout = token.query_timeout() or self._timeout
        connection = self._connect(
            self._connection_string, autocommit=autocommit, timeout=login_timeout
        )
        try:
            yield Session(connection, token)
        finally:
            connection.close()

    def ping(self, token: Optional[CancelToken] = None) -> None:
        """
        Check the server answers.

        Raises:
            ConnectivityError: connection or round-trip failed
        """
        try:
            with self.session(token) as session:
                session.execute("SELECT 1")
        except pyodbc.Error as exc:
            raise ConnectivityError(f"cannot ping database: {exc}", operation="ping") from exc

    def fetch_all(self, sql: str, params: Params = None, token: Optional[CancelToken] = None) -> List[Row]:
        with self.session(token) as session:
            return session.fetch_all(sql, params)

    def fetch_one(self, sql: str, params: Params = None, token: Optional[CancelToken] = None) -> Optional[Row]:
        with self.session(token) as session:
            return session.fetch_one(sql, params)

    def execute(self, sql: str, params: Params = None, token: Optional[CancelToken] = None) -> None:
        with self.session(token) as session:
            session.execute(sql, params)

    def run_in_transaction(
        self, steps: Sequence[TransactionStep], token: Optional[CancelToken] = None
    ) -> None:
        """
        Run steps in order inside one transaction.

        Commits after the last step. Any failure rolls back and re-raises the
        original error; a failing rollback is logged and never replaces it.
        """
        with self.session(token, autocommit=False) as session:
            try:
                for step in steps:
                    step(session)
                session.commit()
            except BaseException:
                try:
                    session.rollback()
                except pyodbc.Error as rollback_exc:
                    logger.error("Transaction rollback failed: %s", rollback_exc)
                raise
            logger.debug("Transaction committed (%d statements)", len(steps))

    def close(self) -> None:
        """Mark the handle closed; pooled connections are owned by the driver manager."""
        self._closed = True
