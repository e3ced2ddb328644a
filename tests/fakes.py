"""
In-memory stand-ins for pyodbc connections.

FakeServer is passed as the ``connect`` factory of a Database. It records
every batch with its bound values and answers reads from scripted rows
matched by SQL fragment.
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import pyodbc

from mssqlpermissions.application.base import OperationContext
from mssqlpermissions.infrastructure.sql.connector import ServerDialect
from mssqlpermissions.infrastructure.sql.database import Database

_DECLARE = re.compile(r"DECLARE @(\w+) [A-Z()]+ = \?;")


@dataclass
class Call:
    batch: str
    values: Tuple[Any, ...]
    autocommit: bool

    @property
    def params(self) -> Dict[str, Any]:
        """Named values recovered from the DECLARE preamble."""
        return dict(zip(_DECLARE.findall(self.batch), self.values))

    @property
    def is_ddl(self) -> bool:
        return "EXEC (@sql);" in self.batch


@dataclass
class _Failure:
    fragment: str
    error: Exception
    times: Optional[int] = None


class FakeCursor:
    def __init__(self, connection: "FakeConnection") -> None:
        self.connection = connection
        self.description = None
        self._rows: List[Dict[str, Any]] = []
        self._cancelled = threading.Event()
        self.closed = False

    def execute(self, batch: str, *values: Any) -> "FakeCursor":
        server = self.connection.server
        server.calls.append(Call(batch, values, self.connection.autocommit))
        delay = server.delay_for(batch)
        if delay and self._cancelled.wait(delay):
            raise pyodbc.OperationalError("HY008", "[HY008] Operation canceled")
        server.raise_for(batch)

        rows = server.rows_for(batch)
        if rows is not None:
            columns = list(rows[0].keys()) if rows else ["value"]
            self.description = [(column, None) for column in columns]
            self._rows = rows
        return self

    def fetchall(self) -> List[Tuple[Any, ...]]:
        columns = [column[0] for column in self.description]
        return [tuple(row.get(column) for column in columns) for row in self._rows]

    def nextset(self) -> bool:
        return False

    def cancel(self) -> None:
        self.connection.server.cancels += 1
        self._cancelled.set()

    def close(self) -> None:
        self.closed = True


class FakeConnection:
    def __init__(self, server: "FakeServer", autocommit: bool, timeout: int) -> None:
        self.server = server
        self.autocommit = autocommit
        self.login_timeout = timeout
        self.timeout = 0
        self.closed = False

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        self.server.commits += 1

    def rollback(self) -> None:
        self.server.rollbacks += 1
        if self.server.rollback_error is not None:
            raise self.server.rollback_error

    def close(self) -> None:
        self.closed = True


@dataclass
class FakeServer:
    """Scripted SQL Server double; the most recent matching script wins."""

    calls: List[Call] = field(default_factory=list)
    connections: List[FakeConnection] = field(default_factory=list)
    commits: int = 0
    rollbacks: int = 0
    rollback_error: Optional[Exception] = None
    cancels: int = 0
    _responses: List[Tuple[str, List[Dict[str, Any]]]] = field(default_factory=list)
    _failures: List[_Failure] = field(default_factory=list)
    _delays: List[Tuple[str, float]] = field(default_factory=list)

    def respond(self, fragment: str, rows: List[Dict[str, Any]]) -> "FakeServer":
        self._responses.insert(0, (fragment, rows))
        return self

    def fail(self, fragment: str, error: Optional[Exception] = None, times: Optional[int] = None) -> "FakeServer":
        error = error if error is not None else pyodbc.Error("42000", f"scripted failure on {fragment}")
        self._failures.append(_Failure(fragment, error, times))
        return self

    def delay(self, fragment: str, seconds: float) -> "FakeServer":
        """Hold matching statements for up to ``seconds`` unless the cursor is cancelled."""
        self._delays.insert(0, (fragment, seconds))
        return self

    def delay_for(self, batch: str) -> float:
        for fragment, seconds in self._delays:
            if fragment in batch:
                return seconds
        return 0.0

    def rows_for(self, batch: str) -> Optional[List[Dict[str, Any]]]:
        for fragment, rows in self._responses:
            if fragment in batch:
                return [dict(row) for row in rows]
        return None

    def raise_for(self, batch: str) -> None:
        for failure in self._failures:
            if failure.fragment not in batch:
                continue
            if failure.times is not None:
                if failure.times <= 0:
                    continue
                failure.times -= 1
            raise failure.error

    def connect(self, connection_string: str, autocommit: bool = True, timeout: int = 0) -> FakeConnection:
        connection = FakeConnection(self, autocommit, timeout)
        connection.connection_string = connection_string
        self.connections.append(connection)
        return connection

    # ------------------------------------------------------------------
    # Inspection helpers
    # ------------------------------------------------------------------

    @property
    def ddl(self) -> List[Call]:
        return [call for call in self.calls if call.is_ddl]

    @property
    def pings(self) -> int:
        return sum(1 for call in self.calls if call.batch.endswith("\nSELECT 1"))

    def calls_matching(self, fragment: str) -> List[Call]:
        return [call for call in self.calls if fragment in call.batch]


ON_PREM_VERSION = "Microsoft SQL Server 2022 (RTM) - 16.0.1000.6 (X64)"
AZURE_VERSION = "Microsoft SQL Azure (RTM) - 12.0.2000.8"


def make_context(
    server: FakeServer,
    *,
    azure: bool = False,
    contained: bool = True,
    database: str = "master",
    language: str = "us_english",
) -> OperationContext:
    """Operation context over ``server`` with a pre-probed dialect."""
    dialect = ServerDialect(
        version=AZURE_VERSION if azure else ON_PREM_VERSION,
        is_azure=azure,
        default_language=language,
        contained=contained,
    )
    db = Database("Driver={Fake};Server=tcp:fake,1433", timeout=5, connect=server.connect)
    return OperationContext(database=db, dialect=dialect, database_name=database)
