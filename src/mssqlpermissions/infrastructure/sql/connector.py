"""
SQL Server connector and dialect probe.

Handles:
- Canonical ``sqlserver://`` URL assembly for every authentication variant
- Translation of that URL into an ODBC connection string
- ODBC driver detection and fallback
- The connect-time probe (version, default language, contained auth)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote, urlencode

import pyodbc

from mssqlpermissions.domain.connection import (
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
    Authentication,
    DefaultAuth,
    ManagedIdentityAuth,
    ServicePrincipalAuth,
    SqlAuth,
)
from mssqlpermissions.domain.errors import (
    ConnectivityError,
    DriverError,
    TopologyError,
    ValidationError,
)
from mssqlpermissions.infrastructure.sql import queries
from mssqlpermissions.infrastructure.sql.cancellation import CancelToken
from mssqlpermissions.infrastructure.sql.database import Database

logger = logging.getLogger(__name__)

APP_NAME = "mssqlpermissions"
AZURE_VERSION_MARKER = "Microsoft SQL Azure"
MASKED = "xxxxx"

FEDAUTH_SERVICE_PRINCIPAL = "ActiveDirectoryServicePrincipal"
FEDAUTH_MANAGED_IDENTITY = "ActiveDirectoryManagedIdentity"
FEDAUTH_DEFAULT = "ActiveDirectoryDefault"

# fedauth value -> ODBC Authentication keyword
ODBC_AUTHENTICATION = {
    FEDAUTH_SERVICE_PRINCIPAL: "ActiveDirectoryServicePrincipal",
    FEDAUTH_MANAGED_IDENTITY: "ActiveDirectoryMsi",
    FEDAUTH_DEFAULT: "ActiveDirectoryDefault",
}

PREFERRED_DRIVERS = (
    "ODBC Driver 18 for SQL Server",
    "ODBC Driver 17 for SQL Server",
    "ODBC Driver 13 for SQL Server",
    "ODBC Driver 11 for SQL Server",
)


@dataclass(frozen=True)
class ServerDialect:
    """Server facts captured once by the connect-time probe."""

    version: str
    is_azure: bool
    default_language: str
    contained: bool


def is_azure_version(version: str) -> bool:
    return AZURE_VERSION_MARKER in (version or "")


def _odbc_value(value: str) -> str:
    """Brace-quote a connection string value when it needs it."""
    if any(ch in value for ch in ";{}=") or value != value.strip():
        return "{" + value.replace("}", "}}") + "}"
    return value


def detect_odbc_driver() -> str:
    """
    Detect best available ODBC driver.

    Raises:
        ConnectivityError: no SQL Server ODBC driver is installed
    """
    drivers = pyodbc.drivers()
    logger.debug("Available ODBC drivers: %s", drivers)

    for driver in PREFERRED_DRIVERS:
        if driver in drivers:
            logger.debug("Using ODBC driver: %s", driver)
            return driver

    raise ConnectivityError(
        "No SQL Server ODBC driver found. Please install ODBC Driver 17 or 18.",
        operation="connect",
    )


class Connector:
    """
    Connection descriptor for one server and database.

    connect() validates the descriptor, opens the pooled handle, pings and
    probes the server once. The resulting dialect is frozen for the life of
    the descriptor; do not reuse a connector against a different server.
    """

    def __init__(
        self,
        host: str,
        database: str,
        port: Optional[int] = DEFAULT_PORT,
        auth: Optional[Authentication] = None,
        timeout: Optional[int] = DEFAULT_TIMEOUT,
        driver: Optional[str] = None,
        encrypt: bool = True,
        trust_server_certificate: bool = False,
        connect_factory: Optional[Callable[..., Any]] = None,
    ):
        self.host = host
        self.database = database
        self.port = port or DEFAULT_PORT
        self.auth: Authentication = auth if auth is not None else DefaultAuth()
        self.timeout = timeout or DEFAULT_TIMEOUT
        self.driver = driver
        self.encrypt = encrypt
        self.trust_server_certificate = trust_server_certificate
        self._connect_factory = connect_factory
        self._dialect: Optional[ServerDialect] = None
        self._database: Optional[Database] = None

    # ------------------------------------------------------------------
    # URL assembly
    # ------------------------------------------------------------------

    def validate(self) -> None:
        if not self.host:
            raise ValidationError("missing host name", operation="connect")
        if not self.database:
            raise ValidationError("missing database name", operation="connect")

    def _url_parts(self) -> Tuple[Optional[Tuple[str, str]], List[Tuple[str, str]]]:
        """Userinfo and ordered query pairs for the current authentication."""
        userinfo = None
        query = [("database", self.database), ("app name", APP_NAME)]

        match self.auth:
            case SqlAuth(username=username, password=password):
                userinfo = (username, password.get_secret_value())
            case ServicePrincipalAuth() as sp:
                query.append(("fedauth", FEDAUTH_SERVICE_PRINCIPAL))
                query.append(("user id", sp.user_id))
                query.append(("password", sp.client_secret.get_secret_value()))
            case ManagedIdentityAuth(user_identity=user_identity, user_id=user_id, resource_id=resource_id):
                query.append(("fedauth", FEDAUTH_MANAGED_IDENTITY))
                if user_identity:
                    if user_id:
                        query.append(("user id", user_id))
                    if resource_id:
                        query.append(("resource id", resource_id))
            case _:
                query.append(("fedauth", FEDAUTH_DEFAULT))

        return userinfo, query

    def build_url(self, *, mask_secrets: bool = False) -> str:
        """
        Build the canonical ``sqlserver://`` URL.

        Args:
            mask_secrets: replace passwords so the URL can be logged
        """
        self.validate()
        userinfo, query = self._url_parts()

        netloc = f"{self.host}:{self.port}"
        if userinfo is not None:
            username, password = userinfo
            if mask_secrets:
                password = MASKED
            netloc = f"{quote(username, safe='')}:{quote(password, safe='')}@{netloc}"

        if mask_secrets:
            query = [(key, MASKED if key == "password" else value) for key, value in query]

        return f"sqlserver://{netloc}?{urlencode(query, quote_via=quote)}"

    def build_connection_string(self) -> str:
        """Translate the URL parts into an ODBC connection string."""
        self.validate()
        userinfo, query = self._url_parts()
        values: Dict[str, str] = dict(query)

        parts = [
            f"Driver={{{self.driver or detect_odbc_driver()}}}",
            f"Server=tcp:{self.host},{self.port}",
            f"Database={_odbc_value(values['database'])}",
            f"APP={_odbc_value(values['app name'])}",
            f"Encrypt={'yes' if self.encrypt else 'no'}",
            f"TrustServerCertificate={'yes' if self.trust_server_certificate else 'no'}",
        ]

        if userinfo is not None:
            parts.append(f"UID={_odbc_value(userinfo[0])}")
            parts.append(f"PWD={_odbc_value(userinfo[1])}")
        else:
            parts.append(f"Authentication={ODBC_AUTHENTICATION[values['fedauth']]}")
            if "user id" in values:
                parts.append(f"UID={_odbc_value(values['user id'])}")
            if "password" in values:
                parts.append(f"PWD={_odbc_value(values['password'])}")
            if "resource id" in values and "user id" not in values:
                logger.warning(
                    "ODBC managed identity selects identities by client id only; resource id %s is ignored",
                    values["resource id"],
                )

        return ";".join(parts)

    # ------------------------------------------------------------------
    # Connect and probe
    # ------------------------------------------------------------------

    def connect(self, token: Optional[CancelToken] = None) -> Database:
        """
        Open the pooled handle, ping it and probe the server.

        Raises:
            ValidationError: host or database missing
            ConnectivityError: the server did not answer the ping
            DriverError: a probe query failed
            TopologyError: the target is neither Azure SQL nor a contained database
        """
        self.validate()
        logger.info("Connecting to %s", self.build_url(mask_secrets=True))

        database = Database(
            self.build_connection_string(),
            timeout=self.timeout,
            connect=self._connect_factory,
        )
        token = token if token is not None else CancelToken(self.timeout)

        try:
            database.ping(token)
        except ConnectivityError as exc:
            raise ConnectivityError(
                f"error connecting to the database: {exc.message}", operation="connect"
            ) from exc

        dialect = self.probe(database, token)
        if not dialect.contained and not dialect.is_azure:
            raise TopologyError(
                "the target database is not a contained database. "
                "Only contained databases are supported",
                operation="connect",
            )

        self._dialect = dialect
        self._database = database
        return database

    def probe(self, database: Database, token: Optional[CancelToken] = None) -> ServerDialect:
        """Run the three read-only probe queries and freeze the result."""
        version = self._probe_value(database, queries.SERVER_VERSION, "version", "server version", token)
        language = self._probe_value(database, queries.DEFAULT_LANGUAGE, "name", "server default language", token)
        contained = self._probe_value(
            database, queries.CONTAINED_AUTHENTICATION, "value_in_use", "contained status", token
        )

        dialect = ServerDialect(
            version=version or "",
            is_azure=is_azure_version(version or ""),
            default_language=language or "",
            contained=bool(contained),
        )
        logger.info(
            "Server probe: azure=%s, contained=%s, default language=%s",
            dialect.is_azure, dialect.contained, dialect.default_language,
        )
        return dialect

    @staticmethod
    def _probe_value(database: Database, sql: str, column: str, what: str, token) -> Any:
        try:
            row = database.fetch_one(sql, token=token)
        except pyodbc.Error as exc:
            raise DriverError(f"error retrieving the {what}: {exc}", operation="connect") from exc
        return row.get(column) if row else None

    # ------------------------------------------------------------------
    # Frozen dialect
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._dialect is not None

    @property
    def dialect(self) -> ServerDialect:
        if self._dialect is None:
            raise ConnectivityError("connector is not connected", operation="dialect")
        return self._dialect

    @property
    def is_azure(self) -> bool:
        return self.dialect.is_azure

    @property
    def default_language(self) -> str:
        return self.dialect.default_language

    @property
    def is_master(self) -> bool:
        return self.database.lower() == "master"
