"""
Server login operations.

Logins live in master: every call checks the target database first. Reads
come from sys.sql_logins, or sys.server_principals for external logins.
"""

from __future__ import annotations

import logging
from typing import Optional

from mssqlpermissions.application.base import BaseOperations
from mssqlpermissions.domain.errors import NotFoundError, ValidationError
from mssqlpermissions.domain.models import Login
from mssqlpermissions.domain.validators import validate_principal_name, validate_quoted_values
from mssqlpermissions.infrastructure.sql import queries
from mssqlpermissions.infrastructure.sql.cancellation import CancelToken
from mssqlpermissions.infrastructure.sql.ddl import Ddl
from mssqlpermissions.infrastructure.sql.result_mapper import map_login

logger = logging.getLogger(__name__)


class LoginOperations(BaseOperations):
    """Create, read, alter and drop server logins."""

    def get(self, login: Login, token: Optional[CancelToken] = None) -> Login:
        """
        Read a login by name, or by principal id when no name is given.

        Returns:
            A new Login; the argument is left untouched.

        Raises:
            NotFoundError: no such login
        """
        self._require_master("get login")
        if not login.name and not login.principal_id:
            raise ValidationError("a login must have a name or a principal id", operation="get login")

        token = self._token(token)
        self._guard(token)

        sql = queries.LOGIN_FROM_SERVER_PRINCIPALS if login.external else queries.LOGIN_FROM_SQL_LOGINS
        if login.name:
            sql += queries.BY_NAME
            params = {"name": login.name}
        else:
            sql += queries.BY_PRINCIPAL_ID
            params = {"principal_id": login.principal_id}

        row = self._fetch_one("retrieve login", sql, params, token)
        if row is None:
            raise NotFoundError("login not found", operation="get login")
        return map_login(row, external=login.external)

    def create(self, login: Login, token: Optional[CancelToken] = None) -> None:
        """
        CREATE LOGIN, either FROM EXTERNAL PROVIDER or WITH PASSWORD.

        On-premises the default database is always set (master when empty)
        and the default language only when it differs from the server's.
        """
        self._require_master("create login")
        validate_principal_name(login.name, "login")
        if not login.external and not login.plain_password:
            raise ValidationError("a login must have a password if it's not external", operation="create login")
        _validate_login_values(login)

        target = login.model_copy(update={"default_database": login.default_database or "master"})

        token = self._token(token)
        self._guard(token)

        ddl = Ddl("CREATE LOGIN ").name("name", target.name)
        options = []
        if target.external:
            ddl.text(" FROM EXTERNAL PROVIDER")
        else:
            options.append(Ddl("PASSWORD = ").secret("password", target.plain_password))

        if not self.ctx.is_azure:
            options.append(Ddl("DEFAULT_DATABASE = ").name("default_database", target.default_database))
            if target.default_language and target.default_language != self.ctx.dialect.default_language:
                options.append(Ddl("DEFAULT_LANGUAGE = ").name("default_language", target.default_language))

        ddl.options(options)
        logger.info("Creating login %s (external=%s)", target.name, target.external)
        self._run_ddl("create login", ddl, token)

    def update(self, login: Login, token: Optional[CancelToken] = None) -> None:
        """
        ALTER LOGIN with only what differs from the current row.

        Nothing requested or nothing different means no DDL at all.
        """
        self._require_master("update login")
        validate_principal_name(login.name, "login")
        if login.external and login.plain_password:
            raise ValidationError("an external login cannot have a password", operation="update login")
        _validate_login_values(login)

        if not login.plain_password and not login.default_database and not login.default_language:
            logger.debug("Login %s: nothing to update", login.name)
            return

        token = self._token(token)
        current = self.get(Login(name=login.name, external=login.external), token)

        options = []
        if not login.external and login.plain_password:
            options.append(Ddl("PASSWORD = ").secret("password", login.plain_password))
        if not self.ctx.is_azure:
            if login.default_database and login.default_database != current.default_database:
                options.append(Ddl("DEFAULT_DATABASE = ").name("default_database", login.default_database))
            if login.default_language and login.default_language != current.default_language:
                options.append(Ddl("DEFAULT_LANGUAGE = ").name("default_language", login.default_language))

        if not options:
            logger.debug("Login %s: already up to date", login.name)
            return

        ddl = Ddl("ALTER LOGIN ").name("name", login.name).options(options)
        logger.info("Updating login %s", login.name)
        self._run_ddl("update login", ddl, token)

    def delete(self, login: Login, token: Optional[CancelToken] = None) -> None:
        """Kill the login's sessions, then DROP LOGIN."""
        self._require_master("delete login")
        validate_principal_name(login.name, "login")

        token = self._token(token)
        self._guard(token)

        self._kill_sessions(login.name, token)
        logger.info("Dropping login %s", login.name)
        self._run_ddl("delete login", Ddl("DROP LOGIN ").name("name", login.name), token)

    def kill_sessions(self, name: str, token: Optional[CancelToken] = None) -> None:
        """KILL every session opened by ``name`` except the caller's own."""
        self._require_master("kill login sessions")
        validate_principal_name(name, "login")

        token = self._token(token)
        self._guard(token)
        self._kill_sessions(name, token)

    def _kill_sessions(self, name: str, token: CancelToken) -> None:
        logger.info("Killing sessions of login %s", name)
        self._execute("kill login sessions", queries.KILL_SESSIONS, {"name": name}, token)


def _validate_login_values(login: Login) -> None:
    validate_quoted_values(
        (login.plain_password, "password"),
        (login.default_database, "default database"),
        (login.default_language, "default language"),
    )
