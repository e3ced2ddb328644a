"""
Database user operations.

A user is one of four flavors, picked by its external and contained flags:

    external  contained  DDL
    yes       yes        CREATE USER [n] FROM EXTERNAL PROVIDER [WITH OBJECT_ID = '<id>']
    yes       no         CREATE USER [n] FOR LOGIN [l] FROM EXTERNAL PROVIDER WITH DEFAULT_SCHEMA = [s]
    no        yes        CREATE USER [n] WITH PASSWORD = '...', DEFAULT_SCHEMA = [s][, DEFAULT_LANGUAGE = ...]
    no        no         CREATE USER [n] FOR LOGIN [l] WITH DEFAULT_SCHEMA = [s]

Azure SQL Database always takes the first row for external users.
"""

from __future__ import annotations

import logging
from typing import Optional

from mssqlpermissions.application.base import BaseOperations
from mssqlpermissions.domain.errors import NotFoundError, ValidationError
from mssqlpermissions.domain.models import User
from mssqlpermissions.domain.validators import validate_principal_name, validate_quoted_values, validate_user
from mssqlpermissions.infrastructure.sql import queries
from mssqlpermissions.infrastructure.sql.cancellation import CancelToken
from mssqlpermissions.infrastructure.sql.ddl import Ddl
from mssqlpermissions.infrastructure.sql.result_mapper import map_user

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA = "dbo"


class UserOperations(BaseOperations):
    """Create, read, alter and drop database users."""

    def get(self, user: User, token: Optional[CancelToken] = None) -> User:
        """
        Read a user by name, or by principal id when no name is given.

        Raises:
            NotFoundError: no such user (roles and application roles never match)
        """
        if not user.name and not user.principal_id:
            raise ValidationError("a user must have a name or a principal id", operation="get user")

        token = self._token(token)
        self._guard(token)

        if user.name:
            sql, params = queries.USER_BY_NAME, {"name": user.name}
        else:
            sql, params = queries.USER_BY_PRINCIPAL_ID, {"principal_id": user.principal_id}

        row = self._fetch_one("retrieve user", sql, params, token)
        if row is None:
            raise NotFoundError("user not found", operation="get user")
        return map_user(row)

    def create(self, user: User, token: Optional[CancelToken] = None) -> None:
        self._validate_create(user)
        target = user.model_copy(update={"default_schema": user.default_schema or DEFAULT_SCHEMA})

        token = self._token(token)
        self._guard(token)

        if target.login_name and not self.ctx.is_azure:
            self._require_login(target.login_name, token)

        ddl = self._create_ddl(target)
        logger.info(
            "Creating user %s (external=%s, contained=%s)", target.name, target.external, target.contained
        )
        self._run_ddl("create user", ddl, token)

    def _validate_create(self, user: User) -> None:
        validate_user(user, is_azure=self.ctx.is_azure)
        # Azure SQL Database always accepts contained users
        if not user.external and user.contained and not (self.ctx.dialect.contained or self.ctx.is_azure):
            raise ValidationError(
                "cannot create a user with a password in a non-contained database",
                operation="create user",
            )

    def _require_login(self, login_name: str, token: CancelToken) -> None:
        row = self._fetch_one(
            "retrieve login", queries.SERVER_PRINCIPAL_BY_NAME, {"name": login_name}, token
        )
        if row is None:
            raise NotFoundError("issue with the provided login: login not found", operation="create user")

    def _create_ddl(self, user: User) -> Ddl:
        ddl = Ddl("CREATE USER ").name("name", user.name)
        schema = Ddl("DEFAULT_SCHEMA = ").name("default_schema", user.default_schema)

        if user.external:
            if self.ctx.is_azure or user.contained:
                ddl.text(" FROM EXTERNAL PROVIDER")
                if self.ctx.is_azure and user.object_id:
                    ddl.options([Ddl("OBJECT_ID = ").secret("object_id", user.object_id)])
            else:
                # the directory login carries the user name
                ddl.text(" FOR LOGIN ").name("login_name", user.name).text(" FROM EXTERNAL PROVIDER")
                ddl.options([schema])
            return ddl

        if user.contained:
            options = [Ddl("PASSWORD = ").secret("password", user.plain_password), schema]
            if not self.ctx.is_azure:
                if user.default_language:
                    options.append(Ddl("DEFAULT_LANGUAGE = ").name("default_language", user.default_language))
                else:
                    options.append(Ddl("DEFAULT_LANGUAGE = NONE"))
            return ddl.options(options)

        return ddl.text(" FOR LOGIN ").name("login_name", user.login_name).options([schema])

    def update(self, user: User, token: Optional[CancelToken] = None) -> None:
        """
        ALTER USER with the deltas against the current row.

        Only default schema, default language (on-premises), password and
        login binding are considered; no delta means no DDL.
        """
        validate_principal_name(user.name, "user")
        if user.external and user.plain_password:
            raise ValidationError("an external user cannot have a password", operation="update user")
        if user.default_language and self.ctx.is_azure:
            raise ValidationError(
                "a user cannot have a default language in an Azure Database", operation="update user"
            )
        validate_quoted_values(
            (user.default_schema, "default schema name"),
            (user.default_language, "default language"),
            (user.plain_password, "password"),
            (user.login_name, "login name"),
        )

        token = self._token(token)
        current = self.get(User(name=user.name), token)

        options = []
        if user.default_schema and user.default_schema != current.default_schema:
            options.append(Ddl("DEFAULT_SCHEMA = ").name("default_schema", user.default_schema))
        if not self.ctx.is_azure and user.default_language and user.default_language != current.default_language:
            options.append(Ddl("DEFAULT_LANGUAGE = ").name("default_language", user.default_language))
        if user.plain_password:
            options.append(Ddl("PASSWORD = ").secret("password", user.plain_password))
        if user.login_name and user.login_name != current.login_name:
            options.append(Ddl("LOGIN = ").name("login_name", user.login_name))

        if not options:
            logger.debug("User %s: already up to date", user.name)
            return

        ddl = Ddl("ALTER USER ").name("name", user.name).options(options)
        logger.info("Updating user %s", user.name)
        self._run_ddl("update user", ddl, token)

    def delete(self, user: User, token: Optional[CancelToken] = None) -> None:
        validate_principal_name(user.name, "user")

        token = self._token(token)
        current = self.get(User(name=user.name), token)

        logger.info("Dropping user %s", current.name)
        self._run_ddl("delete user", Ddl("DROP USER ").name("name", current.name), token)

