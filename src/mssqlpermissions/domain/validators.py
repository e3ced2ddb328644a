"""
Identifier and state validators.

Pure predicates guarding the only place where user input is written into
dynamic SQL without QUOTENAME: permission tokens and schema names. Each
check raises ValidationError; nothing here touches the database.
"""

from __future__ import annotations

import re
from typing import Optional, Tuple

from mssqlpermissions.domain.errors import ValidationError
from mssqlpermissions.domain.models import Permission, PermissionVerb, Role, User

MAX_SQL_IDENTIFIER_LENGTH = 128

SQL_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Uppercase words separated by single spaces. Needs at least two characters,
# so single-letter permission names are rejected.
PERMISSION_NAME_PATTERN = re.compile(r"^[A-Z][A-Z ]*[A-Z]$")

VALID_STATES = ("", "G", "D")
VALID_STATE_DESCRIPTIONS = ("", "GRANT", "DENY")


def validate_sql_identifier(name: Optional[str]) -> None:
    """Validate an identifier written unquoted into SQL text."""
    if not name:
        raise ValidationError("SQL identifier cannot be empty")
    if len(name) > MAX_SQL_IDENTIFIER_LENGTH:
        raise ValidationError(
            f"SQL identifier too long (max {MAX_SQL_IDENTIFIER_LENGTH} characters)"
        )
    if not SQL_IDENTIFIER_PATTERN.match(name):
        raise ValidationError("invalid SQL identifier format")


def validate_permission_name_text(name: Optional[str]) -> None:
    """Validate a permission token such as SELECT or VIEW DEFINITION."""
    if not name:
        raise ValidationError("permission name cannot be empty")
    if len(name) > MAX_SQL_IDENTIFIER_LENGTH:
        raise ValidationError(
            f"permission name too long (max {MAX_SQL_IDENTIFIER_LENGTH} characters)"
        )
    if not PERMISSION_NAME_PATTERN.match(name):
        raise ValidationError(
            "invalid permission name format, must be uppercase letters, may contain spaces"
        )


def validate_schema_name(schema: Optional[str]) -> None:
    if not schema:
        raise ValidationError("schema name cannot be empty")
    validate_sql_identifier(schema)


def validate_role(role: Optional[Role]) -> None:
    """Role must be present, named, and its name a valid identifier."""
    if role is None or not role.name:
        raise ValidationError("role name cannot be empty")
    validate_sql_identifier(role.name)


def validate_permission(permission: Optional[Permission]) -> None:
    if permission is None or not permission.name:
        raise ValidationError("permission name cannot be empty")
    validate_permission_name_text(permission.name)


def normalize_permission_state(permission: Permission) -> PermissionVerb:
    """
    Resolve the verb to apply for a permission directive.

    state wins over state_desc when both are set and disagree; an empty
    permission state means GRANT.

    Raises:
        ValidationError: state or state_desc outside its enumerated set
    """
    if permission.state not in VALID_STATES or permission.state_desc not in VALID_STATE_DESCRIPTIONS:
        raise ValidationError("invalid state value, must be 'G', 'D', 'GRANT', or 'DENY'")

    if permission.state == "D":
        return PermissionVerb.DENY
    if permission.state == "G":
        return PermissionVerb.GRANT
    if permission.state_desc == "DENY":
        return PermissionVerb.DENY
    return PermissionVerb.GRANT


def validate_principal_name(name: Optional[str], kind: str) -> None:
    """
    Validate a principal name that is always emitted through QUOTENAME.

    QUOTENAME returns NULL beyond 128 characters, so the length limit still
    applies even though the character set is unrestricted.
    """
    if not name:
        raise ValidationError(f"a {kind} must have a name")
    if len(name) > MAX_SQL_IDENTIFIER_LENGTH:
        raise ValidationError(
            f"{kind} name too long (max {MAX_SQL_IDENTIFIER_LENGTH} characters)"
        )


def validate_user(user: User, *, is_azure: bool) -> None:
    """
    Check the semantic rules binding a user's flavor to its fields.

    Raises:
        ValidationError: first rule the user breaks
    """
    validate_principal_name(user.name, "user")

    if user.contained:
        if user.login_name:
            raise ValidationError("a contained user cannot have a login name")
        if not user.plain_password and not user.external:
            raise ValidationError("a contained user must have a password if it's not external")
    else:
        if not user.login_name and not user.external:
            raise ValidationError("a not contained and not external user must have a login")
        if user.external and (user.login_name or user.plain_password):
            raise ValidationError("a not contained external user cannot have a password or a login")
        if user.default_language:
            raise ValidationError("a not contained user cannot have a default language")

    if user.external and user.plain_password:
        raise ValidationError("an external user cannot have a password")

    if user.object_id and not user.external:
        raise ValidationError("only external user can specify an ObjectID")

    if user.default_language and is_azure:
        raise ValidationError("a user cannot have a default language in an Azure Database")

    validate_quoted_values(
        (user.default_schema, "default schema name"),
        (user.login_name, "login name"),
        (user.default_language, "default language"),
        (user.plain_password, "password"),
        (user.object_id, "object id"),
    )


def validate_quoted_value(value: Optional[str], kind: str) -> None:
    """
    Optional value later bound into QUOTENAME.

    QUOTENAME yields NULL past 128 characters, which turns the whole dynamic
    statement into NULL and EXEC into a no-op.
    """
    if value and len(value) > MAX_SQL_IDENTIFIER_LENGTH:
        raise ValidationError(f"{kind} too long (max {MAX_SQL_IDENTIFIER_LENGTH} characters)")


def validate_quoted_values(*pairs: Tuple[Optional[str], str]) -> None:
    for value, kind in pairs:
        validate_quoted_value(value, kind)
