"""
Row to model mapping.

Catalog rows come back as dictionaries keyed by column name; these helpers
turn them into domain models, normalising NULLs and BIT/INT flags.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping

from mssqlpermissions.domain.models import Login, Permission, Role, User

logger = logging.getLogger(__name__)

EXTERNAL_LOGIN_TYPES = frozenset({"E", "X"})


def _text(value: Any) -> str:
    if value is None:
        return ""
    # char(n) catalog columns come back space padded
    return str(value).strip()


def _flag(value: Any) -> bool:
    return bool(value) if value is not None else False


def _int(value: Any, default: int = 0) -> int:
    return int(value) if value is not None else default


def map_login(row: Mapping[str, Any], *, external: bool = False) -> Login:
    login_type = _text(row.get("type"))
    return Login(
        name=_text(row.get("name")),
        principal_id=_int(row.get("principal_id")),
        type=login_type,
        is_disabled=_flag(row.get("is_disabled")),
        default_database=_text(row.get("default_database_name")),
        default_language=_text(row.get("default_language_name")),
        external=external or login_type in EXTERNAL_LOGIN_TYPES,
    )


def map_role(row: Mapping[str, Any]) -> Role:
    owner = row.get("owning_principal_id")
    return Role(
        name=_text(row.get("name")),
        principal_id=_int(row.get("principal_id")),
        type=_text(row.get("type")),
        type_description=_text(row.get("type_desc")),
        owning_principal_id=int(owner) if owner is not None else None,
        is_fixed_role=_flag(row.get("is_fixed_role")),
    )


def map_user(row: Mapping[str, Any]) -> User:
    """
    Map a database_principals row.

    authentication_type_desc drives the flavor flags: EXTERNAL marks a
    directory user, DATABASE a contained one. The backing login name only
    exists for login-bound users, so it is dropped for contained ones.
    """
    authentication = _text(row.get("authentication_type_desc")).upper()
    contained = authentication == "DATABASE"
    return User(
        name=_text(row.get("name")),
        principal_id=_int(row.get("principal_id")),
        external=authentication == "EXTERNAL",
        contained=contained,
        default_schema=_text(row.get("default_schema_name")),
        default_language=_text(row.get("default_language_name")),
        sid=_text(row.get("sid")),
        login_name="" if contained else _text(row.get("login_name")),
    )


def map_permission(row: Mapping[str, Any]) -> Permission:
    return Permission(
        name=_text(row.get("permission_name")),
        state=_text(row.get("state")),
        state_desc=_text(row.get("state_desc")),
        permission_class=_text(row.get("class")),
        class_desc=_text(row.get("class_desc")),
        major_id=_int(row.get("major_id")),
        minor_id=_int(row.get("minor_id")),
        grantee_principal_id=_int(row.get("grantee_principal_id")),
        grantor_principal_id=_int(row.get("grantor_principal_id")),
        type=_text(row.get("type")),
    )


def map_many(rows: Iterable[Mapping[str, Any]], mapper) -> List[Any]:
    results = [mapper(row) for row in rows]
    logger.debug("Mapped %d rows with %s", len(results), mapper.__name__)
    return results
