"""
Principal and permission domain models.

These are the entities the operations read and write: server logins,
server/database roles, database users and permission rows. Input-only
secrets are SecretStr so they never show up in reprs or logs.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr


def _secret(value: Optional[SecretStr]) -> str:
    """Plain value of an optional secret, empty when unset."""
    if value is None:
        return ""
    return value.get_secret_value()  # pylint: disable=no-member


class PermissionVerb(str, Enum):
    """DCL verbs supported for permission statements."""

    GRANT = "GRANT"
    DENY = "DENY"
    REVOKE = "REVOKE"


class Login(BaseModel):
    """
    Server principal authenticating at instance level.

    Lives in master. principal_id is assigned by the server; 0 means
    "not specified" on input.
    """

    model_config = ConfigDict(validate_assignment=True)

    name: str = ""
    principal_id: int = 0
    type: str = ""
    is_disabled: bool = False
    default_database: str = ""
    default_language: str = ""
    external: bool = False
    password: Optional[SecretStr] = Field(None, description="Input only")

    @property
    def plain_password(self) -> str:
        return _secret(self.password)


class Role(BaseModel):
    """Server role or database role."""

    model_config = ConfigDict(validate_assignment=True)

    name: str = ""
    principal_id: int = 0
    type: str = ""
    type_description: str = ""
    owning_principal_id: Optional[int] = None
    is_fixed_role: bool = False


class User(BaseModel):
    """
    Database user.

    Flavors (see UserOperations):
    - contained + external: directory user created FROM EXTERNAL PROVIDER
    - external only: directory user bound to a login
    - contained only: SQL user with its own password
    - neither: SQL user bound to a login
    """

    model_config = ConfigDict(validate_assignment=True)

    name: str = ""
    password: Optional[SecretStr] = Field(None, description="Input only")
    external: bool = False
    contained: bool = False
    login_name: str = ""
    default_schema: str = ""
    default_language: str = ""
    object_id: str = Field("", description="Directory object id, external users only")
    sid: str = ""
    principal_id: int = 0

    @property
    def plain_password(self) -> str:
        return _secret(self.password)


class Permission(BaseModel):
    """
    A row of sys.database_permissions / sys.server_permissions, or an input
    directive naming a permission and the state to apply.
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    name: str = Field("", description="Permission verb, e.g. SELECT or VIEW DEFINITION")
    state: str = Field("", description="G or D")
    state_desc: str = Field("", description="GRANT or DENY")
    permission_class: str = Field("", alias="class")
    class_desc: str = ""
    major_id: int = 0
    minor_id: int = 0
    grantee_principal_id: int = 0
    grantor_principal_id: int = 0
    type: str = ""
