"""
Connection settings domain models.

Authentication is a tagged union on ``kind``; the connector picks the URL
shape by matching on the variant instead of probing nullable fields.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

if TYPE_CHECKING:
    from mssqlpermissions.infrastructure.sql.connector import Connector

DEFAULT_PORT = 1433
DEFAULT_TIMEOUT = 30


class SqlAuth(BaseModel):
    """Local SQL login (user name and password in the URL userinfo)."""

    kind: Literal["sql"] = "sql"
    username: str = Field(..., min_length=1)
    password: SecretStr


class ServicePrincipalAuth(BaseModel):
    """Directory application authenticating with a client secret."""

    kind: Literal["service_principal"] = "service_principal"
    client_id: str = Field(..., min_length=1)
    client_secret: SecretStr
    tenant_id: str = ""
    # Reserved, certificate authentication is not wired to the driver yet.
    client_certificate_path: str = ""
    client_certificate_password: Optional[SecretStr] = None

    @property
    def user_id(self) -> str:
        if self.tenant_id:
            return f"{self.client_id}@{self.tenant_id}"
        return self.client_id


class ManagedIdentityAuth(BaseModel):
    """System or user-assigned managed identity of the running workload."""

    kind: Literal["managed_identity"] = "managed_identity"
    user_identity: bool = False
    user_id: str = ""
    resource_id: str = ""


class DefaultAuth(BaseModel):
    """Let the driver pick the directory credential chain."""

    kind: Literal["default"] = "default"


Authentication = Annotated[
    Union[SqlAuth, ServicePrincipalAuth, ManagedIdentityAuth, DefaultAuth],
    Field(discriminator="kind"),
]


class ConnectionSettings(BaseModel):
    """
    Domain model for the target server and database.

    Loaded from connection.json or environment variables and turned into a
    Connector with to_connector().
    """

    model_config = ConfigDict(extra="forbid")

    host: str = Field(..., description="Server host name or address")
    port: int = Field(DEFAULT_PORT, ge=1, le=65535)
    database: str = Field(..., description="Target database")
    timeout: int = Field(DEFAULT_TIMEOUT, gt=0, description="Per-operation timeout in seconds")
    driver: Optional[str] = Field(None, description="ODBC driver name, detected when unset")
    encrypt: bool = True
    trust_server_certificate: bool = False
    auth: Authentication = Field(default_factory=DefaultAuth)

    @field_validator("host", "database")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Host and database must carry a value."""
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    def to_connector(self) -> "Connector":
        from mssqlpermissions.infrastructure.sql.connector import Connector

        return Connector(
            host=self.host,
            port=self.port,
            database=self.database,
            auth=self.auth,
            timeout=self.timeout,
            driver=self.driver,
            encrypt=self.encrypt,
            trust_server_certificate=self.trust_server_certificate,
        )
