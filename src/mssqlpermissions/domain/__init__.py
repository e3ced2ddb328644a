"""
Domain layer: principal models, connection settings, errors and validators.
"""

from .connection import (
    Authentication,
    ConnectionSettings,
    DefaultAuth,
    ManagedIdentityAuth,
    ServicePrincipalAuth,
    SqlAuth,
)
from .errors import (
    ConnectivityError,
    DriverError,
    MssqlPermissionsError,
    NotFoundError,
    OperationCancelledError,
    TopologyError,
    ValidationError,
)
from .models import Login, Permission, PermissionVerb, Role, User

__all__ = [
    "Authentication",
    "ConnectionSettings",
    "ConnectivityError",
    "DefaultAuth",
    "DriverError",
    "Login",
    "ManagedIdentityAuth",
    "MssqlPermissionsError",
    "NotFoundError",
    "OperationCancelledError",
    "Permission",
    "PermissionVerb",
    "Role",
    "ServicePrincipalAuth",
    "SqlAuth",
    "TopologyError",
    "User",
    "ValidationError",
]
