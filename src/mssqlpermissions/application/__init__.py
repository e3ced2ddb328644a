"""
Application layer: operation services and the client facade.
"""

from .base import OperationContext
from .client import PermissionsClient
from .database_roles import DatabaseRoleOperations
from .logins import LoginOperations
from .permissions import PermissionOperations
from .server_roles import ServerRoleOperations
from .users import UserOperations

__all__ = [
    "DatabaseRoleOperations",
    "LoginOperations",
    "OperationContext",
    "PermissionOperations",
    "PermissionsClient",
    "ServerRoleOperations",
    "UserOperations",
]
