"""
ShellGate - Permission Keys
Registry of grantable "resource:action" keys.

Roles and grants stay data-driven in the database, but every key the code
checks must be a member of PermissionKey so a typo fails at import time
instead of silently denying at runtime.
"""

import enum
from typing import Union


class PermissionKey(str, enum.Enum):
    """Known permission keys"""
    USERS_READ = "users:read"
    USERS_WRITE = "users:write"
    USERS_ASSIGN_ROLE = "users:assign-role"
    ROLES_READ = "roles:read"
    ROLES_WRITE = "roles:write"
    RESOURCES_READ = "resources:read"
    RESOURCES_WRITE = "resources:write"
    RESOURCES_GENERATE_TOKEN = "resources:generate-token"
    RESOURCES_CONNECT = "resources:connect"
    AUDIT_READ = "audit:read"

    @property
    def resource(self) -> str:
        return self.value.split(":", 1)[0]

    @property
    def action(self) -> str:
        return self.value.split(":", 1)[1]


PERMISSION_DESCRIPTIONS = {
    PermissionKey.USERS_READ: "View users",
    PermissionKey.USERS_WRITE: "Manage users",
    PermissionKey.USERS_ASSIGN_ROLE: "Assign roles to users",
    PermissionKey.ROLES_READ: "View roles",
    PermissionKey.ROLES_WRITE: "Manage roles",
    PermissionKey.RESOURCES_READ: "View resources",
    PermissionKey.RESOURCES_WRITE: "Manage resources",
    PermissionKey.RESOURCES_GENERATE_TOKEN: "Generate registration tokens",
    PermissionKey.RESOURCES_CONNECT: "Open interactive SSH sessions on resources",
    PermissionKey.AUDIT_READ: "View audit logs",
}


def permission_key(resource: str, action: str) -> PermissionKey:
    """
    Compose a permission key from its parts.

    Raises:
        ValueError: If the composed key is not registered
    """
    return as_permission_key(f"{resource}:{action}")


def as_permission_key(key: Union[str, PermissionKey]) -> PermissionKey:
    """
    Normalize a raw key to a registered PermissionKey.

    Keys are lowercased and stripped before lookup.

    Raises:
        ValueError: If the key is not registered
    """
    if isinstance(key, PermissionKey):
        return key
    normalized = key.strip().lower()
    try:
        return PermissionKey(normalized)
    except ValueError:
        raise ValueError(f"Unknown permission key: {normalized!r}") from None


def is_registered(key: str) -> bool:
    """Check whether a raw key belongs to the registry"""
    try:
        as_permission_key(key)
    except ValueError:
        return False
    return True
