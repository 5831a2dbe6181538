"""
ShellGate - Database Models
"""

from shellgate.models.organization import Organization
from shellgate.models.user import User, UserStatus
from shellgate.models.role import Role, Permission, UserRoleAssignment, role_permissions
from shellgate.models.resource import Resource
from shellgate.models.audit_log import AuditLog, AuditAction

__all__ = [
    "Organization",
    "User",
    "UserStatus",
    "Role",
    "Permission",
    "UserRoleAssignment",
    "role_permissions",
    "Resource",
    "AuditLog",
    "AuditAction",
]
