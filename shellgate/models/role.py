"""
ShellGate - RBAC Models
Role -> permission grants and org-scoped user -> role assignments
"""

from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Table,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime

from shellgate.core.database import Base


# Many-to-many: Roles <-> Permissions
role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", String(36), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", String(36), ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)


class Permission(Base):
    """Grantable capability identified by a "resource:action" key"""

    __tablename__ = "permissions"

    id = Column(String(36), primary_key=True, index=True)
    key = Column(String(200), unique=True, nullable=False, index=True)
    description = Column(String(255))
    resource = Column(String(100))
    action = Column(String(100))

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Permission(key={self.key})>"


class Role(Base):
    """Named bundle of permissions inside one organization"""

    __tablename__ = "roles"
    __table_args__ = (UniqueConstraint("org_id", "slug", name="uq_roles_org_slug"),)

    id = Column(String(36), primary_key=True, index=True)
    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), nullable=False)
    description = Column(String(500))
    is_system = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    permissions = relationship("Permission", secondary=role_permissions, lazy="selectin")

    def __repr__(self):
        return f"<Role(org_id={self.org_id}, slug={self.slug})>"


class UserRoleAssignment(Base):
    """User <-> Role within an organization (composite key, no surrogate id)"""

    __tablename__ = "user_roles"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role_id = Column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True)

    def __repr__(self):
        return f"<UserRoleAssignment(user_id={self.user_id}, role_id={self.role_id}, org_id={self.org_id})>"
