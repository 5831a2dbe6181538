"""
ShellGate - User Model
Only the fields the terminal bridge reads; accounts are managed elsewhere.
"""

from sqlalchemy import Column, String, DateTime, Enum, ForeignKey
from datetime import datetime
import enum

from shellgate.core.database import Base


class UserStatus(str, enum.Enum):
    """User account status"""
    ACTIVE = "active"
    SUSPENDED = "suspended"


class User(Base):
    """Organization member"""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, index=True)
    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(200))
    status = Column(Enum(UserStatus), default=UserStatus.ACTIVE, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email})>"
