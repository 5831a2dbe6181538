"""
ShellGate - Organization Model
"""

from sqlalchemy import Column, String, DateTime
from datetime import datetime

from shellgate.core.database import Base


class Organization(Base):
    """Tenant boundary for users, roles, resources and audit records"""

    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Organization(id={self.id}, slug={self.slug})>"
