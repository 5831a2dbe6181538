"""
ShellGate - Resource Model
Registered SSH target hosts. Rows are written by agent registration and
heartbeats; the terminal bridge only reads them.
"""

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, JSON, UniqueConstraint
from datetime import datetime

from shellgate.core.database import Base


class Resource(Base):
    """Remote host reachable over SSH"""

    __tablename__ = "resources"
    __table_args__ = (UniqueConstraint("org_id", "host", name="uq_resources_org_host"),)

    id = Column(String(36), primary_key=True, index=True)
    org_id = Column(String(36), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    type = Column(String(100), nullable=False, default="ssh")

    host = Column(String(100), nullable=False, index=True)
    port = Column(Integer, nullable=False, default=22)
    external_ref = Column(String(255))
    extra = Column(JSON, default=dict)

    # Key material, never serialized
    public_key = Column(Text)
    private_key = Column(Text)

    status = Column(String(50))
    last_heartbeat = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Resource(id={self.id}, host={self.host}:{self.port})>"
