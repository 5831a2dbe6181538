"""
ShellGate - Audit Log Model
Append-only security audit records
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Text, JSON
from datetime import datetime
import enum

from shellgate.core.database import Base


class AuditAction(str, enum.Enum):
    """Audit action tags"""
    SESSION_CONNECT = "session.connect"
    SESSION_DISCONNECT = "session.disconnect"


class AuditLog(Base):
    """Audit log model"""

    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True)

    # Actor
    org_id = Column(String(36), ForeignKey("organizations.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    initiator_name = Column(String(255), nullable=True)

    # Action
    action = Column(String(200), nullable=False, index=True)

    # Target
    resource_type = Column(String(100), nullable=True)  # "SSH"
    resource_id = Column(String(36), nullable=True, index=True)
    target = Column(String(255), nullable=True, index=True)

    # Correlates connect/disconnect pairs
    session_id = Column(String(36), nullable=True, index=True)

    # Request information
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)

    # {ssh_user, host, port, session_id, initiator, initiator_email}
    details = Column(JSON, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog {self.action} by {self.initiator_name} at {self.created_at}>"

    def to_dict(self) -> dict:
        """Convert audit log to dictionary"""
        return {
            "id": self.id,
            "org_id": self.org_id,
            "user_id": self.user_id,
            "initiator_name": self.initiator_name,
            "action": self.action,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "target": self.target,
            "session_id": self.session_id,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "details": self.details,
            "created_at": self.created_at.isoformat(),
        }
