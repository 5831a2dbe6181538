"""
ShellGate - Terminal Sessions
In-memory state of one bridged terminal session. Never persisted.
"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional
from loguru import logger

from shellgate.auth.principal import Principal
from shellgate.services.resource_directory import TargetDescriptor


class SessionState(str, enum.Enum):
    """Bridge lifecycle; CLOSED is terminal"""
    AWAITING_UPGRADE = "awaiting_upgrade"
    AWAITING_HANDSHAKE = "awaiting_handshake"
    RESOLVING_TARGET = "resolving_target"
    AUTHORIZING = "authorizing"
    DIALING = "dialing"
    STREAMING = "streaming"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(eq=False)
class TerminalSession:
    """One WebSocket paired with one SSH PTY, plus audit correlation fields"""

    principal: Principal
    host: str
    ssh_user: str
    port: int = 22
    client_ip: str = "unknown"
    user_agent: str = ""

    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: SessionState = SessionState.AWAITING_UPGRADE
    cols: int = 0
    rows: int = 0
    target: Optional[TargetDescriptor] = None

    started_at: datetime = field(default_factory=datetime.utcnow)
    total_input_bytes: int = 0
    total_output_bytes: int = 0

    def audit_details(self) -> Dict[str, object]:
        """Correlation metadata stamped on both connect and disconnect records"""
        return {
            "session_id": self.session_id,
            "ssh_user": self.ssh_user,
            "host": self.host,
            "port": self.port,
            "initiator": self.principal.display_name,
            "initiator_email": self.principal.email,
        }


class SessionRegistry:
    """Tracks live sessions of this process"""

    def __init__(self):
        self._sessions: Dict[str, TerminalSession] = {}

    def register(self, session: TerminalSession):
        self._sessions[session.session_id] = session
        logger.debug(f"Session registered: {session.session_id} (active: {len(self._sessions)})")

    def unregister(self, session_id: str):
        self._sessions.pop(session_id, None)
        logger.debug(f"Session unregistered: {session_id} (active: {len(self._sessions)})")

    def get(self, session_id: str) -> Optional[TerminalSession]:
        return self._sessions.get(session_id)

    def get_active_count(self) -> int:
        return len(self._sessions)
