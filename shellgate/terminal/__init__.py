"""
ShellGate - Terminal
WebSocket to SSH session bridge
"""

from shellgate.terminal.config import BridgeConfig, OriginPolicy
from shellgate.terminal.host_keys import HostKeyPolicy, AcceptAnyHostKey, PinnedHostKeys
from shellgate.terminal.session import SessionState, TerminalSession, SessionRegistry
from shellgate.terminal.ssh_bridge import SSHBridge

__all__ = [
    "BridgeConfig",
    "OriginPolicy",
    "HostKeyPolicy",
    "AcceptAnyHostKey",
    "PinnedHostKeys",
    "SessionState",
    "TerminalSession",
    "SessionRegistry",
    "SSHBridge",
]
