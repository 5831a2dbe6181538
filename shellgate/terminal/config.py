"""
ShellGate - Bridge Configuration
Immutable per-process settings handed to every SSHBridge
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional
from urllib.parse import urlsplit
from loguru import logger

from shellgate.auth.permissions import PermissionKey
from shellgate.core.config import Settings
from shellgate.terminal.host_keys import HostKeyPolicy, AcceptAnyHostKey, PinnedHostKeys


@dataclass(frozen=True)
class OriginPolicy:
    """
    Decides which browser origins may open a terminal WebSocket.

    Requests without an Origin header come from non-browser clients and are
    allowed. Same-origin requests are allowed unless disabled.
    """

    allowed_origins: FrozenSet[str] = frozenset()
    allow_any: bool = False
    allow_same_origin: bool = True

    @classmethod
    def from_list(cls, origins: Iterable[str], allow_any: bool = False) -> "OriginPolicy":
        return cls(
            allowed_origins=frozenset(o.rstrip("/").lower() for o in origins if o),
            allow_any=allow_any,
        )

    def is_allowed(self, origin: Optional[str], host: Optional[str] = None) -> bool:
        if self.allow_any or not origin:
            return True

        normalized = origin.rstrip("/").lower()
        if normalized in self.allowed_origins:
            return True

        if self.allow_same_origin and host:
            return urlsplit(normalized).netloc == host.lower()

        return False


@dataclass(frozen=True)
class BridgeConfig:
    """Everything an SSHBridge needs besides its collaborators"""

    origin_policy: OriginPolicy
    host_key_policy: HostKeyPolicy = field(default_factory=AcceptAnyHostKey)

    handshake_timeout: float = 30.0
    dial_timeout: float = 10.0

    default_cols: int = 120
    default_rows: int = 32
    term_type: str = "xterm-256color"
    login_shell: str = "/bin/bash -l"
    fallback_shell: str = "/bin/sh"

    read_buffer_size: int = 8192
    required_permission: PermissionKey = PermissionKey.RESOURCES_CONNECT

    @classmethod
    def from_settings(cls, settings: Settings) -> "BridgeConfig":
        if settings.SSH_KNOWN_HOSTS_FILE:
            host_key_policy: HostKeyPolicy = PinnedHostKeys.from_file(settings.SSH_KNOWN_HOSTS_FILE)
        else:
            logger.warning(
                "⚠️  SSH_KNOWN_HOSTS_FILE is not set: the bridge will accept any "
                "target host key (no protection against man-in-the-middle)"
            )
            host_key_policy = AcceptAnyHostKey()

        if settings.WS_ALLOW_ANY_ORIGIN:
            logger.warning("⚠️  WS_ALLOW_ANY_ORIGIN is set: any website may open terminal sessions")

        return cls(
            origin_policy=OriginPolicy.from_list(
                settings.WS_ALLOWED_ORIGINS,
                allow_any=settings.WS_ALLOW_ANY_ORIGIN,
            ),
            host_key_policy=host_key_policy,
            handshake_timeout=settings.SSH_HANDSHAKE_TIMEOUT,
            dial_timeout=settings.SSH_DIAL_TIMEOUT,
            default_cols=settings.SSH_DEFAULT_COLS,
            default_rows=settings.SSH_DEFAULT_ROWS,
            term_type=settings.SSH_TERM_TYPE,
            login_shell=settings.SSH_LOGIN_SHELL,
            fallback_shell=settings.SSH_FALLBACK_SHELL,
            read_buffer_size=settings.WS_READ_BUFFER_SIZE,
        )
