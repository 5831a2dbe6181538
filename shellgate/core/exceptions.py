"""
ShellGate - Exceptions
Failure taxonomy for terminal bridge sessions.

Every BridgeError is terminal for its session and is never retried. The
``diagnostic`` text is what the browser terminal receives as a single text
frame before the connection is closed.
"""

from typing import Optional


class BridgeError(Exception):
    """Base class for bridge session failures"""

    diagnostic = "session error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.diagnostic
        super().__init__(self.message)


class HandshakeTimeoutError(BridgeError):
    """No auth control frame arrived within the handshake window"""

    diagnostic = "auth error"


class InvalidHandshakeError(BridgeError):
    """First frame was malformed or not an auth control frame"""

    diagnostic = "auth error"


class TargetNotFoundError(BridgeError):
    """No resource is registered for the requested host"""

    def __init__(self, host: str):
        self.host = host
        super().__init__(f"resource not found for host {host}")


class MissingCredentialError(BridgeError):
    """The resource carries no private key"""

    def __init__(self, host: str):
        self.host = host
        super().__init__(f"no private key found for host {host}")


class MalformedCredentialError(BridgeError):
    """The stored private key could not be parsed"""

    def __init__(self, host: str, reason: str):
        self.host = host
        self.reason = reason
        super().__init__(f"invalid private key for host {host}: {reason}")


class AuthorizationDeniedError(BridgeError):
    """Principal lacks the permission required to open a session"""

    diagnostic = "access denied"


class DialError(BridgeError):
    """TCP connect or SSH handshake with the target failed"""


class PTYAllocationError(BridgeError):
    """The target refused the pseudo-terminal request"""


class ShellStartError(BridgeError):
    """Neither the login shell nor the fallback shell could be started"""


class StreamIOError(BridgeError):
    """A stream copy loop failed to read or write; ends the session like a hangup"""


class AuthorizationLookupError(Exception):
    """The role/permission graph could not be evaluated.

    Callers must treat this as a deny.
    """
