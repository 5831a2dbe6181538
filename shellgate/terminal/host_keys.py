"""
ShellGate - Host Key Policies
How the bridge verifies the identity of target hosts.

The policy is injected into BridgeConfig so that trusting unknown host keys
is an explicit, visible operator decision.
"""

from typing import Optional, Union, Sequence
import asyncssh
from loguru import logger


class HostKeyPolicy:
    """Produces the ``known_hosts`` option passed to asyncssh.connect()"""

    name = "base"

    def known_hosts(self, host: str, port: int):
        raise NotImplementedError


class AcceptAnyHostKey(HostKeyPolicy):
    """
    Accept whatever host key the target presents.

    Leaves sessions open to man-in-the-middle attacks on the bridge-to-target
    leg. Every dial logs a warning.
    """

    name = "accept-any"

    def known_hosts(self, host: str, port: int) -> None:
        logger.warning(f"⚠️  Host key verification disabled for {host}:{port}")
        return None


class PinnedHostKeys(HostKeyPolicy):
    """Only accept host keys listed in a known_hosts database"""

    name = "pinned"

    def __init__(self, known_hosts: asyncssh.SSHKnownHosts, source: Optional[str] = None):
        self._known_hosts = known_hosts
        self.source = source

    @classmethod
    def from_file(cls, path: Union[str, Sequence[str]]) -> "PinnedHostKeys":
        """Load pinned keys from OpenSSH known_hosts file(s)"""
        known_hosts = asyncssh.read_known_hosts(path)
        logger.info(f"Loaded pinned host keys from {path}")
        return cls(known_hosts, source=str(path))

    @classmethod
    def from_string(cls, data: str) -> "PinnedHostKeys":
        """Load pinned keys from known_hosts formatted text"""
        return cls(asyncssh.import_known_hosts(data), source="inline")

    def known_hosts(self, host: str, port: int) -> asyncssh.SSHKnownHosts:
        return self._known_hosts
