"""
ShellGate - Credential Resolver
Turns the key material stored on a resource into an asyncssh auth method.

Keys are parsed on every call and never cached, so a rotated key takes
effect on the next session. The key itself never reaches a log line.
"""

from dataclasses import dataclass, field
from typing import Any, Dict
import asyncssh
from loguru import logger

from shellgate.core.exceptions import MissingCredentialError, MalformedCredentialError
from shellgate.services.resource_directory import TargetDescriptor


@dataclass(eq=False)
class SSHAuthMethod:
    """Public-key authentication for exactly one SSH client connection"""

    key: asyncssh.SSHKey = field(repr=False)
    algorithm: str = ""
    _consumed: bool = field(default=False, init=False, repr=False)

    @property
    def consumed(self) -> bool:
        return self._consumed

    def consume(self) -> Dict[str, Any]:
        """
        Hand out asyncssh.connect() options for a single dial

        Raises:
            RuntimeError: If the method was already used
        """
        if self._consumed:
            raise RuntimeError("SSH auth method already used for a connection")
        self._consumed = True
        return {
            "client_keys": [self.key],
            "agent_path": None,
            "password": None,
        }


class CredentialResolver:
    """Stateless parser for stored private keys"""

    def resolve(self, target: TargetDescriptor) -> SSHAuthMethod:
        """
        Resolve an auth method for target

        Raises:
            MissingCredentialError: If the target has no key material
            MalformedCredentialError: If the key is not a parseable private key
        """
        if not target.has_credential:
            logger.warning(f"Private key missing for host {target.host}")
            raise MissingCredentialError(target.host)

        try:
            key = asyncssh.import_private_key(target.credential.get_secret_value())
        except (asyncssh.KeyImportError, ValueError) as e:
            logger.warning(f"Private key for host {target.host} could not be parsed: {e}")
            raise MalformedCredentialError(target.host, str(e)) from None

        algorithm = key.get_algorithm()
        logger.debug(f"Private key found for host {target.host} ({algorithm})")
        return SSHAuthMethod(key=key, algorithm=algorithm)
