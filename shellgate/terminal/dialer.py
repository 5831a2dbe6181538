"""
ShellGate - SSH Dialer
Opens one dedicated asyncssh client connection per terminal session.
There is no pooling: every session pays the full dial and handshake.
"""

import asyncio
import asyncssh
from loguru import logger

from shellgate.core.exceptions import DialError
from shellgate.services.credential_resolver import SSHAuthMethod
from shellgate.terminal.host_keys import HostKeyPolicy


class AsyncSSHDialer:
    """Dials targets with asyncssh.connect()"""

    async def dial(
        self,
        host: str,
        port: int,
        username: str,
        auth_method: SSHAuthMethod,
        host_key_policy: HostKeyPolicy,
        timeout: float,
    ) -> asyncssh.SSHClientConnection:
        """
        Connect and authenticate to host:port

        Raises:
            DialError: On TCP, SSH handshake, host key or auth failure, or timeout
        """
        options = auth_method.consume()
        try:
            conn = await asyncssh.connect(
                host,
                port=port,
                username=username,
                known_hosts=host_key_policy.known_hosts(host, port),
                connect_timeout=timeout,
                config=None,
                **options,
            )
        except asyncssh.PermissionDenied as e:
            logger.error(f"SSH permission denied for {username}@{host}:{port}: {e}")
            raise DialError(f"ssh dial error: authentication failed for {username}@{host}") from e
        except (asyncssh.Error, OSError, asyncio.TimeoutError) as e:
            reason = str(e) or e.__class__.__name__
            logger.error(f"SSH connection error to {host}:{port}: {reason}")
            raise DialError(f"ssh dial error: {reason}") from e

        logger.info(f"SSH connection established to {host}:{port} as {username}")
        return conn
