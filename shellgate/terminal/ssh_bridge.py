"""
ShellGate - SSH Bridge
Bidirectional raw byte bridge between a WebSocket and an SSH PTY

Lifecycle:
    AWAITING_HANDSHAKE -> RESOLVING_TARGET -> AUTHORIZING -> DIALING
    -> STREAMING -> CLOSING -> CLOSED

Any setup failure sends one text frame with a diagnostic and closes.
"""

import asyncio
import json
from typing import Optional, Tuple

import asyncssh
from asyncssh.constants import OPEN_REQUEST_PTY_FAILED
from fastapi import WebSocket
from loguru import logger
from starlette import status
from starlette.websockets import WebSocketState

from shellgate.core.exceptions import (
    BridgeError,
    InvalidHandshakeError,
    HandshakeTimeoutError,
    TargetNotFoundError,
    AuthorizationDeniedError,
    PTYAllocationError,
    ShellStartError,
    StreamIOError,
    AuthorizationLookupError,
)
from shellgate.models.audit_log import AuditAction
from shellgate.services.audit_service import AuditEvent, AuditService
from shellgate.services.authorization_service import AuthorizationGate
from shellgate.services.credential_resolver import CredentialResolver, SSHAuthMethod
from shellgate.services.resource_directory import ResourceDirectory, TargetDescriptor
from shellgate.terminal.config import BridgeConfig
from shellgate.terminal.dialer import AsyncSSHDialer
from shellgate.terminal.session import SessionState, TerminalSession, SessionRegistry


# RFC 4254 section 8 opcodes
PTY_ECHO = 53
PTY_OP_ISPEED = 128
PTY_OP_OSPEED = 129

# Geometry travels as uint32 in the pty-req; anything larger is not a real terminal
MAX_TERMINAL_DIMENSION = 65535

TERMINAL_MODES = {
    PTY_ECHO: 1,
    PTY_OP_ISPEED: 14400,
    PTY_OP_OSPEED: 14400,
}


def parse_auth_message(message: dict, default_cols: int = 120, default_rows: int = 32) -> Tuple[int, int]:
    """
    Validate the first client frame: {"op": "auth", "cols": int, "rows": int}

    Args:
        message: Raw ASGI websocket.receive message
        default_cols: Columns used when cols is absent or not positive
        default_rows: Rows used when rows is absent or not positive

    Returns:
        Tuple of (cols, rows)

    Raises:
        InvalidHandshakeError: On disconnect, non-JSON payload, wrong op or
            geometry above MAX_TERMINAL_DIMENSION
    """
    if message.get("type") == "websocket.disconnect":
        raise InvalidHandshakeError()

    raw = message.get("text")
    if raw is None:
        data = message.get("bytes")
        if data is None:
            raise InvalidHandshakeError()
        try:
            raw = data.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidHandshakeError() from None

    try:
        payload = json.loads(raw)
    except ValueError:
        raise InvalidHandshakeError() from None

    if not isinstance(payload, dict) or payload.get("op") != "auth":
        raise InvalidHandshakeError()

    def dimension(name: str, default: int) -> int:
        value = payload.get(name)
        if value is None:
            return default
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidHandshakeError()
        if value > MAX_TERMINAL_DIMENSION:
            raise InvalidHandshakeError()
        return value if value > 0 else default

    return dimension("cols", default_cols), dimension("rows", default_rows)


class SSHBridge:
    """
    Bridges one accepted WebSocket with one SSH PTY session.

    The bridge owns its SSH connection and process exclusively. Target
    resolution, credential parsing and authorization happen once, before the
    dial; nothing is re-evaluated while streaming.
    """

    def __init__(
        self,
        websocket: WebSocket,
        session: TerminalSession,
        config: BridgeConfig,
        gate: AuthorizationGate,
        directory: ResourceDirectory,
        resolver: CredentialResolver,
        auditor: AuditService,
        dialer: Optional[AsyncSSHDialer] = None,
        registry: Optional[SessionRegistry] = None,
    ):
        self.websocket = websocket
        self.session = session
        self.config = config
        self.gate = gate
        self.directory = directory
        self.resolver = resolver
        self.auditor = auditor
        self.dialer = dialer or AsyncSSHDialer()
        self.registry = registry

        self.ssh_conn: Optional[asyncssh.SSHClientConnection] = None
        self.ssh_process: Optional[asyncssh.SSHClientProcess] = None

        self._stop = asyncio.Event()
        self._tasks: list = []
        self._connect_recorded = False
        self._close_code = status.WS_1000_NORMAL_CLOSURE

    @property
    def state(self) -> SessionState:
        return self.session.state

    def _transition(self, state: SessionState):
        logger.debug(f"Session {self.session.session_id}: {self.session.state.value} -> {state.value}")
        self.session.state = state

    async def run(self):
        """Drive the session from handshake to teardown. Never raises BridgeError."""
        if self.registry:
            self.registry.register(self.session)

        try:
            await self._await_handshake()
            target = await self._resolve_target()
            auth_method = self.resolver.resolve(target)
            await self._authorize()
            await self._dial(target, auth_method)
            await self._start_shell()
            await self._record(AuditAction.SESSION_CONNECT)
            await self._stream()

        except (HandshakeTimeoutError, InvalidHandshakeError, AuthorizationDeniedError) as e:
            logger.warning(f"Terminal session {self.session.session_id} rejected: {e.message}")
            self._close_code = status.WS_1008_POLICY_VIOLATION
            await self._send_error(e.message)
        except BridgeError as e:
            logger.warning(f"Terminal session {self.session.session_id} failed: {e.message}")
            self._close_code = status.WS_1011_INTERNAL_ERROR
            await self._send_error(e.message)
        except Exception as e:
            logger.exception(f"Unexpected bridge error in session {self.session.session_id}: {e}")
            self._close_code = status.WS_1011_INTERNAL_ERROR
            await self._send_error("internal error")
        finally:
            await self.stop()
            if self.registry:
                self.registry.unregister(self.session.session_id)

    async def _await_handshake(self):
        self._transition(SessionState.AWAITING_HANDSHAKE)
        try:
            message = await asyncio.wait_for(
                self.websocket.receive(),
                timeout=self.config.handshake_timeout
            )
        except asyncio.TimeoutError:
            raise HandshakeTimeoutError() from None

        cols, rows = parse_auth_message(
            message,
            default_cols=self.config.default_cols,
            default_rows=self.config.default_rows,
        )
        self.session.cols = cols
        self.session.rows = rows
        logger.debug(f"Session {self.session.session_id} handshake ok ({cols}x{rows})")

    async def _resolve_target(self) -> TargetDescriptor:
        self._transition(SessionState.RESOLVING_TARGET)
        target = await self.directory.lookup_by_host(
            self.session.host,
            org_id=self.session.principal.org_id
        )
        if target is None:
            raise TargetNotFoundError(self.session.host)

        self.session.target = target
        return target

    async def _authorize(self):
        self._transition(SessionState.AUTHORIZING)
        principal = self.session.principal
        try:
            allowed = await self.gate.can(principal, principal.org_id, self.config.required_permission)
        except AuthorizationLookupError:
            allowed = False

        if not allowed:
            logger.warning(
                f"🚫 {principal.display_name} denied {self.config.required_permission.value} "
                f"on {self.session.host}"
            )
            raise AuthorizationDeniedError()

    async def _dial(self, target: TargetDescriptor, auth_method: SSHAuthMethod):
        self._transition(SessionState.DIALING)
        logger.info(f"SSH connecting to {target.host}:{self.session.port} as {self.session.ssh_user}")
        self.ssh_conn = await self.dialer.dial(
            target.host,
            self.session.port,
            self.session.ssh_user,
            auth_method,
            self.config.host_key_policy,
            self.config.dial_timeout,
        )

    async def _start_shell(self):
        """Request the PTY and start the login shell, falling back to the plain shell."""
        options = {
            "term_type": self.config.term_type,
            "term_size": (self.session.cols, self.session.rows),
            "term_modes": TERMINAL_MODES,
            "encoding": None,
        }

        try:
            self.ssh_process = await self.ssh_conn.create_process(self.config.login_shell, **options)
        except asyncssh.ChannelOpenError as e:
            if e.code == OPEN_REQUEST_PTY_FAILED:
                raise PTYAllocationError(f"pty error: {e.reason}") from e
            logger.warning(
                f"Login shell unavailable on {self.session.host} ({e.reason}), "
                f"falling back to {self.config.fallback_shell}"
            )
            self.ssh_process = await self._start_fallback_shell(options)
        except (asyncssh.Error, OSError) as e:
            raise ShellStartError(f"ssh session error: {e}") from e

        logger.info(
            f"SSH session established to {self.session.host}:{self.session.port} "
            f"({self.session.cols}x{self.session.rows})"
        )

    async def _start_fallback_shell(self, options: dict) -> asyncssh.SSHClientProcess:
        try:
            return await self.ssh_conn.create_process(self.config.fallback_shell, **options)
        except asyncssh.ChannelOpenError as e:
            if e.code == OPEN_REQUEST_PTY_FAILED:
                raise PTYAllocationError(f"pty error: {e.reason}") from e
            raise ShellStartError(f"ssh session error: {e.reason}") from e
        except (asyncssh.Error, OSError) as e:
            raise ShellStartError(f"ssh session error: {e}") from e

    async def _stream(self):
        """Copy bytes both ways until either side stops."""
        self._transition(SessionState.STREAMING)

        stdout_task = asyncio.create_task(self._ssh_to_ws(self.ssh_process.stdout))
        stderr_task = asyncio.create_task(self._ssh_to_ws(self.ssh_process.stderr))
        ws_to_ssh_task = asyncio.create_task(self._ws_to_ssh())
        self._tasks = [stdout_task, stderr_task, ws_to_ssh_task]

        # stderr reaching EOF alone does not end the session
        done, _ = await asyncio.wait(
            [stdout_task, ws_to_ssh_task],
            return_when=asyncio.FIRST_COMPLETED
        )
        self._stop.set()

        for task in done:
            error = task.exception()
            if isinstance(error, StreamIOError):
                # Peer hangup, not an incident
                logger.debug(f"Session {self.session.session_id} stream ended: {error.message}")

    async def _ws_to_ssh(self):
        """Handle WebSocket to SSH direction."""
        try:
            while not self._stop.is_set():
                message = await self.websocket.receive()
                if message["type"] == "websocket.disconnect":
                    logger.debug(f"Client closed session {self.session.session_id}")
                    break

                data = message.get("bytes")
                if data is None:
                    text = message.get("text")
                    if text is None:
                        continue
                    data = text.encode("utf-8")

                self.ssh_process.stdin.write(data)
                await self.ssh_process.stdin.drain()
                self.session.total_input_bytes += len(data)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise StreamIOError(f"websocket to ssh: {e}") from e

    async def _ssh_to_ws(self, stream):
        """Handle SSH to WebSocket direction for one of stdout/stderr."""
        try:
            while not self._stop.is_set():
                data = await stream.read(self.config.read_buffer_size)
                if not data:
                    break
                if isinstance(data, str):
                    data = data.encode("utf-8")

                await self.websocket.send_bytes(data)
                self.session.total_output_bytes += len(data)

        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise StreamIOError(f"ssh to websocket: {e}") from e

    async def stop(self):
        """Stop both directions, close SSH, record the disconnect and close the WebSocket."""
        if self.session.state in (SessionState.CLOSING, SessionState.CLOSED):
            return

        self._transition(SessionState.CLOSING)
        self._stop.set()

        for task in self._tasks:
            if not task.done():
                task.cancel()

        # Closing the channel unblocks any pending read
        if self.ssh_process:
            self.ssh_process.close()
        if self.ssh_conn:
            self.ssh_conn.close()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        if self.ssh_conn:
            await self.ssh_conn.wait_closed()
        self.ssh_process = None
        self.ssh_conn = None

        if self._connect_recorded:
            await self._record(AuditAction.SESSION_DISCONNECT)

        await self._close_websocket()
        self._transition(SessionState.CLOSED)

        logger.info(
            f"SSH bridge stopped: session={self.session.session_id} "
            f"in={self.session.total_input_bytes}B out={self.session.total_output_bytes}B"
        )

    async def _record(self, action: AuditAction):
        principal = self.session.principal
        target = self.session.target
        event = AuditEvent(
            org_id=principal.org_id,
            user_id=principal.user_id,
            action=action,
            target=self.session.host,
            resource_type="SSH",
            resource_id=target.resource_id if target else None,
            session_id=self.session.session_id,
            ip_address=self.session.client_ip,
            user_agent=self.session.user_agent,
            initiator_name=principal.display_name,
            details=self.session.audit_details(),
        )

        try:
            await self.auditor.record(event)
        except Exception as e:
            logger.error(f"❌ Audit emitter raised for session {self.session.session_id}: {e}")

        if action == AuditAction.SESSION_CONNECT:
            self._connect_recorded = True

    async def _send_error(self, error_message: str):
        """Send the diagnostic as one text frame."""
        if self.websocket.client_state != WebSocketState.CONNECTED:
            return
        try:
            await self.websocket.send_text(f"{error_message}\n")
        except Exception as e:
            logger.debug(f"Could not deliver diagnostic to client: {e}")

    async def _close_websocket(self):
        if (
            self.websocket.application_state == WebSocketState.DISCONNECTED
            or self.websocket.client_state == WebSocketState.DISCONNECTED
        ):
            return
        try:
            await self.websocket.close(code=self._close_code)
        except Exception as e:
            logger.debug(f"WebSocket already closed: {e}")
