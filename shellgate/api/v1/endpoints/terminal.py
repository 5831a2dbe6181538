"""
ShellGate - Terminal WebSocket Endpoint
Interactive SSH terminal over a raw byte WebSocket
"""

from typing import Optional
from fastapi import APIRouter, WebSocket, Query, Request, status
from loguru import logger

from shellgate.core.config import settings
from shellgate.services.container import Services
from shellgate.terminal.config import BridgeConfig
from shellgate.terminal.session import TerminalSession
from shellgate.terminal.ssh_bridge import SSHBridge

router = APIRouter()


def get_client_ip(websocket: WebSocket) -> str:
    """Extract client IP from WebSocket."""
    # Check for forwarded headers (behind proxy)
    forwarded = websocket.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = websocket.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    if websocket.client:
        return websocket.client.host

    return "unknown"


@router.websocket("/ssh")
async def ssh_websocket(
    websocket: WebSocket,
    host: Optional[str] = Query(None),
    port: int = Query(settings.SSH_DEFAULT_PORT, ge=1, le=65535),
    user: Optional[str] = Query(None),
):
    """
    WebSocket endpoint for interactive SSH terminal.

    Protocol:
    1. Client connects with a JWT (Authorization header, "token" cookie or
       ?token=) and ?host=&port=&user=
    2. Origin, identity and permission are checked before the upgrade;
       a refused caller is closed without ever being accepted
    3. First frame: {"op": "auth", "cols": N, "rows": N} within 30 seconds
    4. Afterwards every frame is raw bytes: client frames go to the shell's
       stdin, shell output comes back as binary frames
    5. Setup failures arrive as one text frame followed by close
    """
    services: Services = websocket.app.state.services
    config: BridgeConfig = websocket.app.state.bridge_config

    origin = websocket.headers.get("origin")
    if not config.origin_policy.is_allowed(origin, websocket.headers.get("host")):
        logger.warning(f"🚫 Terminal WebSocket from disallowed origin {origin}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    principal = await services.identity.from_connection(websocket)
    if principal is None:
        logger.warning(f"🚫 Unauthenticated terminal WebSocket from {get_client_ip(websocket)}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    if not await services.gate.is_allowed(principal, config.required_permission):
        logger.warning(
            f"🚫 {principal.display_name} lacks {config.required_permission.value}, refusing upgrade"
        )
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    session = TerminalSession(
        principal=principal,
        host=host or settings.SSH_DEFAULT_HOST,
        port=port,
        ssh_user=user or settings.SSH_DEFAULT_USER,
        client_ip=get_client_ip(websocket),
        user_agent=websocket.headers.get("user-agent", ""),
    )

    await websocket.accept()

    logger.info(
        f"Terminal session started: "
        f"session={session.session_id}, "
        f"user={principal.email or principal.user_id}, "
        f"target={session.ssh_user}@{session.host}"
    )

    bridge = SSHBridge(
        websocket=websocket,
        session=session,
        config=config,
        gate=services.gate,
        directory=services.directory,
        resolver=services.resolver,
        auditor=services.auditor,
        dialer=services.dialer,
        registry=services.registry,
    )
    await bridge.run()

    logger.info(
        f"Terminal session ended: "
        f"session={session.session_id}, "
        f"{session.total_input_bytes}b in, "
        f"{session.total_output_bytes}b out"
    )


@router.get("/ssh/active-count")
async def get_active_sessions_count(request: Request):
    """Get count of currently active terminal sessions."""
    services: Services = request.app.state.services
    return {
        "active_sessions": services.registry.get_active_count()
    }
