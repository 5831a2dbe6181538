"""
Integration tests: the bridge against a real asyncssh server

The server runs in the test's event loop and echoes stdin back on stdout,
so everything written by the client must come back unchanged.
"""

import asyncio
import dataclasses

import asyncssh
import pytest
from pydantic import SecretStr

from shellgate.services.resource_directory import TargetDescriptor
from shellgate.terminal.dialer import AsyncSSHDialer
from shellgate.terminal.host_keys import PinnedHostKeys
from shellgate.terminal.session import SessionState


class EchoServer:
    def __init__(self, acceptor, host_key):
        self.acceptor = acceptor
        self.host_key = host_key
        self.sessions = []

    @property
    def port(self) -> int:
        return self.acceptor.get_port()

    def known_hosts_line(self, key=None) -> str:
        key = key or self.host_key
        return f"[127.0.0.1]:{self.port} {key.export_public_key().decode()}"


@pytest.fixture
async def echo_server(client_key):
    host_key = asyncssh.generate_private_key("ssh-ed25519")
    sessions = []

    async def handle(process: asyncssh.SSHServerProcess):
        sessions.append({
            "command": process.command,
            "term_type": process.get_terminal_type(),
            "term_size": process.get_terminal_size()[:2],
        })
        try:
            while True:
                data = await process.stdin.read(8192)
                if not data:
                    break
                process.stdout.write(data)
        except (asyncssh.BreakReceived, asyncssh.TerminalSizeChanged):
            pass
        finally:
            process.exit(0)

    acceptor = await asyncssh.listen(
        "127.0.0.1",
        0,
        server_host_keys=[host_key],
        authorized_client_keys=asyncssh.import_authorized_keys(client_key.export_public_key().decode()),
        process_factory=handle,
        encoding=None,
        line_editor=False,
    )
    server = EchoServer(acceptor, host_key)
    server.sessions = sessions

    yield server

    acceptor.close()
    await acceptor.wait_closed()


@pytest.fixture
def echo_target(echo_server, private_key_pem) -> TargetDescriptor:
    return TargetDescriptor(
        resource_id="res-echo",
        org_id="org-1",
        name="echo",
        host="127.0.0.1",
        port=echo_server.port,
        credential=SecretStr(private_key_pem),
    )


@pytest.mark.asyncio
class TestPassthrough:
    """Test raw byte passthrough over a real SSH channel"""

    async def test_every_byte_value_round_trips(
        self, echo_server, echo_target, make_bridge, websocket, directory, auditor, wait_until
    ):
        """
        Given: A remote shell that echoes its input verbatim
        When: All 256 byte values are sent in several frames
        Then: The same bytes come back, in order and undamaged
        """
        directory.target = echo_target
        bridge = make_bridge(host="127.0.0.1", port=echo_server.port, user="deploy", dialer=AsyncSSHDialer())
        payload = bytes(range(256)) * 8

        websocket.send_auth(cols=0, rows=0)
        for offset in range(0, len(payload), 97):
            websocket.push_bytes(payload[offset:offset + 97])

        task = asyncio.create_task(bridge.run())
        await wait_until(lambda: len(websocket.output) >= len(payload), timeout=10)

        assert websocket.output == payload

        websocket.disconnect()
        await asyncio.wait_for(task, timeout=10)

        assert echo_server.sessions == [{
            "command": "/bin/bash -l",
            "term_type": "xterm-256color",
            "term_size": (120, 32),
        }]
        assert auditor.actions == ["session.connect", "session.disconnect"]
        assert auditor.events[0].details["port"] == echo_server.port
        assert bridge.state == SessionState.CLOSED

    async def test_text_frames_reach_shell_as_utf8(
        self, echo_server, echo_target, make_bridge, websocket, directory, wait_until
    ):
        directory.target = echo_target
        bridge = make_bridge(host="127.0.0.1", port=echo_server.port, dialer=AsyncSSHDialer())

        websocket.send_auth()
        websocket.push_text("héllo ✓")

        task = asyncio.create_task(bridge.run())
        await wait_until(lambda: websocket.output == "héllo ✓".encode("utf-8"), timeout=10)

        websocket.disconnect()
        await asyncio.wait_for(task, timeout=10)

    async def test_pinned_host_key_accepted(
        self, echo_server, echo_target, make_bridge, websocket, directory, bridge_config, auditor, wait_until
    ):
        directory.target = echo_target
        config = dataclasses.replace(
            bridge_config,
            host_key_policy=PinnedHostKeys.from_string(echo_server.known_hosts_line()),
        )
        bridge = make_bridge(host="127.0.0.1", port=echo_server.port, dialer=AsyncSSHDialer(), config=config)

        websocket.send_auth()
        websocket.push_bytes(b"ping")

        task = asyncio.create_task(bridge.run())
        await wait_until(lambda: websocket.output == b"ping", timeout=10)

        websocket.disconnect()
        await asyncio.wait_for(task, timeout=10)
        assert auditor.actions == ["session.connect", "session.disconnect"]

    async def test_unknown_host_key_rejected(
        self, echo_server, echo_target, make_bridge, websocket, directory, bridge_config, auditor
    ):
        """
        Given: Host keys are pinned and the target presents a different key
        When: The bridge dials
        Then: The dial fails and no session is audited
        """
        directory.target = echo_target
        impostor = asyncssh.generate_private_key("ssh-ed25519")
        config = dataclasses.replace(
            bridge_config,
            host_key_policy=PinnedHostKeys.from_string(echo_server.known_hosts_line(impostor)),
        )
        bridge = make_bridge(host="127.0.0.1", port=echo_server.port, dialer=AsyncSSHDialer(), config=config)

        websocket.send_auth()
        await asyncio.wait_for(bridge.run(), timeout=10)

        assert len(websocket.texts) == 1
        assert websocket.texts[0].startswith("ssh dial error: ")
        assert auditor.events == []
        assert echo_server.sessions == []

    async def test_unauthorized_client_key_rejected(
        self, echo_server, echo_target, make_bridge, websocket, directory, auditor
    ):
        stranger = asyncssh.generate_private_key("ssh-ed25519").export_private_key().decode()
        directory.target = dataclasses.replace(echo_target, credential=SecretStr(stranger))
        bridge = make_bridge(host="127.0.0.1", port=echo_server.port, user="deploy", dialer=AsyncSSHDialer())

        websocket.send_auth()
        await asyncio.wait_for(bridge.run(), timeout=10)

        assert websocket.texts == ["ssh dial error: authentication failed for deploy@127.0.0.1\n"]
        assert auditor.events == []
