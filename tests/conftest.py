"""
ShellGate - PyTest Configuration

Test fixtures for:
- Database sessions with in-memory SQLite
- Seeded organization, roles and users (admin, devops, readonly, suspended)
- Registered SSH resources with generated keys
- Token factories
- Fake WebSocket and SSH collaborators for the terminal bridge
"""

import os
import tempfile

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "shellgate-test-secret-key-0123456789abcdef")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SEED_DEFAULTS", "false")
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "shellgate-tests.log"))

import asyncio
from typing import AsyncGenerator, Optional
from datetime import datetime
from uuid import uuid4

import asyncssh
import pytest
from pydantic import SecretStr
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.websockets import WebSocketState

import shellgate.models  # noqa: F401  registers every table on Base
from shellgate.core.database import Base
from shellgate.auth.principal import Principal
from shellgate.auth.security import create_access_token
from shellgate.models.organization import Organization
from shellgate.models.resource import Resource
from shellgate.models.role import Role, UserRoleAssignment
from shellgate.models.user import User, UserStatus
from shellgate.services.resource_directory import TargetDescriptor
from shellgate.services.seed_service import seed_defaults
from shellgate.terminal.config import BridgeConfig, OriginPolicy
from shellgate.terminal.session import TerminalSession, SessionRegistry
from shellgate.terminal.ssh_bridge import SSHBridge


# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ============================================================================
# CORE FIXTURES
# ============================================================================

@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """
    Session factory bound to a fresh in-memory database

    Each test gets a fresh database
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session"""
    async with session_factory() as session:
        yield session


# ============================================================================
# ORGANIZATION / USER FACTORIES
# ============================================================================

async def create_user(
    db: AsyncSession,
    org: Organization,
    email: str,
    name: Optional[str],
    roles=(),
    status: UserStatus = UserStatus.ACTIVE,
) -> User:
    """Insert a user and assign built-in roles by slug"""
    user = User(
        id=str(uuid4()),
        org_id=org.id,
        email=email,
        name=name,
        status=status,
        created_at=datetime.utcnow()
    )
    db.add(user)

    for slug in roles:
        result = await db.execute(select(Role).where(Role.org_id == org.id, Role.slug == slug))
        role = result.scalar_one()
        db.add(UserRoleAssignment(user_id=user.id, role_id=role.id, org_id=org.id))

    await db.commit()
    return user


def principal_for(user: User) -> Principal:
    return Principal(user_id=user.id, org_id=user.org_id, name=user.name or "Unknown", email=user.email)


@pytest.fixture
async def organization(db_session: AsyncSession) -> Organization:
    """Default organization with permissions and built-in roles seeded"""
    return await seed_defaults(db_session)


@pytest.fixture
async def other_organization(db_session: AsyncSession) -> Organization:
    """Second organization for isolation testing, no roles"""
    org = Organization(id=str(uuid4()), name="Other Corp", slug="other")
    db_session.add(org)
    await db_session.commit()
    return org


@pytest.fixture
async def admin_user(db_session: AsyncSession, organization: Organization) -> User:
    return await create_user(db_session, organization, "admin@shellgate.test", "Ada Admin", roles=["admin"])


@pytest.fixture
async def devops_user(db_session: AsyncSession, organization: Organization) -> User:
    return await create_user(db_session, organization, "devops@shellgate.test", "Dev Ops", roles=["devops"])


@pytest.fixture
async def readonly_user(db_session: AsyncSession, organization: Organization) -> User:
    return await create_user(db_session, organization, "viewer@shellgate.test", "Vera Viewer", roles=["readonly"])


@pytest.fixture
async def suspended_user(db_session: AsyncSession, organization: Organization) -> User:
    """Suspended user for negative testing"""
    return await create_user(
        db_session, organization, "gone@shellgate.test", "Gone Away",
        roles=["devops"], status=UserStatus.SUSPENDED,
    )


# ============================================================================
# KEY / RESOURCE FACTORIES
# ============================================================================

@pytest.fixture(scope="session")
def client_key() -> asyncssh.SSHKey:
    return asyncssh.generate_private_key("ssh-ed25519")


@pytest.fixture(scope="session")
def private_key_pem(client_key) -> str:
    """OpenSSH formatted private key"""
    return client_key.export_private_key().decode()


@pytest.fixture
async def ssh_resource(db_session: AsyncSession, organization: Organization, private_key_pem: str) -> Resource:
    resource = Resource(
        id=str(uuid4()),
        org_id=organization.id,
        name="web-01",
        type="ssh",
        host="10.0.0.5",
        port=22,
        private_key=private_key_pem,
        status="online",
        created_at=datetime.utcnow()
    )
    db_session.add(resource)
    await db_session.commit()
    return resource


# ============================================================================
# TOKEN FACTORIES
# ============================================================================

@pytest.fixture
def devops_token(devops_user: User) -> str:
    return create_access_token(devops_user.id, devops_user.org_id, devops_user.email)


@pytest.fixture
def readonly_token(readonly_user: User) -> str:
    return create_access_token(readonly_user.id, readonly_user.org_id, readonly_user.email)


@pytest.fixture
def invalid_token() -> str:
    """Malformed JWT token with invalid signature"""
    return "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9.INVALID.SIGNATURE"


# ============================================================================
# TERMINAL BRIDGE FAKES
# ============================================================================

class FakeWebSocket:
    """In-memory stand-in for an accepted Starlette WebSocket"""

    def __init__(self):
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent: list = []
        self.close_code: Optional[int] = None
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED

    def send_auth(self, cols=None, rows=None, op="auth"):
        import json
        payload = {"op": op}
        if cols is not None:
            payload["cols"] = cols
        if rows is not None:
            payload["rows"] = rows
        self.push_text(json.dumps(payload))

    def push_text(self, text: str):
        self.incoming.put_nowait({"type": "websocket.receive", "text": text})

    def push_bytes(self, data: bytes):
        self.incoming.put_nowait({"type": "websocket.receive", "bytes": data})

    def disconnect(self, code: int = 1000):
        self.incoming.put_nowait({"type": "websocket.disconnect", "code": code})

    async def receive(self) -> dict:
        message = await self.incoming.get()
        if message["type"] == "websocket.disconnect":
            self.client_state = WebSocketState.DISCONNECTED
        return message

    async def send_text(self, data: str):
        self.sent.append(("text", data))

    async def send_bytes(self, data: bytes):
        self.sent.append(("bytes", data))

    async def close(self, code: int = 1000, reason: Optional[str] = None):
        self.close_code = code
        self.application_state = WebSocketState.DISCONNECTED

    @property
    def closed(self) -> bool:
        return self.application_state == WebSocketState.DISCONNECTED

    @property
    def texts(self) -> list:
        return [payload for kind, payload in self.sent if kind == "text"]

    @property
    def output(self) -> bytes:
        return b"".join(payload for kind, payload in self.sent if kind == "bytes")


class FakeStream:
    """SSH output stream; b"" marks EOF"""

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()

    def feed(self, data: bytes):
        self.queue.put_nowait(data)

    async def read(self, n: int = -1) -> bytes:
        return await self.queue.get()


class FakeStdin:
    def __init__(self, echo_to: Optional[FakeStream] = None):
        self.written = bytearray()
        self.echo_to = echo_to

    def write(self, data: bytes):
        self.written += data
        if self.echo_to is not None:
            self.echo_to.feed(bytes(data))

    async def drain(self):
        pass


class FakeProcess:
    def __init__(self, echo: bool = False):
        self.stdout = FakeStream()
        self.stderr = FakeStream()
        self.stdin = FakeStdin(self.stdout if echo else None)
        self.closed = False

    def close(self):
        self.closed = True
        self.stdout.feed(b"")
        self.stderr.feed(b"")


class FakeConnection:
    """SSH client connection whose create_process may fail on demand"""

    def __init__(self, process: FakeProcess):
        self.process = process
        self.failures: list = []
        self.commands: list = []
        self.options: list = []
        self.closed = False

    async def create_process(self, command=None, **options):
        self.commands.append(command)
        self.options.append(options)
        if self.failures:
            raise self.failures.pop(0)
        return self.process

    def close(self):
        self.closed = True

    async def wait_closed(self):
        pass


class StubDialer:
    """Records dial attempts instead of opening sockets"""

    def __init__(self, connection: FakeConnection):
        self.connection = connection
        self.error: Optional[Exception] = None
        self.calls: list = []

    async def dial(self, host, port, username, auth_method, host_key_policy, timeout):
        self.calls.append({
            "host": host,
            "port": port,
            "username": username,
            "algorithm": auth_method.algorithm,
            "timeout": timeout,
        })
        auth_method.consume()
        if self.error is not None:
            raise self.error
        return self.connection


class StubGate:
    def __init__(self, allowed: bool = True):
        self.allowed = allowed
        self.error: Optional[Exception] = None
        self.calls: list = []

    async def can(self, principal, org_id, key):
        self.calls.append((principal.user_id, org_id, key))
        if self.error is not None:
            raise self.error
        return self.allowed

    async def is_allowed(self, principal, key):
        try:
            return await self.can(principal, principal.org_id, key)
        except Exception:
            return False


class StubDirectory:
    def __init__(self, target: Optional[TargetDescriptor]):
        self.target = target
        self.error: Optional[Exception] = None
        self.lookups: list = []

    async def lookup_by_host(self, host, org_id=None):
        self.lookups.append((host, org_id))
        if self.error is not None:
            raise self.error
        if self.target is not None and self.target.host == host:
            return self.target
        return None


class RecordingAuditor:
    """
    Keeps events in memory together with how many output bytes the client
    had received when each event was recorded
    """

    def __init__(self, websocket: FakeWebSocket):
        self.websocket = websocket
        self.events: list = []
        self.output_at_record: list = []
        self.fail = False

    async def record(self, event):
        if self.fail:
            raise RuntimeError("audit store unavailable")
        self.events.append(event)
        self.output_at_record.append(len(self.websocket.output))
        return event

    @property
    def actions(self) -> list:
        return [event.action_tag for event in self.events]


class StubIdentity:
    def __init__(self, principal: Optional[Principal]):
        self.principal = principal

    async def from_connection(self, connection):
        return self.principal

    async def resolve(self, token):
        return self.principal


async def wait_until(predicate, timeout: float = 2.0):
    """Poll predicate until it holds or fail the test"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def principal() -> Principal:
    return Principal(user_id="user-1", org_id="org-1", name="Dana Ops", email="dana@example.com")


@pytest.fixture
def websocket() -> FakeWebSocket:
    return FakeWebSocket()


@pytest.fixture
def ssh_process() -> FakeProcess:
    return FakeProcess()


@pytest.fixture
def ssh_connection(ssh_process) -> FakeConnection:
    return FakeConnection(ssh_process)


@pytest.fixture
def dialer(ssh_connection) -> StubDialer:
    return StubDialer(ssh_connection)


@pytest.fixture
def gate() -> StubGate:
    return StubGate(allowed=True)


@pytest.fixture
def target(private_key_pem) -> TargetDescriptor:
    return TargetDescriptor(
        resource_id="res-1",
        org_id="org-1",
        name="web-01",
        host="10.0.0.5",
        port=22,
        credential=SecretStr(private_key_pem),
    )


@pytest.fixture
def directory(target) -> StubDirectory:
    return StubDirectory(target)


@pytest.fixture
def auditor(websocket) -> RecordingAuditor:
    return RecordingAuditor(websocket)


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def bridge_config() -> BridgeConfig:
    return BridgeConfig(origin_policy=OriginPolicy(), handshake_timeout=0.2, dial_timeout=2.0)


@pytest.fixture
def make_bridge(websocket, principal, bridge_config, gate, directory, auditor, dialer, registry):
    """Factory for bridges wired to the fakes above; keyword arguments override"""
    from shellgate.services.credential_resolver import CredentialResolver

    def _make(host="10.0.0.5", port=22, user="deploy", **overrides) -> SSHBridge:
        session = TerminalSession(
            principal=principal,
            host=host,
            port=port,
            ssh_user=user,
            client_ip="203.0.113.7",
            user_agent="pytest-browser",
        )
        options = {
            "websocket": websocket,
            "session": session,
            "config": bridge_config,
            "gate": gate,
            "directory": directory,
            "resolver": CredentialResolver(),
            "auditor": auditor,
            "dialer": dialer,
            "registry": registry,
        }
        options.update(overrides)
        return SSHBridge(**options)

    return _make


@pytest.fixture(name="wait_until")
def wait_until_fixture():
    return wait_until


@pytest.fixture
def identity(principal) -> StubIdentity:
    return StubIdentity(principal)
