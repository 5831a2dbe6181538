"""
ShellGate - Service Container
Collaborators shared by the HTTP endpoints and every terminal session
"""

from dataclasses import dataclass
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shellgate.auth.identity import IdentityResolver
from shellgate.services.audit_service import AuditService
from shellgate.services.authorization_service import AuthorizationGate
from shellgate.services.credential_resolver import CredentialResolver
from shellgate.services.resource_directory import ResourceDirectory
from shellgate.terminal.dialer import AsyncSSHDialer
from shellgate.terminal.session import SessionRegistry


@dataclass
class Services:
    identity: IdentityResolver
    gate: AuthorizationGate
    directory: ResourceDirectory
    resolver: CredentialResolver
    auditor: AuditService
    dialer: AsyncSSHDialer
    registry: SessionRegistry


def build_services(
    session_factory: async_sessionmaker[AsyncSession],
    dialer: Optional[AsyncSSHDialer] = None,
    default_port: int = 22,
) -> Services:
    """Wire every collaborator against one session factory"""
    return Services(
        identity=IdentityResolver(session_factory),
        gate=AuthorizationGate(session_factory),
        directory=ResourceDirectory(session_factory, default_port=default_port),
        resolver=CredentialResolver(),
        auditor=AuditService(session_factory),
        dialer=dialer or AsyncSSHDialer(),
        registry=SessionRegistry(),
    )
