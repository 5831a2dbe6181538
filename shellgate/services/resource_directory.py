"""
ShellGate - Resource Directory
Read-only lookup of registered SSH targets by host
"""

from dataclasses import dataclass, field
from typing import Optional
from pydantic import SecretStr
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from loguru import logger

from shellgate.models.resource import Resource


@dataclass(frozen=True)
class TargetDescriptor:
    """Connection parameters and stored key material for one host"""

    resource_id: str
    org_id: str
    name: str
    host: str
    port: int = 22
    credential: Optional[SecretStr] = field(default=None, repr=False)

    @property
    def has_credential(self) -> bool:
        return bool(self.credential and self.credential.get_secret_value().strip())


class ResourceDirectory:
    """Resolves host identifiers to TargetDescriptors"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], default_port: int = 22):
        self.session_factory = session_factory
        self.default_port = default_port

    async def lookup_by_host(self, host: str, org_id: Optional[str] = None) -> Optional[TargetDescriptor]:
        """
        Find the resource registered for host

        Args:
            host: Host address as requested by the client
            org_id: Restrict the lookup to one organization

        Returns:
            TargetDescriptor, or None when no resource matches
        """
        stmt = select(Resource).where(Resource.host == host)
        if org_id is not None:
            stmt = stmt.where(Resource.org_id == org_id)

        async with self.session_factory() as db:
            result = await db.execute(stmt)
            resources = result.scalars().all()

        if not resources:
            logger.info(f"No resource registered for host {host}")
            return None

        if len(resources) > 1:
            # (org_id, host) is unique; only an unscoped lookup can land here
            logger.warning(f"Host {host} is registered in {len(resources)} organizations, refusing to pick one")
            return None

        resource = resources[0]
        return TargetDescriptor(
            resource_id=resource.id,
            org_id=resource.org_id,
            name=resource.name,
            host=resource.host,
            port=resource.port or self.default_port,
            credential=SecretStr(resource.private_key) if resource.private_key else None,
        )
