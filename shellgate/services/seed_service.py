"""
ShellGate - Seed Service
Idempotent first-run setup of the default organization, the permission
registry and the built-in roles.
"""

import uuid
from typing import Dict, List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from shellgate.auth.permissions import PermissionKey, PERMISSION_DESCRIPTIONS, is_registered
from shellgate.models.organization import Organization
from shellgate.models.role import Role, Permission


DEFAULT_ORG_SLUG = "default"

BUILTIN_ROLES: Dict[str, Dict] = {
    "admin": {
        "name": "Administrator",
        "permissions": list(PermissionKey),
    },
    "devops": {
        "name": "DevOps",
        "permissions": [
            PermissionKey.RESOURCES_READ,
            PermissionKey.RESOURCES_WRITE,
            PermissionKey.RESOURCES_GENERATE_TOKEN,
            PermissionKey.RESOURCES_CONNECT,
            PermissionKey.AUDIT_READ,
            PermissionKey.ROLES_READ,
            PermissionKey.USERS_READ,
        ],
    },
    "readonly": {
        "name": "ReadOnly",
        "permissions": [
            PermissionKey.USERS_READ,
            PermissionKey.ROLES_READ,
            PermissionKey.RESOURCES_READ,
            PermissionKey.AUDIT_READ,
        ],
    },
}


async def ensure_permissions(db: AsyncSession) -> Dict[str, Permission]:
    """Create missing registry permissions; report unregistered ones"""
    result = await db.execute(select(Permission))
    existing = {p.key: p for p in result.scalars().all()}

    for key in existing:
        if not is_registered(key):
            logger.warning(f"⚠️  Permission key {key!r} in database is not registered, checks against it will fail")

    for key in PermissionKey:
        if key.value not in existing:
            permission = Permission(
                id=str(uuid.uuid4()),
                key=key.value,
                description=PERMISSION_DESCRIPTIONS.get(key, ""),
                resource=key.resource,
                action=key.action,
            )
            db.add(permission)
            existing[key.value] = permission
            logger.info(f"Created permission {key.value}")

    await db.flush()
    return existing


async def ensure_default_organization(db: AsyncSession) -> Organization:
    """Get or create the default organization"""
    result = await db.execute(select(Organization).where(Organization.slug == DEFAULT_ORG_SLUG))
    org = result.scalar_one_or_none()
    if org is None:
        org = Organization(id=str(uuid.uuid4()), name="Default Organization", slug=DEFAULT_ORG_SLUG)
        db.add(org)
        await db.flush()
        logger.info("Created default organization")
    return org


async def ensure_builtin_roles(
    db: AsyncSession,
    org: Organization,
    permissions: Dict[str, Permission]
) -> List[Role]:
    """Get or create built-in roles and add any missing grants"""
    roles = []
    for slug, definition in BUILTIN_ROLES.items():
        result = await db.execute(select(Role).where(Role.org_id == org.id, Role.slug == slug))
        role = result.scalar_one_or_none()
        if role is None:
            role = Role(
                id=str(uuid.uuid4()),
                org_id=org.id,
                name=definition["name"],
                slug=slug,
                is_system=True,
                permissions=[],
            )
            db.add(role)
            logger.info(f"Created role {slug}")

        granted = {p.key for p in role.permissions}
        for key in definition["permissions"]:
            if key.value not in granted:
                role.permissions.append(permissions[key.value])
        roles.append(role)

    await db.flush()
    return roles


async def seed_defaults(db: AsyncSession) -> Organization:
    """Run every seeding step in one transaction"""
    permissions = await ensure_permissions(db)
    org = await ensure_default_organization(db)
    await ensure_builtin_roles(db, org, permissions)
    await db.commit()
    return org
