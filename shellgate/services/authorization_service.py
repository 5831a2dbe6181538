"""
ShellGate - Authorization Gate
Answers "may principal P perform action A in organization O?" by walking
user_roles -> roles -> role_permissions -> permissions.
"""

from typing import Union
from sqlalchemy import select, func, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from loguru import logger

from shellgate.auth.permissions import PermissionKey, as_permission_key
from shellgate.auth.principal import Principal
from shellgate.core.exceptions import AuthorizationLookupError
from shellgate.models.role import Role, Permission, UserRoleAssignment, role_permissions


class AuthorizationGate:
    """
    Role/permission evaluator.

    Read-only; every check opens its own database session so concurrent
    bridge sessions never share state.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def can(
        self,
        principal: Principal,
        org_id: str,
        key: Union[str, PermissionKey]
    ) -> bool:
        """
        Check whether the principal holds the permission inside org_id

        Args:
            principal: Authenticated caller
            org_id: Organization the action happens in
            key: Registered permission key (raw strings are normalized)

        Returns:
            True when a role assigned in org_id grants the key

        Raises:
            ValueError: If key is not a registered permission key
            AuthorizationLookupError: If the lookup itself failed
        """
        permission = as_permission_key(key)

        stmt = (
            select(func.count())
            .select_from(UserRoleAssignment)
            .join(
                Role,
                and_(Role.id == UserRoleAssignment.role_id, Role.org_id == org_id),
            )
            .join(role_permissions, role_permissions.c.role_id == Role.id)
            .join(Permission, Permission.id == role_permissions.c.permission_id)
            .where(
                UserRoleAssignment.user_id == principal.user_id,
                UserRoleAssignment.org_id == org_id,
                Permission.key == permission.value,
            )
        )

        try:
            async with self.session_factory() as db:
                result = await db.execute(stmt)
                count = result.scalar_one()
        except (SQLAlchemyError, OSError) as e:
            logger.error(
                f"Permission lookup failed for user={principal.user_id} "
                f"org={org_id} key={permission.value}: {e}"
            )
            raise AuthorizationLookupError(str(e)) from e

        allowed = count > 0
        logger.debug(
            f"Permission check user={principal.user_id} org={org_id} "
            f"key={permission.value} -> {allowed}"
        )
        return allowed

    async def is_allowed(self, principal: Principal, key: Union[str, PermissionKey]) -> bool:
        """Check within the principal's own organization, denying on lookup failure"""
        try:
            return await self.can(principal, principal.org_id, key)
        except AuthorizationLookupError:
            return False
