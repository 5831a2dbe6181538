"""
ShellGate - Auth Dependencies
FastAPI dependencies for authentication and permission checks
"""

from typing import Union
from fastapi import Depends, HTTPException, Request, status
from loguru import logger

from shellgate.auth.permissions import PermissionKey, as_permission_key
from shellgate.auth.principal import Principal
from shellgate.core.exceptions import AuthorizationLookupError
from shellgate.services.container import Services


def get_services(request: Request) -> Services:
    """Services built during application startup"""
    return request.app.state.services


async def get_current_principal(
    request: Request,
    services: Services = Depends(get_services)
) -> Principal:
    """
    Get the authenticated caller from the bearer token

    Raises:
        HTTPException: If the token is missing, invalid or the user is suspended
    """
    principal = await services.identity.from_connection(request)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


def require_permission(key: Union[str, PermissionKey]):
    """
    Create a dependency that lets the request through only when the caller
    holds key in their own organization.

    Unknown keys fail here, at import time, not on the first request.
    """
    permission = as_permission_key(key)

    async def permission_checker(
        principal: Principal = Depends(get_current_principal),
        services: Services = Depends(get_services),
    ) -> Principal:
        try:
            allowed = await services.gate.can(principal, principal.org_id, permission)
        except AuthorizationLookupError:
            allowed = False

        if not allowed:
            logger.warning(f"🚫 {principal.display_name} missing permission {permission.value}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"error": "forbidden", "missing": permission.value},
            )
        return principal

    return permission_checker
