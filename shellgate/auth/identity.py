"""
ShellGate - Identity Adapter
Turns a bearer JWT into a Principal
"""

from typing import Optional
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.requests import HTTPConnection
from loguru import logger

from shellgate.auth.principal import Principal
from shellgate.auth.security import decode_token
from shellgate.models.user import User, UserStatus


def extract_token(connection: HTTPConnection) -> Optional[str]:
    """
    Find the bearer token on a request or WebSocket handshake.

    Looked up in order: Authorization header, "token" cookie, "token" query
    parameter (browsers cannot set headers on WebSocket upgrades).
    """
    header = connection.headers.get("authorization")
    if header:
        token = header[7:] if header.lower().startswith("bearer ") else header
        token = token.strip()
        if token:
            return token

    cookie = connection.cookies.get("token")
    if cookie:
        return cookie.strip()

    query = connection.query_params.get("token")
    if query:
        return query.strip()

    return None


class IdentityResolver:
    """Validates tokens and loads display identity for the Principal"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def resolve(self, token: Optional[str]) -> Optional[Principal]:
        """
        Resolve token into a Principal

        Returns:
            Principal, or None for missing/invalid tokens and suspended users
        """
        if not token:
            return None

        payload = decode_token(token)
        if payload is None:
            logger.warning("JWT validation failed")
            return None

        user_id = str(payload["uid"])
        org_id = str(payload["oid"])
        email = payload.get("email") or ""
        name = "Unknown"

        try:
            async with self.session_factory() as db:
                result = await db.execute(select(User).where(User.id == user_id))
                user = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"User lookup failed for {user_id}: {e}")
            return None

        if user is not None:
            if user.status == UserStatus.SUSPENDED:
                logger.warning(f"Suspended user {user.email} presented a valid token")
                return None
            name = user.name or name
            email = user.email or email

        return Principal(user_id=user_id, org_id=org_id, name=name, email=email)

    async def from_connection(self, connection: HTTPConnection) -> Optional[Principal]:
        return await self.resolve(extract_token(connection))
