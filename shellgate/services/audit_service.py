"""
ShellGate - Audit Service
Append-only audit trail for terminal sessions

Features:
- Fire-and-forget recording: failures are logged, never raised
- One database session per record, safe for concurrent writers
- Org-scoped querying with search and pagination
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from loguru import logger

from shellgate.models.audit_log import AuditLog, AuditAction


@dataclass(frozen=True)
class AuditEvent:
    """Immutable description of one security-relevant event"""

    org_id: str
    user_id: Optional[str]
    action: Union[AuditAction, str]
    target: str
    resource_type: str = "SSH"
    resource_id: Optional[str] = None
    session_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    initiator_name: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def action_tag(self) -> str:
        return self.action.value if isinstance(self.action, AuditAction) else str(self.action)


class AuditService:
    """
    Audit emitter and query service.

    Recording never raises: audit is observability, not a precondition for
    a session to proceed.
    """

    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record(self, event: AuditEvent) -> Optional[AuditLog]:
        """
        Append an audit record

        Args:
            event: Event to persist

        Returns:
            Created AuditLog or None on failure
        """
        try:
            async with self.session_factory() as db:
                audit_log = AuditLog(
                    id=str(uuid.uuid4()),
                    org_id=event.org_id,
                    user_id=event.user_id,
                    initiator_name=event.initiator_name,
                    action=event.action_tag,
                    resource_type=event.resource_type,
                    resource_id=event.resource_id,
                    target=event.target,
                    session_id=event.session_id,
                    ip_address=event.ip_address,
                    user_agent=event.user_agent,
                    details=dict(event.details),
                    created_at=datetime.utcnow(),
                )
                db.add(audit_log)
                await db.commit()

            logger.info(
                f"📝 Audit log created: {event.action_tag} by {event.initiator_name or 'system'} "
                f"(target: {event.target}, session: {event.session_id})"
            )
            return audit_log

        except Exception as e:
            logger.error(f"❌ Failed to create audit log {event.action_tag} for session {event.session_id}: {e}")
            return None

    async def get_audit_logs(
        self,
        db: AsyncSession,
        org_id: str,
        action: Optional[str] = None,
        session_id: Optional[str] = None,
        search_query: Optional[str] = None,
        skip: int = 0,
        limit: int = DEFAULT_PAGE_SIZE
    ) -> tuple[List[AuditLog], int]:
        """
        Query audit logs of one organization, newest first

        Args:
            db: Database session
            org_id: Organization whose records are returned
            action: Filter by action tag
            session_id: Filter by session correlation id
            search_query: Substring match on initiator, action, resource type or IP
            skip: Pagination offset
            limit: Max results to return (capped at MAX_PAGE_SIZE)

        Returns:
            Tuple of (audit_logs, total_count)
        """
        limit = max(1, min(limit, self.MAX_PAGE_SIZE))
        filters = [AuditLog.org_id == org_id]

        if action:
            filters.append(AuditLog.action == action)

        if session_id:
            filters.append(AuditLog.session_id == session_id)

        if search_query:
            like = f"%{search_query.strip()}%"
            filters.append(
                or_(
                    AuditLog.initiator_name.ilike(like),
                    AuditLog.action.ilike(like),
                    AuditLog.resource_type.ilike(like),
                    AuditLog.ip_address.ilike(like),
                )
            )

        query = select(AuditLog).where(and_(*filters))

        count_query = select(func.count()).select_from(query.subquery())
        total_count = (await db.execute(count_query)).scalar()

        query = query.order_by(AuditLog.created_at.desc()).offset(skip).limit(limit)
        result = await db.execute(query)
        audit_logs = list(result.scalars().all())

        logger.debug(
            f"📋 Retrieved {len(audit_logs)} audit logs "
            f"(total: {total_count}, skip: {skip}, limit: {limit})"
        )
        return audit_logs, total_count
