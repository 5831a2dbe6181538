"""
ShellGate - Audit Logs API Endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from shellgate.core.database import get_db
from shellgate.auth.dependencies import require_permission, get_services
from shellgate.auth.permissions import PermissionKey
from shellgate.auth.principal import Principal
from shellgate.services.container import Services

router = APIRouter()


@router.get("")
async def get_audit_logs(
    q: Optional[str] = Query(None, max_length=200),
    action: Optional[str] = Query(None),
    session_id: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(require_permission(PermissionKey.AUDIT_READ)),
    services: Services = Depends(get_services),
    db: AsyncSession = Depends(get_db)
):
    """
    Query audit logs of the caller's organization, newest first

    Requires: audit:read
    """
    try:
        logs, total_count = await services.auditor.get_audit_logs(
            db=db,
            org_id=principal.org_id,
            action=action,
            session_id=session_id,
            search_query=q,
            skip=skip,
            limit=limit
        )
    except SQLAlchemyError as e:
        logger.error(f"❌ Error querying audit logs: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Audit query failed"
        )

    return {
        "logs": [log.to_dict() for log in logs],
        "total": total_count,
        "skip": skip,
        "limit": limit
    }
