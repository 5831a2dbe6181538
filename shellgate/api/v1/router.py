"""
ShellGate - API v1 Router
"""

from fastapi import APIRouter
from shellgate.api.v1.endpoints import audit, terminal

api_router = APIRouter()

api_router.include_router(audit.router, prefix="/audit", tags=["Audit Logs"])
api_router.include_router(terminal.router, prefix="/ws", tags=["Terminal"])
