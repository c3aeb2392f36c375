"""Admin / Audit API router."""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from approvals.db.session import get_db
from approvals.schemas.schemas import AuditLogOut
from approvals.services.audit_service import audit_service
from approvals.services.cache_service import cache_service
from approvals.core.principal import Principal
from approvals.core.security import require_admin

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/audit")
async def get_audit_logs(
    action: Optional[str] = Query(None),
    resource_type: Optional[str] = Query(None),
    actor_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Query the administrative audit trail (admin only)."""
    result = audit_service.query_logs(db, actor_id, action, resource_type, page, page_size)
    return {
        "logs": [AuditLogOut.model_validate(log) for log in result["logs"]],
        "total": result["total"],
        "page": result["page"],
    }


@router.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """Database and permission cache health."""
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError:
        db_ok = False

    return {
        "database": "ok" if db_ok else "error",
        "cache": "ok" if cache_service.health_check() else "disabled_or_unreachable",
        "status": "healthy" if db_ok else "degraded",
    }
