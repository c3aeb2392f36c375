"""Auth API router."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from approvals.db.session import get_db
from approvals.schemas.schemas import PrincipalOut
from approvals.services.permission_service import permission_service
from approvals.core.exceptions import ResourceNotFoundError
from approvals.core.principal import Principal
from approvals.core.security import get_principal

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=PrincipalOut)
async def get_me(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Return the resolved principal and its permission set."""
    try:
        permissions = permission_service.get_permissions(db, principal.role)
    except ResourceNotFoundError:
        permissions = {}
    return PrincipalOut(id=principal.id, role=principal.role, permissions=permissions)
