"""Roles & permissions API router."""

from typing import Dict, List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from approvals.db.session import get_db
from approvals.schemas.schemas import (
    RoleCreate, RoleUpdate, RoleOut, PermissionsReplace, MessageResponse,
)
from approvals.services.permission_service import permission_service
from approvals.services.role_service import role_service
from approvals.core.principal import Principal
from approvals.core.security import get_principal, require_admin, RequireRole

router = APIRouter(tags=["roles"])


@router.get("/roles", response_model=List[RoleOut])
async def list_roles(
    include_inactive: bool = Query(True),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """List roles."""
    return role_service.list_roles(db, include_inactive)


@router.post("/roles", response_model=RoleOut, status_code=201)
async def create_role(
    body: RoleCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Create a role with optional initial grants (admin only)."""
    return role_service.create_role(
        db, body.code, body.name, body.description, body.is_active, body.modules,
        actor=principal,
    )


@router.put("/roles/{code}", response_model=RoleOut)
async def update_role(
    code: str,
    body: RoleUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Rename, describe, activate or deactivate a role (admin only)."""
    return role_service.update_role(
        db, code, actor=principal, **body.model_dump(exclude_unset=True)
    )


@router.delete("/roles/{code}", response_model=MessageResponse)
async def delete_role(
    code: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Permanently delete a role no user references (admin only)."""
    role_service.delete_role(db, code, actor=principal)
    return MessageResponse(message="Role permanently deleted")


@router.get("/roles/{code}/permissions", response_model=Dict[str, List[str]])
async def get_role_permissions(
    code: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Permissions of an active role as ``{module_id: [actions]}``."""
    return permission_service.get_permissions(db, code)


@router.put("/roles/{code}/permissions", response_model=Dict[str, List[str]])
async def replace_role_permissions(
    code: str,
    body: PermissionsReplace,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    """Atomically replace a role's permissions (admin only).

    Accepts a module map or a list of ``{module_id, action}`` pairs.
    """
    return permission_service.replace_permissions(db, code, body.permissions, actor=principal)


@router.get("/permissions", response_model=Dict[str, List[str]])
async def granted_permissions(
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequireRole("admin", "manager")),
):
    """Every module/action pair granted to some role."""
    return permission_service.list_granted_catalog(db)


@router.get("/permissions/catalog", response_model=Dict[str, List[str]])
async def permission_catalog(principal: Principal = Depends(get_principal)):
    """The configured catalog of grantable module/action pairs."""
    return permission_service.configured_catalog()
