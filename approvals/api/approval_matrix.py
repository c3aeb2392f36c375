"""Approval matrix API router."""

from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from approvals.db.session import get_db
from approvals.schemas.schemas import (
    ApprovalRuleCreate, ApprovalRuleUpdate, ApprovalRuleOut, ResolvedRouteOut,
    ApprovalLevelOut, MessageResponse,
)
from approvals.services.matrix_service import matrix_service
from approvals.core.principal import Principal
from approvals.core.security import get_principal, require_matrix_admin

router = APIRouter(prefix="/approval-matrix", tags=["approval-matrix"])


@router.get("/", response_model=List[ApprovalRuleOut])
async def list_rules(
    transaction_type: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """List rules with their approval levels, newest first."""
    return matrix_service.list_rules(db, transaction_type)


@router.get("/resolve", response_model=ResolvedRouteOut)
async def resolve_route(
    transaction_type: str = Query(...),
    amount: Decimal = Query(..., ge=0),
    department: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Preview which rule and levels a transaction would be routed through."""
    route = matrix_service.resolve(db, transaction_type, department, amount)
    if route is None:
        return ResolvedRouteOut(configured=False)
    return ResolvedRouteOut(
        configured=True,
        rule_id=route.rule_id,
        levels=[ApprovalLevelOut.model_validate(lvl) for lvl in route.levels],
    )


@router.post("/", response_model=ApprovalRuleOut, status_code=201)
async def create_rule(
    body: ApprovalRuleCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_matrix_admin),
):
    """Create a rule and its levels."""
    return matrix_service.create_rule(
        db,
        transaction_type=body.transaction_type,
        levels=[lvl.model_dump() for lvl in body.levels],
        department=body.department,
        min_amount=body.min_amount,
        max_amount=body.max_amount,
        is_active=body.is_active,
        actor=principal,
    )


@router.get("/{rule_id}", response_model=ApprovalRuleOut)
async def get_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Get one rule with its levels."""
    return matrix_service.get_rule(db, rule_id)


@router.put("/{rule_id}", response_model=ApprovalRuleOut)
async def update_rule(
    rule_id: int,
    body: ApprovalRuleUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_matrix_admin),
):
    """Update a rule; a ``levels`` list replaces all existing levels."""
    fields = body.model_dump(exclude_unset=True, exclude={"levels"})
    levels = [lvl.model_dump() for lvl in body.levels] if body.levels is not None else None
    return matrix_service.update_rule(db, rule_id, levels=levels, actor=principal, **fields)


@router.delete("/{rule_id}", response_model=MessageResponse)
async def delete_rule(
    rule_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_matrix_admin),
):
    """Delete a rule and its levels."""
    matrix_service.delete_rule(db, rule_id, actor=principal)
    return MessageResponse(message="Approval rule deleted")
