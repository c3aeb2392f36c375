"""Documents & approvals API router."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from approvals.db.session import get_db
from approvals.schemas.schemas import (
    DocumentCreate, DocumentOut, ApproveRequest, RejectRequest, TransitionOut,
    ApprovalHistoryOut,
)
from approvals.services.workflow_service import workflow_service, TransitionResult
from approvals.core.principal import Principal
from approvals.core.security import get_principal, require_approvals_view

router = APIRouter(tags=["approvals"])


def transition_out(result: TransitionResult, verb: str) -> TransitionOut:
    message = f"Document {verb}"
    if result.was_override:
        message += " (override)"
    return TransitionOut(message=message, **result.to_dict())


@router.post("/documents", response_model=DocumentOut, status_code=201)
async def create_document(
    body: DocumentCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Register a draft document for approval."""
    return workflow_service.create_document(
        db, principal,
        transaction_type=body.transaction_type,
        reference_no=body.reference_no,
        amount=body.amount,
        department=body.department,
    )


@router.get("/documents/{document_id}", response_model=DocumentOut)
async def get_document(
    document_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Get a document's current approval state."""
    return workflow_service.get_document(db, document_id)


@router.post("/documents/{document_id}/submit", response_model=TransitionOut)
async def submit_document(
    document_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Submit a draft or rejected document for approval."""
    result = workflow_service.submit(db, principal, document_id)
    return transition_out(result, "submitted")


@router.post("/documents/{document_id}/approve", response_model=TransitionOut)
async def approve_document(
    document_id: int,
    body: Optional[ApproveRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Approve the current level, or override a decision (admin)."""
    body = body or ApproveRequest()
    result = workflow_service.approve(
        db, principal, document_id, comments=body.comments, override=body.override
    )
    return transition_out(result, "approved")


@router.post("/documents/{document_id}/reject", response_model=TransitionOut)
async def reject_document(
    document_id: int,
    body: RejectRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
):
    """Reject with mandatory comments, or override a decision (admin)."""
    result = workflow_service.reject(
        db, principal, document_id, comments=body.comments, override=body.override
    )
    return transition_out(result, "rejected")


@router.get("/documents/{document_id}/history", response_model=List[ApprovalHistoryOut])
async def document_history(
    document_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_approvals_view),
):
    """Approval history, newest first."""
    return workflow_service.history(db, document_id)


@router.get("/approvals", response_model=List[DocumentOut])
async def list_approvals(
    status: Optional[str] = Query(None, description="pending_approval | approved | rejected | all"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_approvals_view),
):
    """Approval queue filtered by status."""
    return workflow_service.list_documents(db, status)


@router.get("/approvals/stats")
async def approval_stats(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_approvals_view),
):
    """Document counts per status."""
    return workflow_service.stats(db)
