"""Approval workflow engine: document state machine and level routing.

Transitions:

    draft / rejected   --submit-->           pending_approval
    pending_approval   --approve-->          pending_approval (next level)
    pending_approval   --approve (final)-->  approved
    pending_approval   --reject-->           rejected
    approved/rejected  --override approve--> approved
    approved/rejected  --override reject-->  rejected

A document routed by a matrix rule is approved level by level; a document
with no matching rule is resolved in one step by a single-decision role.
Every status write is conditioned on the row version, and the status change
and its history row commit together.
"""

import logging
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from approvals.core.config import settings
from approvals.core.exceptions import (
    AuthorizationError, ConflictError, InvalidConfigurationError,
    InvalidTransitionError, ResourceNotFoundError, ValidationError,
)
from approvals.core.principal import Principal
from approvals.core.security import has_role, require_role
from approvals.models.approval_history import ApprovalAction, ApprovalHistory
from approvals.models.approval_matrix import ApprovalLevel
from approvals.models.document import ApprovableDocument, DocumentStatus, TERMINAL_STATUSES
from approvals.models.user import User
from approvals.services.audit_service import audit_service
from approvals.services.history_service import history_service
from approvals.services.matrix_service import matrix_service, ResolvedRoute

logger = logging.getLogger("approvals")

SUBMITTABLE_STATUSES = (DocumentStatus.draft, DocumentStatus.rejected)


@dataclass
class TransitionResult:
    """Outcome of a successful workflow action."""

    document_id: int
    status: str
    previous_status: str
    was_override: bool = False
    current_level: Optional[int] = None
    approval_rule_id: Optional[int] = None
    action: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def matches_level(principal: Principal, level: ApprovalLevel) -> bool:
    """A level naming a user binds to that user, otherwise to its role."""
    if level.user_id is not None:
        return principal.id == level.user_id
    return principal.role == level.role


def override_comment(previous_status: str, comments: Optional[str]) -> str:
    return f"[ADMIN OVERRIDE from {previous_status}] {comments or 'No comments'}"


class WorkflowService:
    """Validates and applies approval transitions on documents."""

    # ---- documents ----

    @staticmethod
    def create_document(
        db: Session,
        principal: Principal,
        transaction_type: str,
        reference_no: str,
        amount: Decimal,
        department: Optional[str] = None,
    ) -> ApprovableDocument:
        """Register a draft document authored by ``principal``."""
        doc = ApprovableDocument(
            transaction_type=transaction_type,
            reference_no=reference_no,
            department=department or None,
            amount=amount,
            status=DocumentStatus.draft,
            created_by=principal.id,
        )
        try:
            db.add(doc)
            db.flush()
            audit_service.record(
                db, principal,
                action="document.created",
                resource_type="document",
                resource_id=doc.id,
                new_value={"transaction_type": transaction_type, "reference_no": reference_no},
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(doc)
        return doc

    @staticmethod
    def get_document(db: Session, document_id: int) -> ApprovableDocument:
        doc = db.query(ApprovableDocument).filter(ApprovableDocument.id == document_id).first()
        if not doc:
            raise ResourceNotFoundError(f"Document {document_id} not found")
        return doc

    @staticmethod
    def list_documents(db: Session, status: Optional[str] = None) -> List[ApprovableDocument]:
        """Approval queue, newest first; ``status`` of None or "all" lists everything."""
        query = db.query(ApprovableDocument)
        if status and status != "all":
            try:
                wanted = DocumentStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown status '{status}'")
            query = query.filter(ApprovableDocument.status == wanted)
        return query.order_by(
            ApprovableDocument.created_at.desc(), ApprovableDocument.id.desc()
        ).all()

    @staticmethod
    def stats(db: Session) -> Dict[str, int]:
        """Document counts per status."""
        rows = (
            db.query(ApprovableDocument.status, func.count(ApprovableDocument.id))
            .group_by(ApprovableDocument.status)
            .all()
        )
        counts = {s.value: 0 for s in DocumentStatus}
        for status, count in rows:
            counts[DocumentStatus(status).value] = count
        counts["total"] = sum(counts.values())
        return counts

    # ---- transitions ----

    @staticmethod
    def submit(db: Session, principal: Principal, document_id: int) -> TransitionResult:
        """Send a draft or rejected document into approval.

        The matrix is resolved here and the winning rule is pinned on the
        document; with no matching rule the document is decided in
        single-decision mode.
        """
        doc = WorkflowService.get_document(db, document_id)
        if doc.created_by != principal.id:
            raise AuthorizationError("Only the author of a document can submit it")
        if doc.status not in SUBMITTABLE_STATUSES:
            raise InvalidTransitionError(
                f"Cannot submit a {doc.status.value} document"
            )

        route = matrix_service.resolve(db, doc.transaction_type, doc.department, doc.amount)
        previous = doc.status
        doc.status = DocumentStatus.pending_approval
        doc.approved_by = None
        if route is None:
            doc.approval_rule_id = None
            doc.current_level = None
            logger.warning(
                "No approval rule matches %s %s (department=%s, amount=%s); "
                "falling back to single-decision mode",
                doc.transaction_type, doc.reference_no, doc.department, doc.amount,
            )
        else:
            doc.approval_rule_id = route.rule_id
            doc.current_level = route.levels[0].level

        def stage():
            audit_service.record(
                db, principal,
                action="document.submitted",
                resource_type="document",
                resource_id=doc.id,
                old_value={"status": previous.value},
                new_value={
                    "status": doc.status.value,
                    "approval_rule_id": doc.approval_rule_id,
                    "mode": "single_decision" if route is None else "matrix",
                },
            )

        WorkflowService._commit(db, doc, stage)
        logger.info("Document %s submitted by user %s", doc.id, principal.id)
        return TransitionResult(
            document_id=doc.id,
            status=doc.status.value,
            previous_status=previous.value,
            current_level=doc.current_level,
            approval_rule_id=doc.approval_rule_id,
        )

    @staticmethod
    def approve(
        db: Session,
        principal: Principal,
        document_id: int,
        comments: Optional[str] = None,
        override: bool = False,
    ) -> TransitionResult:
        """Approve at the document's current level, or override a decision."""
        if override:
            WorkflowService._require_override_privilege(principal)

        doc = WorkflowService.get_document(db, document_id)
        previous = doc.status

        if override:
            WorkflowService._require_terminal(doc)
            return WorkflowService._decide(
                db, doc, principal,
                action=ApprovalAction.override_approved,
                new_status=DocumentStatus.approved,
                comments=override_comment(previous.value, comments),
                level=None,
            )

        WorkflowService._require_pending(doc, "approve")

        if doc.approval_rule_id is None:
            WorkflowService._require_single_decision_role(principal, doc)
            return WorkflowService._decide(
                db, doc, principal,
                action=ApprovalAction.approved,
                new_status=DocumentStatus.approved,
                comments=comments,
                level=None,
            )

        route = matrix_service.route_for_rule(db, doc.approval_rule_id)
        level = WorkflowService._current_level(doc, route)
        if not matches_level(principal, level):
            raise AuthorizationError(
                f"Level {level.level} of this document must be approved by "
                + (f"user {level.user_id}" if level.user_id is not None else f"role '{level.role}'")
            )

        if level.level < route.final_level:
            next_level = route.levels[route.levels.index(level) + 1].level
            return WorkflowService._decide(
                db, doc, principal,
                action=ApprovalAction.approved,
                new_status=DocumentStatus.pending_approval,
                comments=comments,
                level=level.level,
                next_level=next_level,
            )
        return WorkflowService._decide(
            db, doc, principal,
            action=ApprovalAction.approved,
            new_status=DocumentStatus.approved,
            comments=comments,
            level=level.level,
        )

    @staticmethod
    def reject(
        db: Session,
        principal: Principal,
        document_id: int,
        comments: Optional[str],
        override: bool = False,
    ) -> TransitionResult:
        """Reject a pending document, or override a decision to rejected.

        Comments are mandatory and checked before anything is read.
        """
        if not comments or not comments.strip():
            raise ValidationError("Comments are required for rejection")
        if override:
            WorkflowService._require_override_privilege(principal)

        doc = WorkflowService.get_document(db, document_id)
        previous = doc.status

        if override:
            WorkflowService._require_terminal(doc)
            return WorkflowService._decide(
                db, doc, principal,
                action=ApprovalAction.override_rejected,
                new_status=DocumentStatus.rejected,
                comments=override_comment(previous.value, comments),
                level=None,
            )

        WorkflowService._require_pending(doc, "reject")

        if doc.approval_rule_id is None:
            WorkflowService._require_single_decision_role(principal, doc)
            level_no = None
        else:
            route = matrix_service.route_for_rule(db, doc.approval_rule_id)
            current = WorkflowService._current_level(doc, route)
            remaining = [l for l in route.levels if l.level >= current.level]
            if not any(matches_level(principal, l) for l in remaining):
                raise AuthorizationError("You are not an approver of this document's remaining levels")
            level_no = current.level

        return WorkflowService._decide(
            db, doc, principal,
            action=ApprovalAction.rejected,
            new_status=DocumentStatus.rejected,
            comments=comments,
            level=level_no,
        )

    @staticmethod
    def history(db: Session, document_id: int) -> List[ApprovalHistory]:
        """Decisions recorded for a document, newest first."""
        doc = WorkflowService.get_document(db, document_id)
        return history_service.list_for(db, doc.transaction_type, doc.id)

    # ---- guards ----

    @staticmethod
    def _require_override_privilege(principal: Principal) -> None:
        if not has_role(principal, [settings.PRIVILEGED_ROLE]):
            raise AuthorizationError(
                "Only administrators can override approved/rejected documents"
            )

    @staticmethod
    def _require_terminal(doc: ApprovableDocument) -> None:
        if doc.status not in TERMINAL_STATUSES:
            raise InvalidTransitionError(
                f"Override applies only to approved or rejected documents, "
                f"this one is {doc.status.value}"
            )

    @staticmethod
    def _require_pending(doc: ApprovableDocument, verb: str) -> None:
        if doc.status == DocumentStatus.pending_approval:
            return
        if doc.status in TERMINAL_STATUSES:
            raise InvalidTransitionError(
                f"Cannot {verb} {doc.status.value} document. Admin override required."
            )
        raise InvalidTransitionError(f"Cannot {verb} a {doc.status.value} document")

    @staticmethod
    def _require_single_decision_role(principal: Principal, doc: ApprovableDocument) -> None:
        require_role(principal, settings.SINGLE_DECISION_ROLES)
        logger.info(
            "Document %s has no approval rule; deciding in single-decision mode as %s",
            doc.id, principal.role,
        )

    @staticmethod
    def _current_level(doc: ApprovableDocument, route: ResolvedRoute) -> ApprovalLevel:
        level = route.level(doc.current_level) if doc.current_level is not None else None
        if level is None:
            raise InvalidConfigurationError(
                f"Document {doc.id} points at level {doc.current_level}, "
                f"which rule {route.rule_id} does not define"
            )
        return level

    # ---- persistence ----

    @staticmethod
    def _actor_name(db: Session, principal: Principal) -> str:
        user = db.query(User).filter(User.id == principal.id).first()
        if user is not None:
            return user.full_name
        return f"user:{principal.id}"

    @staticmethod
    def _decide(
        db: Session,
        doc: ApprovableDocument,
        principal: Principal,
        action: ApprovalAction,
        new_status: DocumentStatus,
        comments: Optional[str],
        level: Optional[int],
        next_level: Optional[int] = None,
    ) -> TransitionResult:
        """Apply a decision and append its history row in one unit of work."""
        previous = doc.status
        actor_name = WorkflowService._actor_name(db, principal)
        rule_id = doc.approval_rule_id

        doc.status = new_status
        doc.current_level = next_level
        if new_status == DocumentStatus.approved:
            doc.approved_by = actor_name

        def stage():
            history_service.append(db, ApprovalHistory(
                transaction_type=doc.transaction_type,
                transaction_id=doc.id,
                reference_no=doc.reference_no,
                action=action,
                action_by=principal.id,
                action_by_name=actor_name,
                comments=comments,
                previous_status=previous.value,
                new_status=new_status.value,
                approval_rule_id=rule_id,
                approval_level=level,
            ))

        WorkflowService._commit(db, doc, stage)

        was_override = action in (ApprovalAction.override_approved, ApprovalAction.override_rejected)
        logger.info(
            "%s%s document %s (%s -> %s) by %s%s",
            "OVERRIDE " if was_override else "",
            action.value, doc.id, previous.value, new_status.value, actor_name,
            f" at level {level}" if level is not None else "",
        )
        return TransitionResult(
            document_id=doc.id,
            status=new_status.value,
            previous_status=previous.value,
            was_override=was_override,
            current_level=next_level,
            approval_rule_id=rule_id,
            action=action.value,
        )

    @staticmethod
    def _commit(db: Session, doc: ApprovableDocument, stage) -> None:
        """Flush the status write, stage the audit row, commit both or neither.

        The document UPDATE is conditioned on its version; a lost race
        surfaces as ConflictError.
        """
        doc_id = doc.id
        try:
            db.flush()
            stage()
            db.commit()
        except StaleDataError:
            db.rollback()
            logger.info("Concurrent update on document %s; rejecting with conflict", doc_id)
            raise ConflictError(
                f"Document {doc_id} was changed by another request; reload it and retry"
            )
        except Exception:
            db.rollback()
            raise


workflow_service = WorkflowService()
