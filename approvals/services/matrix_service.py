"""Approval matrix service: rule CRUD and routing resolution."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session

from approvals.core.exceptions import (
    InvalidConfigurationError, ResourceConflictError, ResourceNotFoundError, ValidationError,
)
from approvals.core.principal import Principal
from approvals.models.approval_matrix import ApprovalMatrixRule, ApprovalLevel
from approvals.models.document import ApprovableDocument, DocumentStatus
from approvals.services.audit_service import audit_service

logger = logging.getLogger("approvals")

REQUIRED_RULE_FIELDS = ("transaction_type", "min_amount", "is_active")


@dataclass(frozen=True)
class ResolvedRoute:
    """The rule a document is routed by and its ordered approval levels."""

    rule_id: int
    levels: List[ApprovalLevel]

    @property
    def final_level(self) -> int:
        return self.levels[-1].level

    def level(self, number: int) -> Optional[ApprovalLevel]:
        for lvl in self.levels:
            if lvl.level == number:
                return lvl
        return None


def band_width(rule: ApprovalMatrixRule) -> Optional[Decimal]:
    """Width of a rule's amount band; ``None`` means unbounded."""
    if rule.max_amount is None:
        return None
    return Decimal(rule.max_amount) - Decimal(rule.min_amount or 0)


def specificity_key(rule: ApprovalMatrixRule):
    """Sort key: narrowest band first, then department-specific before generic."""
    width = band_width(rule)
    return (
        width is None,
        width if width is not None else Decimal(0),
        rule.department is None,
    )


def validate_levels(levels: Sequence[Dict[str, Any]]) -> None:
    """Levels must be numbered 1..N with no gaps or duplicates."""
    if not levels:
        raise ValidationError("A rule needs at least one approval level")
    numbers = sorted(int(lvl["level"]) for lvl in levels)
    if numbers != list(range(1, len(numbers) + 1)):
        raise ValidationError(
            f"Approval levels must be numbered 1..{len(numbers)} without gaps, got {numbers}"
        )
    for lvl in levels:
        if not lvl.get("role"):
            raise ValidationError(f"Level {lvl['level']} needs a role")


def validate_band(min_amount: Decimal, max_amount: Optional[Decimal]) -> None:
    if min_amount < 0:
        raise ValidationError("min_amount cannot be negative")
    if max_amount is not None and max_amount < min_amount:
        raise ValidationError("max_amount must be greater than or equal to min_amount")


class MatrixService:
    """Manages approval matrix rules and resolves a document's route."""

    @staticmethod
    def resolve(
        db: Session,
        transaction_type: str,
        department: Optional[str],
        amount: Decimal,
    ) -> Optional[ResolvedRoute]:
        """Select the single best-matching active rule.

        Returns ``None`` when no rule matches (single-decision mode).

        Raises:
            InvalidConfigurationError: If two or more rules tie on band
                width and department specificity.
        """
        amount = Decimal(amount)
        query = db.query(ApprovalMatrixRule).filter(
            ApprovalMatrixRule.is_active == True,
            ApprovalMatrixRule.transaction_type == transaction_type,
            ApprovalMatrixRule.min_amount <= amount,
            or_(
                ApprovalMatrixRule.max_amount.is_(None),
                ApprovalMatrixRule.max_amount >= amount,
            ),
        )
        if department:
            query = query.filter(
                or_(
                    ApprovalMatrixRule.department.is_(None),
                    ApprovalMatrixRule.department == department,
                )
            )
        else:
            query = query.filter(ApprovalMatrixRule.department.is_(None))

        candidates = sorted(query.all(), key=specificity_key)
        if not candidates:
            return None

        best = candidates[0]
        tied = [r for r in candidates if specificity_key(r) == specificity_key(best)]
        if len(tied) > 1:
            ids = ", ".join(str(r.id) for r in tied)
            raise InvalidConfigurationError(
                f"Ambiguous approval routing for {transaction_type} "
                f"(department={department}, amount={amount}): rules {ids} match equally"
            )
        if not best.levels:
            raise InvalidConfigurationError(f"Approval rule {best.id} has no levels")

        levels = sorted(best.levels, key=lambda lvl: lvl.level)
        return ResolvedRoute(rule_id=best.id, levels=levels)

    @staticmethod
    def route_for_rule(db: Session, rule_id: int) -> ResolvedRoute:
        """Load the route of a rule a document was pinned to at submission."""
        rule = db.query(ApprovalMatrixRule).filter(ApprovalMatrixRule.id == rule_id).first()
        if not rule or not rule.levels:
            raise InvalidConfigurationError(
                f"Approval rule {rule_id} pinned by the document no longer has levels"
            )
        return ResolvedRoute(
            rule_id=rule.id, levels=sorted(rule.levels, key=lambda lvl: lvl.level)
        )

    @staticmethod
    def list_rules(db: Session, transaction_type: Optional[str] = None) -> List[ApprovalMatrixRule]:
        """List rules, newest first, each with its levels."""
        query = db.query(ApprovalMatrixRule)
        if transaction_type:
            query = query.filter(ApprovalMatrixRule.transaction_type == transaction_type)
        return query.order_by(ApprovalMatrixRule.id.desc()).all()

    @staticmethod
    def get_rule(db: Session, rule_id: int) -> ApprovalMatrixRule:
        rule = db.query(ApprovalMatrixRule).filter(ApprovalMatrixRule.id == rule_id).first()
        if not rule:
            raise ResourceNotFoundError(f"Approval rule {rule_id} not found")
        return rule

    @staticmethod
    def create_rule(
        db: Session,
        transaction_type: str,
        levels: Sequence[Dict[str, Any]],
        department: Optional[str] = None,
        min_amount: Decimal = Decimal(0),
        max_amount: Optional[Decimal] = None,
        is_active: bool = True,
        actor: Optional[Principal] = None,
    ) -> ApprovalMatrixRule:
        """Create a rule together with its levels."""
        validate_band(min_amount, max_amount)
        validate_levels(levels)

        rule = ApprovalMatrixRule(
            transaction_type=transaction_type,
            department=department or None,
            min_amount=min_amount,
            max_amount=max_amount,
            is_active=is_active,
        )
        rule.levels = [ApprovalLevel(**lvl) for lvl in sorted(levels, key=lambda l: l["level"])]
        try:
            db.add(rule)
            db.flush()
            audit_service.record(
                db, actor,
                action="approval_rule.created",
                resource_type="approval_rule",
                resource_id=rule.id,
                new_value=MatrixService.snapshot(rule),
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(rule)
        logger.info("Created approval rule %s for %s", rule.id, transaction_type)
        return rule

    @staticmethod
    def update_rule(
        db: Session,
        rule_id: int,
        levels: Optional[Sequence[Dict[str, Any]]] = None,
        actor: Optional[Principal] = None,
        **fields,
    ) -> ApprovalMatrixRule:
        """Update rule fields; when ``levels`` is given they are fully replaced.

        Raises:
            ValidationError: If a required field is set to null or the band
                or levels are invalid.
            ResourceConflictError: If levels are replaced while a pending
                document is routed by the rule.
        """
        missing = sorted(k for k in REQUIRED_RULE_FIELDS if k in fields and fields[k] is None)
        if missing:
            raise ValidationError(f"Fields cannot be null: {', '.join(missing)}")

        rule = MatrixService.get_rule(db, rule_id)
        if levels is not None:
            in_flight = MatrixService.pending_documents(db, rule_id)
            if in_flight:
                raise ResourceConflictError(
                    f"Cannot replace the levels of approval rule {rule_id}: "
                    f"{in_flight} pending documents are routed by it"
                )
        before = MatrixService.snapshot(rule)

        min_amount = fields.get("min_amount", rule.min_amount)
        max_amount = fields["max_amount"] if "max_amount" in fields else rule.max_amount
        validate_band(Decimal(min_amount), Decimal(max_amount) if max_amount is not None else None)
        if levels is not None:
            validate_levels(levels)

        try:
            for key, value in fields.items():
                if key == "department":
                    value = value or None
                if hasattr(rule, key):
                    setattr(rule, key, value)
            if levels is not None:
                # delete-all-then-insert; flush the deletes first to free (rule_id, level)
                rule.levels.clear()
                db.flush()
                rule.levels.extend(
                    ApprovalLevel(**lvl) for lvl in sorted(levels, key=lambda l: l["level"])
                )
            db.flush()
            audit_service.record(
                db, actor,
                action="approval_rule.updated",
                resource_type="approval_rule",
                resource_id=rule.id,
                old_value=before,
                new_value=MatrixService.snapshot(rule),
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(rule)
        logger.info("Updated approval rule %s", rule.id)
        return rule

    @staticmethod
    def pending_documents(db: Session, rule_id: int) -> int:
        """Number of documents awaiting approval along this rule's levels."""
        return (
            db.query(ApprovableDocument)
            .filter(
                ApprovableDocument.approval_rule_id == rule_id,
                ApprovableDocument.status == DocumentStatus.pending_approval,
            )
            .count()
        )

    @staticmethod
    def delete_rule(db: Session, rule_id: int, actor: Optional[Principal] = None) -> None:
        """Delete a rule and its levels.

        Raises:
            ResourceConflictError: If a pending document is routed by it.
        """
        rule = MatrixService.get_rule(db, rule_id)
        in_flight = MatrixService.pending_documents(db, rule_id)
        if in_flight:
            raise ResourceConflictError(
                f"Cannot delete approval rule {rule_id}: {in_flight} pending documents are routed by it"
            )
        before = MatrixService.snapshot(rule)
        try:
            db.query(ApprovableDocument).filter(
                ApprovableDocument.approval_rule_id == rule_id
            ).update({"approval_rule_id": None}, synchronize_session=False)
            db.delete(rule)
            audit_service.record(
                db, actor,
                action="approval_rule.deleted",
                resource_type="approval_rule",
                resource_id=rule_id,
                old_value=before,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Deleted approval rule %s", rule_id)

    @staticmethod
    def snapshot(rule: ApprovalMatrixRule) -> Dict[str, Any]:
        """Plain-dict view of a rule for audit payloads."""
        return {
            "transaction_type": rule.transaction_type,
            "department": rule.department,
            "min_amount": str(rule.min_amount) if rule.min_amount is not None else None,
            "max_amount": str(rule.max_amount) if rule.max_amount is not None else None,
            "is_active": rule.is_active,
            "levels": [
                {"level": l.level, "role": l.role, "user_id": l.user_id}
                for l in sorted(rule.levels, key=lambda l: l.level)
            ],
        }


matrix_service = MatrixService()
