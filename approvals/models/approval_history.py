"""Approval history model (append-only)."""

from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, Index, event
from approvals.db.base import Base
from approvals.core.exceptions import AppendOnlyViolation
import enum


class ApprovalAction(str, enum.Enum):
    approved = "approved"
    rejected = "rejected"
    override_approved = "override_approved"
    override_rejected = "override_rejected"


class ApprovalHistory(Base):
    """Immutable record of every approval decision.

    This table is APPEND-ONLY. Updates and deletes through the ORM are
    refused by the mapper events below.
    """
    __tablename__ = "approval_history"
    __table_args__ = (
        Index("idx_approval_history_type_id", "transaction_type", "transaction_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_type = Column(String(50), nullable=False)
    transaction_id = Column(Integer, nullable=False)
    reference_no = Column(String(50), nullable=False, index=True)
    action = Column(Enum(ApprovalAction), nullable=False)
    action_by = Column(Integer, nullable=False)
    action_by_name = Column(String(255), nullable=False)
    action_date = Column(DateTime, nullable=False, index=True)
    comments = Column(Text, nullable=True)
    previous_status = Column(String(50), nullable=True)
    new_status = Column(String(50), nullable=True)
    approval_rule_id = Column(Integer, nullable=True)  # NULL in single-decision mode
    approval_level = Column(Integer, nullable=True)


@event.listens_for(ApprovalHistory, "before_update")
def _refuse_update(mapper, connection, target):
    raise AppendOnlyViolation("approval_history rows cannot be updated")


@event.listens_for(ApprovalHistory, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise AppendOnlyViolation("approval_history rows cannot be deleted")
