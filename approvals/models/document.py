"""Approvable document model."""

from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, ForeignKey, Enum, func
)
from sqlalchemy.orm import relationship
from approvals.db.base import Base
import enum


class DocumentStatus(str, enum.Enum):
    draft = "draft"
    pending_approval = "pending_approval"
    approved = "approved"
    rejected = "rejected"
    client_review = "client_review"


TERMINAL_STATUSES = (DocumentStatus.approved, DocumentStatus.rejected)


class ApprovableDocument(Base):
    """A business transaction subject to approval.

    ``version`` is bumped on every flush and used as the optimistic
    concurrency check on status writes.
    """
    __tablename__ = "approvable_documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_type = Column(String(50), nullable=False, index=True)
    reference_no = Column(String(50), nullable=False, index=True)
    department = Column(String(100), nullable=True)
    amount = Column(Numeric(14, 2), nullable=False, default=0)
    status = Column(Enum(DocumentStatus), default=DocumentStatus.draft, nullable=False, index=True)
    approved_by = Column(String(255), nullable=True)
    created_by = Column(Integer, nullable=False)
    approval_rule_id = Column(
        Integer, ForeignKey("approval_matrix.id", ondelete="RESTRICT"), nullable=True
    )
    current_level = Column(Integer, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    approval_rule = relationship("ApprovalMatrixRule", lazy="joined")

    __mapper_args__ = {"version_id_col": version}
