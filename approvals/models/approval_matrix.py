"""Approval matrix rules and their ordered approval levels."""

from sqlalchemy import (
    Column, Integer, String, Boolean, Numeric, DateTime, ForeignKey,
    UniqueConstraint, func
)
from sqlalchemy.orm import relationship
from approvals.db.base import Base


class ApprovalMatrixRule(Base):
    """Routing rule selected by transaction type, department and amount."""
    __tablename__ = "approval_matrix"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_type = Column(String(50), nullable=False, index=True)
    department = Column(String(100), nullable=True)  # NULL matches any department
    min_amount = Column(Numeric(14, 2), nullable=False, default=0)
    max_amount = Column(Numeric(14, 2), nullable=True)  # NULL is unbounded
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    levels = relationship(
        "ApprovalLevel",
        back_populates="rule",
        cascade="all, delete-orphan",
        order_by="ApprovalLevel.level",
        lazy="selectin",
    )


class ApprovalLevel(Base):
    """One step of a rule's approval sequence (1-based, dense)."""
    __tablename__ = "approval_levels"
    __table_args__ = (
        UniqueConstraint("rule_id", "level", name="uq_rule_level"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    rule_id = Column(Integer, ForeignKey("approval_matrix.id", ondelete="CASCADE"), nullable=False)
    level = Column(Integer, nullable=False)
    role = Column(String(50), nullable=False)
    user_id = Column(Integer, nullable=True)
    required = Column(Boolean, default=True, nullable=False)
    can_delegate = Column(Boolean, default=False, nullable=False)

    rule = relationship("ApprovalMatrixRule", back_populates="levels")
