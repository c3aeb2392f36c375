"""Audit log model (append-only)."""

from sqlalchemy import Column, Integer, String, Text, DateTime, func
from approvals.db.base import Base


class AuditLog(Base):
    """Immutable trail of administrative changes.

    Roles, permission grants, matrix rules and document submissions are
    recorded here. Approval decisions live in ``approval_history``.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_id = Column(Integer, nullable=True)
    actor_role = Column(String(50), nullable=True)
    action = Column(String(100), nullable=False, index=True)  # e.g. "role.permissions_replaced"
    resource_type = Column(String(50), nullable=False, index=True)  # role, approval_rule, document
    resource_id = Column(String(100), nullable=True)
    old_value_json = Column(Text, nullable=True)
    new_value_json = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)
