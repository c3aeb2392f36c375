"""Import all models so metadata is complete."""

from approvals.models.role import Role, RolePermission
from approvals.models.user import User
from approvals.models.approval_matrix import ApprovalMatrixRule, ApprovalLevel
from approvals.models.document import ApprovableDocument, DocumentStatus
from approvals.models.approval_history import ApprovalHistory, ApprovalAction
from approvals.models.audit_log import AuditLog

__all__ = [
    "Role", "RolePermission", "User",
    "ApprovalMatrixRule", "ApprovalLevel",
    "ApprovableDocument", "DocumentStatus",
    "ApprovalHistory", "ApprovalAction",
    "AuditLog",
]
