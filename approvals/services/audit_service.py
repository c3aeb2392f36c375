"""Audit service: append-only trail for administrative mutations."""

import json
from typing import Optional, Any
from sqlalchemy.orm import Session

from approvals.core.middleware import current_client_ip
from approvals.core.principal import Principal
from approvals.models.audit_log import AuditLog


class AuditService:
    """Records immutable audit log entries for administrative events."""

    @staticmethod
    def record(
        db: Session,
        actor: Optional[Principal],
        action: str,
        resource_type: str,
        resource_id: Optional[Any] = None,
        old_value: Optional[Any] = None,
        new_value: Optional[Any] = None,
    ) -> AuditLog:
        """Stage a single audit log record in the caller's transaction.

        Args:
            action: e.g. "role.created", "role.permissions_replaced",
                "approval_rule.updated", "document.submitted"
            resource_type: role, approval_rule, document

        The entry is flushed but not committed, so it lands together with
        the change it describes or not at all. The client address comes from
        the request being served, when there is one.
        """
        entry = AuditLog(
            actor_id=actor.id if actor else None,
            actor_role=actor.role if actor else None,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            old_value_json=json.dumps(old_value, default=str) if old_value is not None else None,
            new_value_json=json.dumps(new_value, default=str) if new_value is not None else None,
            ip_address=current_client_ip(),
        )
        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def query_logs(
        db: Session,
        actor_id: Optional[int] = None,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ):
        """Query audit logs with filters and pagination."""
        query = db.query(AuditLog)

        if actor_id:
            query = query.filter(AuditLog.actor_id == actor_id)
        if action:
            query = query.filter(AuditLog.action.ilike(f"%{action}%"))
        if resource_type:
            query = query.filter(AuditLog.resource_type == resource_type)

        total = query.count()
        logs = (
            query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )

        return {
            "logs": logs,
            "total": total,
            "page": page,
            "page_size": page_size,
        }


audit_service = AuditService()
