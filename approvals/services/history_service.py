"""Approval history writer."""

from datetime import datetime, timezone
from typing import List

from sqlalchemy import func
from sqlalchemy.orm import Session

from approvals.models.approval_history import ApprovalHistory


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class HistoryService:
    """Appends immutable approval decisions. Exposes no update or delete."""

    @staticmethod
    def append(db: Session, entry: ApprovalHistory) -> ApprovalHistory:
        """Stage one history row in the caller's unit of work.

        ``action_date`` defaults to now and is never earlier than the
        latest row already recorded for the same document.
        """
        latest = (
            db.query(func.max(ApprovalHistory.action_date))
            .filter(
                ApprovalHistory.transaction_type == entry.transaction_type,
                ApprovalHistory.transaction_id == entry.transaction_id,
            )
            .scalar()
        )
        when = entry.action_date or utcnow()
        if latest is not None and when < latest:
            when = latest
        entry.action_date = when

        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def list_for(db: Session, transaction_type: str, transaction_id: int) -> List[ApprovalHistory]:
        """History of one document, newest first."""
        return (
            db.query(ApprovalHistory)
            .filter(
                ApprovalHistory.transaction_type == transaction_type,
                ApprovalHistory.transaction_id == transaction_id,
            )
            .order_by(ApprovalHistory.action_date.desc(), ApprovalHistory.id.desc())
            .all()
        )


history_service = HistoryService()
