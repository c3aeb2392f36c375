"""Seed sample quotation routing rules."""

import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from approvals.models.approval_matrix import ApprovalMatrixRule, ApprovalLevel

logger = logging.getLogger("approvals")

SAMPLE_RULES = [
    {
        "transaction_type": "quotation",
        "department": None,
        "min_amount": Decimal("0"),
        "max_amount": Decimal("100000"),
        "levels": [{"level": 1, "role": "manager"}],
    },
    {
        "transaction_type": "quotation",
        "department": None,
        "min_amount": Decimal("100000.01"),
        "max_amount": None,
        "levels": [
            {"level": 1, "role": "manager"},
            {"level": 2, "role": "admin"},
        ],
    },
    {
        "transaction_type": "cash_advance",
        "department": "Operations",
        "min_amount": Decimal("0"),
        "max_amount": Decimal("50000"),
        "levels": [
            {"level": 1, "role": "supervisor"},
            {"level": 2, "role": "manager"},
        ],
    },
]


def seed_matrix(db: Session) -> None:
    """Insert sample rules when the matrix is empty."""
    if db.query(ApprovalMatrixRule).count():
        logger.info("Approval matrix already configured; skipping sample rules")
        return

    for data in SAMPLE_RULES:
        rule = ApprovalMatrixRule(
            transaction_type=data["transaction_type"],
            department=data["department"],
            min_amount=data["min_amount"],
            max_amount=data["max_amount"],
            is_active=True,
        )
        rule.levels = [ApprovalLevel(**lvl) for lvl in data["levels"]]
        db.add(rule)

    db.commit()
    logger.info("Seeded %d approval rules", len(SAMPLE_RULES))
