"""Seed default roles and their permission grants."""

import logging
from typing import Dict, List

from sqlalchemy.orm import Session

from approvals.models.role import Role, RolePermission

logger = logging.getLogger("approvals")

ROLES = [
    {"code": "admin", "name": "System Administrator", "description": "Full system access"},
    {"code": "manager", "name": "Department Manager", "description": "Department-level management access"},
    {"code": "supervisor", "name": "Supervisor", "description": "Supervisory access with limited approval rights"},
    {"code": "operator", "name": "Operator", "description": "Operational access for daily tasks"},
    {"code": "viewer", "name": "Viewer", "description": "Read-only access"},
]

DEFAULT_PERMISSIONS: Dict[str, Dict[str, List[str]]] = {
    "admin": {
        "dashboard": ["view", "edit"],
        "quotations": ["view", "create", "edit", "delete", "approve"],
        "bookings": ["view", "create", "edit", "delete"],
        "monitoring": ["view", "edit", "export"],
        "cash_advance": ["view", "create", "edit", "delete", "approve"],
        "billing": ["view", "create", "edit", "delete", "approve"],
        "approvals": ["view", "approve", "reject"],
        "reports": ["view", "export"],
        "admin_users": ["view", "create", "edit", "delete"],
        "master_setup": ["view", "create", "edit", "delete"],
    },
    "manager": {
        "dashboard": ["view"],
        "quotations": ["view", "create", "edit", "approve"],
        "bookings": ["view", "create", "edit"],
        "monitoring": ["view", "export"],
        "billing": ["view", "approve"],
        "approvals": ["view", "approve", "reject"],
        "reports": ["view", "export"],
    },
    "supervisor": {
        "dashboard": ["view"],
        "quotations": ["view", "create", "edit"],
        "bookings": ["view", "create"],
        "monitoring": ["view"],
        "approvals": ["view"],
        "reports": ["view"],
    },
    "operator": {
        "dashboard": ["view"],
        "quotations": ["view", "create"],
        "bookings": ["view", "create"],
        "monitoring": ["view"],
    },
    "viewer": {
        "dashboard": ["view"],
        "quotations": ["view"],
        "bookings": ["view"],
        "monitoring": ["view"],
        "approvals": ["view"],
        "reports": ["view"],
    },
}


def seed_roles(db: Session) -> None:
    """Insert default roles and grants if they don't already exist."""
    for role_data in ROLES:
        existing = db.query(Role).filter(Role.code == role_data["code"]).first()
        if not existing:
            db.add(Role(**role_data))
    db.flush()

    added = 0
    for code, modules in DEFAULT_PERMISSIONS.items():
        for module_id, actions in modules.items():
            for action in actions:
                exists = db.query(RolePermission).filter(
                    RolePermission.role_code == code,
                    RolePermission.module_id == module_id,
                    RolePermission.action == action,
                ).first()
                if not exists:
                    db.add(RolePermission(role_code=code, module_id=module_id, action=action))
                    added += 1

    db.commit()
    logger.info("Seeded %d roles and %d new grants", len(ROLES), added)
