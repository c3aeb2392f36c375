"""Role lifecycle service."""

import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from approvals.core.exceptions import (
    ResourceConflictError, ResourceNotFoundError, ValidationError,
)
from approvals.core.principal import Principal
from approvals.models.role import Role, RolePermission
from approvals.models.user import User
from approvals.services.audit_service import audit_service
from approvals.services.permission_service import (
    group_grants, normalize_grants, permission_service,
)

logger = logging.getLogger("approvals")


class RoleService:
    """Manages roles. The ``code`` of a role never changes."""

    @staticmethod
    def list_roles(db: Session, include_inactive: bool = True) -> List[Role]:
        query = db.query(Role)
        if not include_inactive:
            query = query.filter(Role.is_active == True)
        return query.order_by(Role.name).all()

    @staticmethod
    def get_role(db: Session, code: str) -> Role:
        role = db.query(Role).filter(Role.code == code).first()
        if not role:
            raise ResourceNotFoundError(f"Role '{code}' not found")
        return role

    @staticmethod
    def create_role(
        db: Session,
        code: str,
        name: str,
        description: Optional[str] = None,
        is_active: bool = True,
        modules: Optional[Dict[str, List[str]]] = None,
        actor: Optional[Principal] = None,
    ) -> Role:
        """Create a role, optionally with its initial module grants."""
        pairs = normalize_grants(modules) if modules else set()
        permission_service.validate_against_catalog(pairs)

        if db.query(Role).filter((Role.code == code) | (Role.name == name)).first():
            raise ResourceConflictError("Role code or name already exists")

        role = Role(code=code, name=name, description=description, is_active=is_active)
        try:
            db.add(role)
            db.flush()
            db.add_all(
                RolePermission(role_code=code, module_id=m, action=a) for m, a in sorted(pairs)
            )
            audit_service.record(
                db, actor,
                action="role.created",
                resource_type="role",
                resource_id=code,
                new_value={"name": name, "permissions": group_grants(pairs)},
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ResourceConflictError("Role code or name already exists")
        except Exception:
            db.rollback()
            raise
        db.refresh(role)
        logger.info("Created role %s with %d grants", code, len(pairs))
        return role

    @staticmethod
    def update_role(db: Session, code: str, actor: Optional[Principal] = None, **fields) -> Role:
        """Update name, description or active flag.

        Raises:
            ValidationError: If ``name`` or ``is_active`` is set to null.
        """
        missing = sorted(k for k in ("name", "is_active") if k in fields and fields[k] is None)
        if missing:
            raise ValidationError(f"Fields cannot be null: {', '.join(missing)}")

        role = RoleService.get_role(db, code)
        before = {k: getattr(role, k) for k in fields}
        try:
            for key, value in fields.items():
                if key in ("name", "description", "is_active"):
                    setattr(role, key, value)
            audit_service.record(
                db, actor,
                action="role.updated",
                resource_type="role",
                resource_id=code,
                old_value=before,
                new_value=fields,
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ResourceConflictError("Role name already exists")
        except Exception:
            db.rollback()
            raise
        # deactivation must stop serving cached grants
        permission_service.invalidate(code)
        db.refresh(role)
        return role

    @staticmethod
    def delete_role(db: Session, code: str, actor: Optional[Principal] = None) -> None:
        """Hard-delete a role and its grants.

        Raises:
            ResourceConflictError: If any user still references the role.
                Such a role can only be deactivated.
        """
        role = RoleService.get_role(db, code)
        assigned = db.query(User).filter(User.role_code == code).count()
        if assigned > 0:
            raise ResourceConflictError(
                f"Cannot delete role: {assigned} users are assigned to this role. "
                "Reassign them first or deactivate the role."
            )
        try:
            db.delete(role)
            audit_service.record(
                db, actor,
                action="role.deleted",
                resource_type="role",
                resource_id=code,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        permission_service.invalidate(code)
        logger.info("Deleted role %s", code)


role_service = RoleService()
