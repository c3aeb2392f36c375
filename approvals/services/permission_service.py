"""Role grants over a closed catalog of (module, action) pairs."""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from sqlalchemy.orm import Session

from approvals.core.config import settings
from approvals.core.exceptions import ResourceNotFoundError, ValidationError
from approvals.core.principal import Principal
from approvals.models.role import Role, RolePermission
from approvals.services.audit_service import audit_service
from approvals.services.cache_service import (
    cache_service, permissions_generation_key, permissions_key,
)

logger = logging.getLogger("approvals")

Grant = Tuple[str, str]


def group_grants(pairs: Iterable[Grant]) -> Dict[str, List[str]]:
    """Group (module, action) pairs into a sorted ``{module: [actions]}`` map."""
    grouped: Dict[str, List[str]] = {}
    for module_id, action in sorted(set(pairs)):
        grouped.setdefault(module_id, []).append(action)
    return grouped


def normalize_grants(payload: Any) -> Set[Grant]:
    """Turn either accepted payload shape into a set of (module, action) pairs.

    Accepts ``{"quotations": ["view", "approve"]}`` or
    ``[{"module_id": "quotations", "action": "view"}, ...]``.
    """
    pairs: Set[Grant] = set()
    if isinstance(payload, Mapping):
        for module_id, actions in payload.items():
            if isinstance(actions, str) or not isinstance(actions, Iterable):
                raise ValidationError(f"Actions for module '{module_id}' must be a list")
            for action in actions:
                pairs.add((str(module_id), str(action)))
    elif isinstance(payload, Iterable) and not isinstance(payload, str):
        for item in payload:
            if isinstance(item, Mapping):
                module_id, action = item.get("module_id"), item.get("action")
            else:
                module_id = getattr(item, "module_id", None)
                action = getattr(item, "action", None)
            if not module_id or not action:
                raise ValidationError("Each permission needs a module_id and an action")
            pairs.add((str(module_id), str(action)))
    else:
        raise ValidationError("Permissions must be a module map or a list of module/action pairs")
    return pairs


class PermissionService:
    """Answers and maintains which (module, action) pairs a role is granted."""

    @staticmethod
    def configured_catalog() -> Dict[str, List[str]]:
        """The static catalog of grantable pairs supplied by configuration."""
        return {m: list(actions) for m, actions in settings.PERMISSION_CATALOG.items()}

    @staticmethod
    def validate_against_catalog(pairs: Iterable[Grant]) -> None:
        """Raise ValidationError listing every pair the catalog does not know."""
        catalog = settings.PERMISSION_CATALOG
        unknown = sorted(
            (m, a) for m, a in pairs if a not in catalog.get(m, ())
        )
        if unknown:
            listed = ", ".join(f"{m}:{a}" for m, a in unknown)
            raise ValidationError(f"Unknown permissions: {listed}")

    @staticmethod
    def _active_role(db: Session, role_code: str) -> Role:
        role = (
            db.query(Role)
            .filter(Role.code == role_code, Role.is_active == True)
            .first()
        )
        if not role:
            raise ResourceNotFoundError(f"Role '{role_code}' not found")
        return role

    @staticmethod
    def get_permissions(db: Session, role_code: str) -> Dict[str, List[str]]:
        """Return ``{module_id: [actions]}`` granted to an active role.

        Cached sets are keyed by the role's cache generation as read before
        the database, so a set read just before a replace is never served
        after it.

        Raises:
            ResourceNotFoundError: If the role is absent or inactive.
        """
        generation = cache_service.get_generation(permissions_generation_key(role_code))
        if generation is not None:
            cached = cache_service.get_json(permissions_key(role_code, generation))
            if cached is not None:
                return cached

        PermissionService._active_role(db, role_code)
        rows = (
            db.query(RolePermission.module_id, RolePermission.action)
            .filter(RolePermission.role_code == role_code)
            .all()
        )
        permissions = group_grants((r.module_id, r.action) for r in rows)
        if generation is not None:
            cache_service.set_json(permissions_key(role_code, generation), permissions)
        return permissions

    @staticmethod
    def replace_permissions(
        db: Session,
        role_code: str,
        grants: Any,
        actor: Optional[Principal] = None,
    ) -> Dict[str, List[str]]:
        """Atomically replace every grant of a role with ``grants``.

        The delete and the inserts share one transaction, so concurrent
        readers see either the complete old set or the complete new set.

        Raises:
            ResourceNotFoundError: If the role does not exist.
            ValidationError: If the payload is malformed or names a pair
                outside the configured catalog. Nothing is written.
        """
        pairs = normalize_grants(grants)
        PermissionService.validate_against_catalog(pairs)

        role = db.query(Role).filter(Role.code == role_code).first()
        if not role:
            raise ResourceNotFoundError(f"Role '{role_code}' not found")

        previous = [
            (r.module_id, r.action)
            for r in db.query(RolePermission.module_id, RolePermission.action)
            .filter(RolePermission.role_code == role_code)
        ]
        try:
            db.query(RolePermission).filter(
                RolePermission.role_code == role_code
            ).delete(synchronize_session=False)
            db.add_all(
                RolePermission(role_code=role_code, module_id=m, action=a)
                for m, a in sorted(pairs)
            )
            audit_service.record(
                db, actor,
                action="role.permissions_replaced",
                resource_type="role",
                resource_id=role_code,
                old_value=group_grants(previous),
                new_value=group_grants(pairs),
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        PermissionService.invalidate(role_code)

        logger.info("Replaced permissions of role %s: %d grants", role_code, len(pairs))
        return group_grants(pairs)

    @staticmethod
    def list_granted_catalog(db: Session) -> Dict[str, List[str]]:
        """Every distinct (module, action) pair currently granted to any role."""
        rows = (
            db.query(RolePermission.module_id, RolePermission.action)
            .distinct()
            .order_by(RolePermission.module_id, RolePermission.action)
            .all()
        )
        return group_grants((r.module_id, r.action) for r in rows)

    @staticmethod
    def invalidate(role_code: str) -> None:
        """Move a role to a new cache generation so earlier cached sets go unread."""
        cache_service.bump_generation(permissions_generation_key(role_code))


permission_service = PermissionService()
