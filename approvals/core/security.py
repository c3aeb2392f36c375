"""Bearer-token principal resolution and RBAC authorization dependencies.

Tokens are minted by the identity service; this module only decodes them.
The checks here are pure predicates over already-loaded data and never
write, so the workflow engine can layer its own attribute checks on top.
"""

from typing import Dict, Iterable, List, Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from approvals.core.config import settings
from approvals.core.exceptions import (
    AuthenticationError, AuthorizationError, ResourceNotFoundError,
)
from approvals.core.principal import Principal
from approvals.db.session import get_db
from approvals.services.permission_service import permission_service

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")


def principal_from_payload(payload: dict) -> Principal:
    """Build the principal from token claims (``sub``/``id`` and ``role``)."""
    user_id = payload.get("sub", payload.get("id"))
    role = payload.get("role")
    if user_id is None or not role:
        raise AuthenticationError("Invalid token payload")
    try:
        return Principal(id=int(user_id), role=str(role))
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token payload")


async def get_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> Principal:
    """Resolve the request's principal from the Bearer token."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    return principal_from_payload(decode_token(credentials.credentials))


def has_role(principal: Principal, allowed: Iterable[str]) -> bool:
    """Role-set predicate."""
    return principal.role in set(allowed)


def has_capability(permissions: Dict[str, List[str]], module_id: str, action: str) -> bool:
    """Capability predicate over a resolved ``{module: [actions]}`` map."""
    return action in permissions.get(module_id, ())


def require_role(principal: Optional[Principal], allowed: Iterable[str]) -> Principal:
    """Raise unless a principal is present and its role is in ``allowed``."""
    if principal is None:
        raise AuthenticationError("Not authenticated")
    allowed = list(allowed)
    if not has_role(principal, allowed):
        raise AuthorizationError(
            f"Role '{principal.role}' is not allowed. Requires one of: {', '.join(allowed)}."
        )
    return principal


def require_capability(
    db: Session, principal: Optional[Principal], module_id: str, action: str
) -> Principal:
    """Raise unless the principal's role is granted ``module_id:action``."""
    if principal is None:
        raise AuthenticationError("Not authenticated")
    try:
        permissions = permission_service.get_permissions(db, principal.role)
    except ResourceNotFoundError:
        permissions = {}
    if not has_capability(permissions, module_id, action):
        raise AuthorizationError(f"Missing permission {module_id}:{action}")
    return principal


class RequireRole:
    """Dependency that checks the caller's role against an allow-list."""

    def __init__(self, *roles: str):
        self.roles = list(roles)

    async def __call__(self, principal: Principal = Depends(get_principal)) -> Principal:
        return require_role(principal, self.roles)


class RequirePermission:
    """Dependency that checks the caller holds a (module, action) grant."""

    def __init__(self, module_id: str, action: str):
        self.module_id = module_id
        self.action = action

    async def __call__(
        self,
        principal: Principal = Depends(get_principal),
        db: Session = Depends(get_db),
    ) -> Principal:
        return require_capability(db, principal, self.module_id, self.action)


# Convenience dependencies
require_admin = RequireRole(*settings.ADMIN_ROLES)
require_matrix_admin = RequireRole(*settings.MATRIX_ADMIN_ROLES)
require_approvals_view = RequirePermission("approvals", "view")
