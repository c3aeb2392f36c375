"""Role and permission grant models for RBAC."""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint, func
)
from sqlalchemy.orm import relationship
from approvals.db.base import Base


class Role(Base):
    """System role identified by an immutable ``code``."""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    grants = relationship(
        "RolePermission",
        back_populates="role",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class RolePermission(Base):
    """One granted (module, action) pair; presence means granted."""
    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role_code", "module_id", "action", name="uq_role_module_action"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_code = Column(
        String(50), ForeignKey("roles.code", ondelete="CASCADE"), nullable=False, index=True
    )
    module_id = Column(String(50), nullable=False)
    action = Column(String(50), nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    role = relationship("Role", back_populates="grants")
