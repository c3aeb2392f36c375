"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Union
from datetime import datetime
from decimal import Decimal


# ---- Auth ----
class PrincipalOut(BaseModel):
    id: int
    role: str
    permissions: Dict[str, List[str]] = {}


# ---- Roles ----
class RoleCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: bool = True
    modules: Optional[Dict[str, List[str]]] = None

class RoleUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None

class RoleOut(BaseModel):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Permissions ----
class PermissionPair(BaseModel):
    module_id: str = Field(..., min_length=1)
    action: str = Field(..., min_length=1)

class PermissionsReplace(BaseModel):
    permissions: Union[Dict[str, List[str]], List[PermissionPair]]


# ---- Approval matrix ----
class ApprovalLevelIn(BaseModel):
    level: int = Field(..., ge=1)
    role: str = Field(..., min_length=1)
    user_id: Optional[int] = None
    required: bool = True
    can_delegate: bool = False

class ApprovalLevelOut(ApprovalLevelIn):
    id: int

    class Config:
        from_attributes = True

class ApprovalRuleCreate(BaseModel):
    transaction_type: str = Field(..., min_length=1)
    department: Optional[str] = None
    min_amount: Decimal = Decimal(0)
    max_amount: Optional[Decimal] = None
    is_active: bool = True
    levels: List[ApprovalLevelIn]

class ApprovalRuleUpdate(BaseModel):
    transaction_type: Optional[str] = None
    department: Optional[str] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    is_active: Optional[bool] = None
    levels: Optional[List[ApprovalLevelIn]] = None

class ApprovalRuleOut(BaseModel):
    id: int
    transaction_type: str
    department: Optional[str] = None
    min_amount: Decimal
    max_amount: Optional[Decimal] = None
    is_active: bool
    levels: List[ApprovalLevelOut] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ResolvedRouteOut(BaseModel):
    configured: bool
    rule_id: Optional[int] = None
    levels: List[ApprovalLevelOut] = []


# ---- Documents ----
class DocumentCreate(BaseModel):
    transaction_type: str = Field(..., min_length=1)
    reference_no: str = Field(..., min_length=1)
    department: Optional[str] = None
    amount: Decimal = Field(..., ge=0)

class DocumentOut(BaseModel):
    id: int
    transaction_type: str
    reference_no: str
    department: Optional[str] = None
    amount: Decimal
    status: str
    approved_by: Optional[str] = None
    created_by: int
    approval_rule_id: Optional[int] = None
    current_level: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ApproveRequest(BaseModel):
    comments: Optional[str] = None
    override: bool = False

class RejectRequest(BaseModel):
    comments: Optional[str] = None
    override: bool = False

class TransitionOut(BaseModel):
    message: str
    document_id: int
    status: str
    previous_status: str
    was_override: bool = False
    current_level: Optional[int] = None
    approval_rule_id: Optional[int] = None
    action: Optional[str] = None


# ---- Approval history ----
class ApprovalHistoryOut(BaseModel):
    id: int
    transaction_type: str
    transaction_id: int
    reference_no: str
    action: str
    action_by: int
    action_by_name: str
    action_date: datetime
    comments: Optional[str] = None
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    approval_rule_id: Optional[int] = None
    approval_level: Optional[int] = None

    class Config:
        from_attributes = True


# ---- Audit ----
class AuditLogOut(BaseModel):
    id: int
    actor_id: Optional[int] = None
    actor_role: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    old_value_json: Optional[str] = None
    new_value_json: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Generic ----
class MessageResponse(BaseModel):
    message: str
    detail: Optional[Any] = None
