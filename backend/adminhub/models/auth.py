# adminhub/models/auth.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
import uuid

from ..core.permissions import ACTION_ALL, SUPERADMIN_ROLE, KYC_VIEW_ANY_RESOURCES
from .role import PermissionGrant


class LoginRequest(BaseModel):
    # Optional so that a missing field is reported as a 400 with a readable message
    email: Optional[str] = None
    password: Optional[str] = None

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"

class ChangePasswordRequest(BaseModel):
    user_id: Optional[uuid.UUID] = None
    old_password: Optional[str] = None
    new_password: Optional[str] = Field(None, min_length=6)

class Principal(BaseModel):
    """The authenticated requester, resolved once per request and handed to services."""
    id: uuid.UUID
    email: Optional[str] = None
    name: Optional[str] = None
    role_id: Optional[uuid.UUID] = None
    role_name: Optional[str] = None
    user_type: Optional[str] = None
    permissions: List[PermissionGrant] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def is_superadmin(self) -> bool:
        return (self.role_name or "").lower() == SUPERADMIN_ROLE

    def has_permission(self, resource: str, action: str) -> bool:
        if self.is_superadmin:
            return True
        return any(
            grant.resource == resource and grant.action in (action, ACTION_ALL)
            for grant in self.permissions
        )

    def can_view_any_kyc(self) -> bool:
        if self.is_superadmin:
            return True
        return any(
            grant.resource in KYC_VIEW_ANY_RESOURCES and grant.action in ("View", ACTION_ALL)
            for grant in self.permissions
        )
