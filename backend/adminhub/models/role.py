# adminhub/models/role.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime, timezone
import uuid


class PermissionGrant(BaseModel):
    """A (resource, action) pair carried by a role. Action may be `All`."""
    resource: str = Field(..., min_length=1)
    action: str = Field(..., min_length=1)

# Shared base properties
class RoleBase(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    permissions: List[PermissionGrant] = Field(default_factory=list)
    user_types: List[str] = Field(default_factory=list)
    assigned_users: List[uuid.UUID] = Field(default_factory=list)

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )

# Properties required on creation
class RoleCreate(RoleBase):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "KYC Reviewer",
                "description": "Reviews creator KYC documents",
                "permissions": [{"resource": "KYC", "action": "View"}, {"resource": "KYC", "action": "Edit"}],
                "user_types": ["employee"],
                "assigned_users": [],
            }
        }
    )

# Properties stored in DB
class RoleInDBBase(RoleBase):
    id: uuid.UUID = Field(..., alias="_id")
    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

# Final model representing a Role read from DB
class Role(RoleInDBBase):
    pass

# Model for updating
class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    permissions: Optional[List[PermissionGrant]] = None
    user_types: Optional[List[str]] = None
    assigned_users: Optional[List[uuid.UUID]] = None
    is_active: Optional[bool] = None

class RolePermissionAdd(BaseModel):
    resource: str = Field(..., min_length=1)
    actions: List[str] = Field(..., min_length=1)

class RolePermissionRemove(BaseModel):
    resource: str = Field(..., min_length=1)
