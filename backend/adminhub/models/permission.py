# adminhub/models/permission.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime, timezone
import uuid


class PermissionBase(BaseModel):
    resource: str = Field(..., min_length=1)
    action: str = Field(..., min_length=1)
    name: Optional[str] = Field(None, description="`resource:action` key")
    description: Optional[str] = None

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )

class Permission(PermissionBase):
    id: uuid.UUID = Field(..., alias="_id")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

class PermissionSyncResult(BaseModel):
    added: int = 0
    removed: int = 0
    renamed: int = 0
