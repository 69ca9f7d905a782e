# adminhub/models/user_type.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime, timezone
import uuid

# Shared base properties
class UserTypeBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    icon: str = "PersonOutline"
    color: str = "primary"

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )

class UserTypeCreate(UserTypeBase):
    pass

# Properties stored in DB
class UserTypeInDBBase(UserTypeBase):
    id: uuid.UUID = Field(..., alias="_id")
    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

class UserType(UserTypeInDBBase):
    pass

class UserTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    icon: Optional[str] = None
    color: Optional[str] = None
    is_active: Optional[bool] = None
