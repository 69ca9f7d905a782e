# adminhub/models/creator.py
from pydantic import BaseModel, EmailStr, Field, ConfigDict
from typing import Optional, Dict, Any
from datetime import datetime, timezone
import uuid

from .enums import AccountStatus


class CreatorSocialMedia(BaseModel):
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    youtube: Optional[str] = None

# Shared base properties
class CreatorBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    username: str = Field(..., min_length=1, max_length=100)
    phone_number: str = Field(..., min_length=3, max_length=30)
    bio: Optional[str] = Field(None, max_length=2000)
    social_media: CreatorSocialMedia = Field(default_factory=CreatorSocialMedia)

    model_config = ConfigDict(
        use_enum_values=True,
        from_attributes=True,
        populate_by_name=True,
    )

class CreatorSignup(BaseModel):
    """Public signup form. Social handles arrive as flat fields."""
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    username: str = Field(..., min_length=1, max_length=100)
    phone_number: str = Field(..., min_length=3, max_length=30)
    bio: Optional[str] = Field(None, max_length=2000)
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    youtube: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Asha Rao",
                "email": "asha@example.com",
                "username": "asharao",
                "phone_number": "+919811111111",
                "instagram": "@asharao",
            }
        }
    )

    def to_creator_fields(self) -> Dict[str, Any]:
        """Maps the flat form onto the stored creator shape."""
        return {
            "name": self.name.strip(),
            "email": str(self.email).lower(),
            "username": self.username.strip(),
            "phone_number": self.phone_number.strip(),
            "bio": self.bio,
            "social_media": CreatorSocialMedia(
                instagram=self.instagram,
                facebook=self.facebook,
                youtube=self.youtube,
            ).model_dump(),
        }

class CreatorAdminCreate(CreatorSignup):
    """Creator added directly by an admin."""
    status: AccountStatus = Field(default=AccountStatus.ACTIVE)

    model_config = ConfigDict(use_enum_values=True)

# Properties stored in DB
class CreatorInDBBase(CreatorBase):
    id: uuid.UUID = Field(..., alias="_id")
    creator_id: Optional[str] = Field(None, description="Sequential creator ID, e.g. CA00001")
    status: AccountStatus = Field(default=AccountStatus.PENDING)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
    )

# Final model representing a Creator read from DB (API Response)
class Creator(CreatorInDBBase):
    pass

# Model for updating. creator_id is assigned once and never updated.
class CreatorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    username: Optional[str] = Field(None, min_length=1, max_length=100)
    phone_number: Optional[str] = Field(None, min_length=3, max_length=30)
    bio: Optional[str] = Field(None, max_length=2000)
    status: Optional[AccountStatus] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    youtube: Optional[str] = None

    model_config = ConfigDict(
        use_enum_values=True,
    )

    def to_update_fields(self) -> Dict[str, Any]:
        """Only the fields the caller sent; social handles become dotted paths."""
        data = self.model_dump(exclude_unset=True)
        update: Dict[str, Any] = {}
        for field in ("name", "username", "phone_number", "bio", "status"):
            if field in data:
                update[field] = data[field]
        if "email" in data and data["email"] is not None:
            update["email"] = str(data["email"]).lower()
        for network in ("instagram", "facebook", "youtube"):
            if network in data:
                update[f"social_media.{network}"] = data[network]
        return update

class CreatorSignupResponse(BaseModel):
    message: str
    creator_id: str

class CreatorActionResponse(BaseModel):
    message: str
    creator: Creator
