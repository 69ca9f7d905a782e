# adminhub/models/user.py
from pydantic import BaseModel, EmailStr, Field, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
import uuid

from .enums import AccountStatus

# --- Nested value objects ---

class SocialMedia(BaseModel):
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    youtube: Optional[str] = None
    tiktok: Optional[str] = None
    twitter: Optional[str] = None
    linkedin: Optional[str] = None

class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    zip_code: Optional[str] = None

class CategorySelection(BaseModel):
    main_category_id: str = Field(..., min_length=1)
    sub_category_ids: List[str] = Field(default_factory=list)

class UserPreferences(BaseModel):
    email_notifications: bool = True
    sms_notifications: bool = False
    language: str = "en"
    timezone: str = "UTC"

# Shared base properties
class UserBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr = Field(..., description="Login email, stored lowercased")
    username: Optional[str] = Field(None, min_length=1, max_length=100)
    phone_number: Optional[str] = Field(None, min_length=3, max_length=30)
    user_type: uuid.UUID = Field(..., description="Reference to a UserType record")
    role: Optional[uuid.UUID] = Field(None, description="Reference to a Role record")
    status: AccountStatus = Field(default=AccountStatus.ACTIVE)

    # Organisation fields
    organization: Optional[str] = None
    department: Optional[str] = None
    grade: Optional[str] = None
    class_name: Optional[str] = None

    # Creator fields
    bio: Optional[str] = Field(None, max_length=2000)
    social_media: SocialMedia = Field(default_factory=SocialMedia)

    # Brand fields
    company_name: Optional[str] = None
    industry: Optional[str] = None
    website: Optional[str] = None

    assigned_clients: List[uuid.UUID] = Field(default_factory=list)
    assigned_screens: List[str] = Field(default_factory=list)
    profile_image: Optional[str] = None
    address: Optional[Address] = None
    is_email_verified: bool = False
    is_phone_verified: bool = False
    categories: List[CategorySelection] = Field(default_factory=list)
    preferences: UserPreferences = Field(default_factory=UserPreferences)

    model_config = ConfigDict(
        use_enum_values=True,
        from_attributes=True,
        populate_by_name=True,
    )

# Properties required on creation
class UserCreate(UserBase):
    password: str = Field(..., min_length=6, description="Plain password, hashed before storage")
    status: AccountStatus = Field(default=AccountStatus.ACTIVE)

    model_config = ConfigDict(
        use_enum_values=True,
        json_schema_extra={
            "example": {
                "name": "Priya Sharma",
                "email": "priya@example.com",
                "password": "s3cret!pass",
                "user_type": "4f1c3c8e-0b7a-4a0e-9d3f-5f6e2a1b9c77",
                "phone_number": "+919800000000",
            }
        }
    )

# Properties stored in DB
class UserInDBBase(UserBase):
    id: uuid.UUID = Field(..., alias="_id")
    user_id: Optional[str] = Field(None, description="Readable ID, e.g. CR123456ABC")
    creator_id: Optional[str] = Field(None, description="Sequential creator ID, e.g. CA00001")
    last_login: Optional[datetime] = None
    password_reset_required: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
    )

# Full record including the password hash, never returned by the API
class UserInDB(UserInDBBase):
    password_hash: str

# Final model representing a User read from DB (API Response)
class User(UserInDBBase):
    pass

# Model for updating
class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    username: Optional[str] = Field(None, min_length=1, max_length=100)
    phone_number: Optional[str] = Field(None, min_length=3, max_length=30)
    user_type: Optional[uuid.UUID] = None
    role: Optional[uuid.UUID] = None
    status: Optional[AccountStatus] = None
    organization: Optional[str] = None
    department: Optional[str] = None
    grade: Optional[str] = None
    class_name: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=2000)
    social_media: Optional[SocialMedia] = None
    company_name: Optional[str] = None
    industry: Optional[str] = None
    website: Optional[str] = None
    assigned_clients: Optional[List[uuid.UUID]] = None
    assigned_screens: Optional[List[str]] = None
    profile_image: Optional[str] = None
    address: Optional[Address] = None
    preferences: Optional[UserPreferences] = None

    model_config = ConfigDict(
        use_enum_values=True,
    )

class UserCategoriesUpdate(BaseModel):
    categories: List[CategorySelection]

class UserTypeStats(BaseModel):
    user_type: Optional[str] = None
    count: int = 0
    active: int = 0
    inactive: int = 0

class PasswordResetResponse(BaseModel):
    message: str
    temporary_password: str

class AvailabilityResponse(BaseModel):
    available: bool

class UserProfile(User):
    """Authenticated user's own profile with the screens their role may open."""
    role_name: Optional[str] = None
    user_type_name: Optional[str] = None
    permissions: List[Dict[str, Any]] = Field(default_factory=list)
