# adminhub/models/brand.py
import re
from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator
from typing import Optional
from datetime import datetime, timezone
import uuid

from .enums import Industry, CompanySize, BrandVerificationStatus

# At least 8 characters with a letter, a digit and a special character
PASSWORD_PATTERN = re.compile(r"^(?=.*[A-Za-z])(?=.*\d)(?=.*[^A-Za-z\d]).{8,}$")

# Shared base properties
class BrandBase(BaseModel):
    company_name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    website: Optional[str] = None
    industry: Industry
    company_size: CompanySize
    description: Optional[str] = Field(None, max_length=1000)
    logo: Optional[str] = None

    model_config = ConfigDict(
        use_enum_values=True,
        from_attributes=True,
        populate_by_name=True,
    )

    @field_validator("company_name")
    @classmethod
    def company_name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Company name is required")
        return value

# Properties required on registration
class BrandCreate(BrandBase):
    password: str = Field(..., min_length=8)

    model_config = ConfigDict(
        use_enum_values=True,
        json_schema_extra={
            "example": {
                "company_name": "Acme Apparel",
                "email": "hello@acme.example",
                "password": "Acme#2024",
                "industry": "Fashion",
                "company_size": "11-50",
            }
        }
    )

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        if not PASSWORD_PATTERN.match(value):
            raise ValueError("Password must be at least 8 characters and contain a letter, a number and a special character")
        return value

# Properties stored in DB
class BrandInDBBase(BrandBase):
    id: uuid.UUID = Field(..., alias="_id")
    verification_status: BrandVerificationStatus = Field(default=BrandVerificationStatus.PENDING)
    role: str = "brand"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

class BrandInDB(BrandInDBBase):
    password_hash: str

# Final model returned by the API, never carries the password hash
class Brand(BrandInDBBase):
    pass

class BrandRegistrationResponse(BaseModel):
    message: str
    brand: Brand
