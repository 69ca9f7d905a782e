# adminhub/models/category.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime


class Subcategory(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    name: Optional[str] = None
    description: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

# Read-only catalogue maintained outside this service
class CreatorCategory(BaseModel):
    id: str = Field(..., alias="_id")
    name: Optional[str] = None
    description: Optional[str] = None
    subcategories: List[Subcategory] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )
