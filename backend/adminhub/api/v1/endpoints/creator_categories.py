# adminhub/api/v1/endpoints/creator_categories.py

from typing import List
from fastapi import APIRouter, Depends

from adminhub.models.category import CreatorCategory
from adminhub.models.auth import Principal
from adminhub.db import crud
from adminhub.api.deps import get_current_principal

router = APIRouter(
    prefix="/creator-categories",
    tags=["Creator Categories"]
)

@router.get(
    "/",
    response_model=List[CreatorCategory],
    summary="List creator categories (Protected)",
)
async def read_creator_categories(principal: Principal = Depends(get_current_principal)):
    return await crud.list_creator_categories()
