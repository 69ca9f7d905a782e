# adminhub/api/v1/endpoints/brands.py

import logging
from typing import List
from fastapi import APIRouter, HTTPException, status, Query, Depends

from adminhub.models.brand import Brand, BrandCreate, BrandRegistrationResponse
from adminhub.models.auth import Principal
from adminhub.core.security import get_password_hash
from adminhub.db import crud
from adminhub.api.deps import require_permission

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/brands",
    tags=["Brands"]
)

@router.post(
    "/register",
    response_model=BrandRegistrationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a brand",
    description="Public registration. The password is hashed and never returned."
)
async def register_brand(brand_in: BrandCreate):
    taken = await crud.brand_exists_by_email(str(brand_in.email))
    if taken is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not check availability.")
    if taken:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Brand with this email already exists")

    brand = await crud.create_brand(brand_in, get_password_hash(brand_in.password))
    if brand is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not register the brand.")
    logger.info(f"Brand '{brand.company_name}' registered ({brand.id})")
    return BrandRegistrationResponse(message="Brand registered successfully", brand=brand)

@router.get(
    "/",
    response_model=List[Brand],
    summary="List brands (Protected)",
)
async def read_brands(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    principal: Principal = Depends(require_permission("Brand Management", "View")),
):
    return await crud.list_brands(skip=skip, limit=limit)
