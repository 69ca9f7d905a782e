# adminhub/api/v1/endpoints/permissions.py

import logging
from typing import List
from fastapi import APIRouter, Depends

from adminhub.models.permission import Permission
from adminhub.models.auth import Principal
from adminhub.db import crud
from adminhub.api.deps import get_current_principal

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/permissions",
    tags=["Permissions"]
)

@router.get(
    "/",
    response_model=List[Permission],
    summary="List all permissions (Protected)",
    description="Sorted by resource, then action. The catalogue is synchronised at startup."
)
async def read_permissions(principal: Principal = Depends(get_current_principal)):
    return await crud.list_permissions()
