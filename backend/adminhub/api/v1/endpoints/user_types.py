# adminhub/api/v1/endpoints/user_types.py

import uuid
import logging
from typing import List, Dict, Optional
from fastapi import APIRouter, HTTPException, status, Depends

from adminhub.models.user_type import UserType, UserTypeCreate, UserTypeUpdate
from adminhub.models.auth import Principal
from adminhub.db import crud
from adminhub.api.deps import require_permission

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/user-types",
    tags=["User Types"]
)

USER_TYPES_RESOURCE = "User Type"


async def _ensure_name_free(name: str, exclude_id: Optional[uuid.UUID] = None) -> None:
    # Deactivated types still hold their name in the unique index
    clash = await crud.get_user_type_by_name(name, include_inactive=True)
    if clash is None or clash.id == exclude_id:
        return
    detail = "User type with this name already exists"
    if not clash.is_active:
        detail += " (deactivated)"
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

@router.post(
    "/",
    response_model=UserType,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user type (Protected)",
)
async def create_new_user_type(user_type_in: UserTypeCreate, principal: Principal = Depends(require_permission(USER_TYPES_RESOURCE, "Create"))):
    await _ensure_name_free(user_type_in.name)
    created = await crud.create_user_type(user_type_in)
    if created is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not create the user type.")
    logger.info(f"User type '{created.name}' created by {principal.id}")
    return created

@router.get(
    "/",
    response_model=List[UserType],
    summary="List active user types (Protected)",
)
async def read_user_types(principal: Principal = Depends(require_permission(USER_TYPES_RESOURCE, "View"))):
    return await crud.list_user_types()

@router.get(
    "/{user_type_id}",
    response_model=UserType,
    summary="Get a user type by ID (Protected)",
)
async def read_user_type(user_type_id: uuid.UUID, principal: Principal = Depends(require_permission(USER_TYPES_RESOURCE, "View"))):
    user_type = await crud.get_user_type_by_id(user_type_id)
    if user_type is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User type not found")
    return user_type

@router.put(
    "/{user_type_id}",
    response_model=UserType,
    summary="Update a user type (Protected)",
)
async def update_existing_user_type(
    user_type_id: uuid.UUID,
    user_type_in: UserTypeUpdate,
    principal: Principal = Depends(require_permission(USER_TYPES_RESOURCE, "Edit")),
):
    if user_type_in.name:
        await _ensure_name_free(user_type_in.name, exclude_id=user_type_id)
    updated = await crud.update_user_type(user_type_id, user_type_in)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User type not found or update failed")
    return updated

@router.delete(
    "/{user_type_id}",
    status_code=status.HTTP_200_OK,
    summary="Deactivate a user type (Protected)",
)
async def delete_existing_user_type(user_type_id: uuid.UUID, principal: Principal = Depends(require_permission(USER_TYPES_RESOURCE, "Delete"))) -> Dict[str, str]:
    if not await crud.soft_delete_user_type(user_type_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User type not found")
    return {"message": "User type deleted successfully"}
