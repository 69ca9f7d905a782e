# adminhub/api/v1/endpoints/users.py

import uuid
import logging
from typing import List, Optional, Dict
from fastapi import APIRouter, HTTPException, status, Query, Depends

from adminhub.models.user import (
    User, UserCreate, UserUpdate, UserCategoriesUpdate, CategorySelection,
    UserTypeStats, PasswordResetResponse, AvailabilityResponse,
)
from adminhub.models.auth import Principal
from adminhub.models.enums import AccountStatus, UserTypeName
from adminhub.db import crud
from adminhub.services import auth_service
from adminhub.services.auth_service import AuthValidationError, AccountNotFoundError, DuplicateAccountError
from adminhub.services.role_service import RoleNotFoundError
from adminhub.api.deps import get_current_principal, require_permission

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["Users"]
)

USERS_RESOURCE = "User List"
CREATORS_RESOURCE = "Creator Management"


def _check_self_or_permission(principal: Principal, user_id: uuid.UUID, action: str) -> None:
    if principal.id != user_id and not principal.has_permission(USERS_RESOURCE, action):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You do not have permission to {action} {USERS_RESOURCE}.",
        )

async def _creator_type_id() -> Optional[uuid.UUID]:
    creator_type = await crud.get_user_type_by_name(UserTypeName.CREATOR.value)
    return creator_type.id if creator_type else None


async def _user_field_taken(field: str, value: str) -> bool:
    taken = await crud.user_exists(field, value)
    if taken is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not check availability.")
    return taken


# === Public availability checks ===

@router.get(
    "/check-username",
    response_model=AvailabilityResponse,
    summary="Check whether a username is free",
)
async def check_username(username: str = Query(..., min_length=1)):
    return AvailabilityResponse(available=not await _user_field_taken("username", username.strip()))

@router.get(
    "/check-phone",
    response_model=AvailabilityResponse,
    summary="Check whether a phone number is free",
)
async def check_phone(phone_number: str = Query(..., min_length=1)):
    return AvailabilityResponse(available=not await _user_field_taken("phone_number", phone_number.strip()))


# === Listing & statistics ===

@router.get(
    "/",
    response_model=List[User],
    status_code=status.HTTP_200_OK,
    summary="List users (Protected)",
    description="Filters by user type and status; `search` matches name, email, creator ID and Instagram handle, case-insensitively."
)
async def read_users(
    user_type: Optional[uuid.UUID] = Query(None, description="Filter by user type ID"),
    status_filter: Optional[AccountStatus] = Query(None, alias="status", description="Filter by account status"),
    search: Optional[str] = Query(None, description="Case-insensitive search text"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    principal: Principal = Depends(require_permission(USERS_RESOURCE, "View")),
):
    logger.info(f"User {principal.id} listing users (type={user_type}, status={status_filter}, search={search!r})")
    status_value = status_filter.value if status_filter else None
    return await crud.list_users(user_type=user_type, status=status_value, search=search, skip=skip, limit=limit)

@router.get(
    "/creators",
    response_model=List[User],
    summary="List creator accounts (Protected)",
)
async def read_creator_users(
    search: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    principal: Principal = Depends(require_permission(CREATORS_RESOURCE, "View")),
):
    creator_type_id = await _creator_type_id()
    if creator_type_id is None:
        return []
    return await crud.list_users(user_type=creator_type_id, search=search, skip=skip, limit=limit)

@router.get(
    "/creators/pending",
    response_model=List[User],
    summary="List creator accounts awaiting approval (Protected)",
)
async def read_pending_creator_users(
    principal: Principal = Depends(require_permission(CREATORS_RESOURCE, "View")),
):
    creator_type_id = await _creator_type_id()
    if creator_type_id is None:
        return []
    return await crud.list_users(user_type=creator_type_id, status=AccountStatus.PENDING.value)

@router.get(
    "/stats",
    response_model=List[UserTypeStats],
    summary="User counts per user type (Protected)",
)
async def read_user_stats(principal: Principal = Depends(require_permission(USERS_RESOURCE, "View"))):
    return await crud.get_user_stats()


# === Single user ===

@router.get(
    "/{user_id}",
    response_model=User,
    summary="Get a user by ID (Protected)",
)
async def read_user(user_id: uuid.UUID, principal: Principal = Depends(require_permission(USERS_RESOURCE, "View"))):
    user = await crud.get_user_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {user_id} not found.")
    return user

@router.post(
    "/",
    response_model=User,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user (Protected)",
    description="Hashes the password, assigns a readable user ID and, for creators, the next creator ID."
)
async def create_new_user(user_in: UserCreate, principal: Principal = Depends(require_permission(USERS_RESOURCE, "Create"))):
    logger.info(f"User {principal.id} creating user {user_in.email}")
    try:
        return await auth_service.create_user(user_in)
    except (DuplicateAccountError, AuthValidationError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except RoleNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Unexpected error creating user: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not create the user record.")

@router.put(
    "/{user_id}",
    response_model=User,
    summary="Update a user (Protected)",
    description="Only the fields present in the request body are changed."
)
async def update_existing_user(
    user_id: uuid.UUID,
    user_in: UserUpdate,
    principal: Principal = Depends(require_permission(USERS_RESOURCE, "Edit")),
):
    try:
        return await auth_service.update_user(user_id, user_in)
    except AccountNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {user_id} not found.")
    except (DuplicateAccountError, AuthValidationError, RoleNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Unexpected error updating user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not update the user record.")

@router.delete(
    "/{user_id}",
    status_code=status.HTTP_200_OK,
    summary="Soft delete a user (Protected)",
)
async def delete_existing_user(user_id: uuid.UUID, principal: Principal = Depends(require_permission(USERS_RESOURCE, "Delete"))) -> Dict[str, str]:
    if not await crud.soft_delete_user(user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {user_id} not found.")
    logger.info(f"User {user_id} soft-deleted by {principal.id}")
    return {"message": "User deleted successfully"}

@router.post(
    "/{user_id}/reset-password",
    response_model=PasswordResetResponse,
    summary="Issue a temporary password (Protected)",
    description="The temporary password is returned once; the user must change it at next login."
)
async def reset_user_password(user_id: uuid.UUID, principal: Principal = Depends(require_permission(USERS_RESOURCE, "Edit"))):
    try:
        return await auth_service.reset_password(user_id)
    except AccountNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {user_id} not found.")

@router.post(
    "/{user_id}/approve",
    response_model=User,
    summary="Approve a pending creator account (Protected)",
)
async def approve_user(user_id: uuid.UUID, principal: Principal = Depends(require_permission(CREATORS_RESOURCE, "Edit"))):
    try:
        return await auth_service.set_user_status(user_id, AccountStatus.ACTIVE)
    except AccountNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {user_id} not found.")

@router.post(
    "/{user_id}/reject",
    response_model=User,
    summary="Reject a pending creator account (Protected)",
)
async def reject_user(user_id: uuid.UUID, principal: Principal = Depends(require_permission(CREATORS_RESOURCE, "Edit"))):
    try:
        return await auth_service.set_user_status(user_id, AccountStatus.REJECTED)
    except AccountNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {user_id} not found.")


# === Creator categories ===

@router.get(
    "/{user_id}/categories",
    response_model=List[CategorySelection],
    summary="Get a creator's selected categories (Protected)",
)
async def read_user_categories(user_id: uuid.UUID, principal: Principal = Depends(get_current_principal)):
    _check_self_or_permission(principal, user_id, "View")
    user = await crud.get_user_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {user_id} not found.")
    return user.categories

@router.post(
    "/{user_id}/categories",
    response_model=List[CategorySelection],
    summary="Replace a creator's selected categories (Protected)",
)
async def update_user_categories(
    user_id: uuid.UUID,
    categories_in: UserCategoriesUpdate,
    principal: Principal = Depends(get_current_principal),
):
    _check_self_or_permission(principal, user_id, "Edit")
    user = await crud.set_user_categories(user_id, categories_in.categories)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {user_id} not found.")
    return user.categories
