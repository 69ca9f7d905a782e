# adminhub/api/v1/endpoints/creators.py

import uuid
import logging
from typing import List, Optional
from fastapi import APIRouter, HTTPException, status, Query, Depends

from adminhub.models.creator import (
    Creator, CreatorSignup, CreatorAdminCreate, CreatorUpdate,
    CreatorSignupResponse, CreatorActionResponse,
)
from adminhub.models.user import AvailabilityResponse
from adminhub.models.auth import Principal
from adminhub.models.enums import AccountStatus
from adminhub.db import crud
from adminhub.api.deps import require_permission

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/creators",
    tags=["Creators"]
)

CREATORS_RESOURCE = "Creator Management"


async def _creator_field_taken(field: str, value: str, exclude_id: Optional[uuid.UUID] = None) -> bool:
    taken = await crud.creator_exists(field, value, exclude_id)
    if taken is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not check availability.")
    return taken

async def _ensure_unique_creator(
    email: Optional[str],
    username: Optional[str],
    phone_number: Optional[str],
    exclude_id: Optional[uuid.UUID] = None,
    email_message: str = "Creator with this email already exists.",
) -> None:
    """Existence checks run before any write so that a clash never leaves a row behind."""
    checks = (
        ("email", str(email).lower() if email else None, email_message),
        ("username", username.strip() if username else None, "Username is already taken."),
        ("phone_number", phone_number.strip() if phone_number else None, "Phone number is already registered."),
    )
    for field, value, message in checks:
        if not value:
            continue
        if await _creator_field_taken(field, value, exclude_id):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)

async def _insert_creator(creator_in: CreatorSignup, creator_status: str) -> Creator:
    await _ensure_unique_creator(creator_in.email, creator_in.username, creator_in.phone_number)
    try:
        creator_id = await crud.get_next_creator_id()
    except Exception as e:
        logger.error(f"Could not allocate creator ID: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error")

    created = await crud.create_creator(creator_in.to_creator_fields(), creator_id, creator_status)
    if created is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not create the creator record.")
    return created


# === Public endpoints ===

@router.post(
    "/signup",
    response_model=CreatorSignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Creator self-signup",
    description="Registers a creator request with status `pending` and a sequential creator ID."
)
async def signup_creator(creator_in: CreatorSignup):
    created = await _insert_creator(creator_in, AccountStatus.PENDING.value)
    logger.info(f"Creator signup {created.creator_id} ({created.email}) pending approval")
    return CreatorSignupResponse(message="Request sent to Creator Admin.", creator_id=created.creator_id)

@router.get("/check-username", response_model=AvailabilityResponse, summary="Check whether a creator username is free")
async def check_creator_username(username: str = Query(..., min_length=1)):
    return AvailabilityResponse(available=not await _creator_field_taken("username", username.strip()))

@router.get("/check-phone", response_model=AvailabilityResponse, summary="Check whether a creator phone number is free")
async def check_creator_phone(phone_number: str = Query(..., min_length=1)):
    return AvailabilityResponse(available=not await _creator_field_taken("phone_number", phone_number.strip()))


# === Admin endpoints ===

@router.post(
    "/add",
    response_model=Creator,
    status_code=status.HTTP_201_CREATED,
    summary="Add a creator directly (Protected)",
)
async def add_creator(
    creator_in: CreatorAdminCreate,
    principal: Principal = Depends(require_permission(CREATORS_RESOURCE, "Create")),
):
    created = await _insert_creator(creator_in, creator_in.status)
    logger.info(f"Creator {created.creator_id} added by {principal.id}")
    return created

@router.get(
    "/",
    response_model=List[Creator],
    summary="List creators that are not deleted (Protected)",
)
async def read_creators(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    principal: Principal = Depends(require_permission(CREATORS_RESOURCE, "View")),
):
    return await crud.list_creators(skip=skip, limit=limit)

@router.get(
    "/pending",
    response_model=List[Creator],
    summary="List creator signups awaiting approval (Protected)",
)
async def read_pending_creators(principal: Principal = Depends(require_permission(CREATORS_RESOURCE, "View"))):
    return await crud.list_creators(status=AccountStatus.PENDING.value)

@router.get(
    "/{creator_id}",
    response_model=Creator,
    summary="Get a creator by ID (Protected)",
)
async def read_creator(creator_id: uuid.UUID, principal: Principal = Depends(require_permission(CREATORS_RESOURCE, "View"))):
    creator = await crud.get_creator_by_id(creator_id)
    if creator is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Creator not found")
    return creator

@router.put(
    "/{creator_id}",
    response_model=CreatorActionResponse,
    summary="Update a creator (Protected)",
    description="Updates any field except the creator ID. Social handles may be sent as flat fields."
)
async def update_existing_creator(
    creator_id: uuid.UUID,
    creator_in: CreatorUpdate,
    principal: Principal = Depends(require_permission(CREATORS_RESOURCE, "Edit")),
):
    if await crud.get_creator_by_id(creator_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Creator not found")
    await _ensure_unique_creator(
        creator_in.email, creator_in.username, creator_in.phone_number,
        exclude_id=creator_id, email_message="A creator with this email already exists.",
    )
    updated = await crud.update_creator(creator_id, creator_in.to_update_fields())
    if updated is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not update the creator record.")
    return CreatorActionResponse(message="Creator updated", creator=updated)

async def _change_status(creator_id: uuid.UUID, new_status: AccountStatus, message: str) -> CreatorActionResponse:
    creator = await crud.set_creator_status(creator_id, new_status)
    if creator is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Creator not found")
    return CreatorActionResponse(message=message, creator=creator)

@router.post("/{creator_id}/approve", response_model=CreatorActionResponse, summary="Approve a creator (Protected)")
async def approve_creator(creator_id: uuid.UUID, principal: Principal = Depends(require_permission(CREATORS_RESOURCE, "Edit"))):
    return await _change_status(creator_id, AccountStatus.ACTIVE, "Creator approved")

@router.post("/{creator_id}/reject", response_model=CreatorActionResponse, summary="Reject a creator (Protected)")
async def reject_creator(creator_id: uuid.UUID, principal: Principal = Depends(require_permission(CREATORS_RESOURCE, "Edit"))):
    return await _change_status(creator_id, AccountStatus.REJECTED, "Creator rejected")

@router.delete("/{creator_id}", response_model=CreatorActionResponse, summary="Soft delete a creator (Protected)")
async def delete_creator(creator_id: uuid.UUID, principal: Principal = Depends(require_permission(CREATORS_RESOURCE, "Delete"))):
    return await _change_status(creator_id, AccountStatus.DELETED, "Creator soft deleted")
