# adminhub/api/v1/endpoints/roles.py

import uuid
import logging
from typing import List, Dict
from fastapi import APIRouter, HTTPException, status, Depends

from adminhub.models.role import Role, RoleCreate, RoleUpdate, RolePermissionAdd, RolePermissionRemove
from adminhub.models.auth import Principal
from adminhub.core.permissions import ROLE_USER_TYPES
from adminhub.services import role_service
from adminhub.services.role_service import RoleNotFoundError, RoleConflictError
from adminhub.api.deps import require_permission

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/roles",
    tags=["Roles"]
)

ROLES_RESOURCE = "Role Management"


def _server_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"Unexpected error while trying to {action}: {e}", exc_info=True)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Could not {action}.")

@router.get(
    "/user-types",
    response_model=List[str],
    summary="User type names a role can target (Protected)",
)
async def read_role_user_types(principal: Principal = Depends(require_permission(ROLES_RESOURCE, "View"))):
    return ROLE_USER_TYPES

@router.post(
    "/",
    response_model=Role,
    status_code=status.HTTP_201_CREATED,
    summary="Create a role (Protected)",
    description="Users listed in `assigned_users` get this role in the same transaction."
)
async def create_new_role(role_in: RoleCreate, principal: Principal = Depends(require_permission(ROLES_RESOURCE, "Create"))):
    logger.info(f"User {principal.id} creating role '{role_in.name}'")
    try:
        return await role_service.create_role(role_in)
    except RoleConflictError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        raise _server_error("create the role", e)

@router.get(
    "/",
    response_model=List[Role],
    summary="List active roles (Protected)",
)
async def read_roles(principal: Principal = Depends(require_permission(ROLES_RESOURCE, "View"))):
    return await role_service.list_roles()

@router.get(
    "/{role_id}",
    response_model=Role,
    summary="Get a role by ID (Protected)",
)
async def read_role(role_id: uuid.UUID, principal: Principal = Depends(require_permission(ROLES_RESOURCE, "View"))):
    try:
        return await role_service.get_role(role_id)
    except RoleNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

@router.put(
    "/{role_id}",
    response_model=Role,
    summary="Update a role (Protected)",
    description="Changing `assigned_users` sets the role on new members and clears it on removed ones."
)
async def update_existing_role(
    role_id: uuid.UUID,
    role_in: RoleUpdate,
    principal: Principal = Depends(require_permission(ROLES_RESOURCE, "Edit")),
):
    try:
        return await role_service.update_role(role_id, role_in)
    except RoleNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except RoleConflictError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        raise _server_error("update the role", e)

@router.delete(
    "/{role_id}",
    status_code=status.HTTP_200_OK,
    summary="Deactivate a role (Protected)",
    description="Soft delete. Every assigned user loses the role reference."
)
async def delete_existing_role(role_id: uuid.UUID, principal: Principal = Depends(require_permission(ROLES_RESOURCE, "Delete"))) -> Dict[str, str]:
    try:
        await role_service.delete_role(role_id)
    except RoleNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        raise _server_error("delete the role", e)
    return {"message": "Role deleted successfully"}

@router.post(
    "/{role_id}/permissions",
    response_model=Role,
    summary="Grant actions on a resource to a role (Protected)",
)
async def add_role_permission(
    role_id: uuid.UUID,
    permission_in: RolePermissionAdd,
    principal: Principal = Depends(require_permission(ROLES_RESOURCE, "Edit")),
):
    try:
        return await role_service.add_permission(role_id, permission_in)
    except RoleNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

@router.delete(
    "/{role_id}/permissions",
    response_model=Role,
    summary="Remove every grant for a resource from a role (Protected)",
)
async def remove_role_permission(
    role_id: uuid.UUID,
    permission_in: RolePermissionRemove,
    principal: Principal = Depends(require_permission(ROLES_RESOURCE, "Edit")),
):
    try:
        return await role_service.remove_permission(role_id, permission_in.resource)
    except RoleNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
