# adminhub/services/role_service.py
"""
Role management with the two-way User.role <-> Role.assigned_users sync.

Every role write that changes membership runs the role update and the user
bulk updates inside `crud.transaction()`. A failed step raises, which aborts the
transaction when the deployment supports one.
"""

import logging
import uuid
from typing import List, Optional, Tuple, Iterable

from ..db import crud
from ..models.role import Role, RoleCreate, RoleUpdate, RolePermissionAdd, PermissionGrant

logger = logging.getLogger(__name__)


# --- Exceptions ---
class RoleError(Exception):
    """Base class for role management failures."""
    pass

class RoleNotFoundError(RoleError):
    pass

class RoleConflictError(RoleError):
    """Another role already uses the requested name."""
    pass

class RoleSyncError(RoleError):
    """A user bulk update failed while syncing role membership."""
    pass


def diff_role_members(
    new_assigned: Iterable[uuid.UUID],
    previous_assigned: Iterable[uuid.UUID],
) -> Tuple[List[uuid.UUID], List[uuid.UUID]]:
    """Returns (added, removed). IDs are compared as strings; order of the input is kept."""
    new_ids = list(new_assigned or [])
    previous_ids = list(previous_assigned or [])
    new_keys = {str(uid) for uid in new_ids}
    previous_keys = {str(uid) for uid in previous_ids}
    added = [uid for uid in new_ids if str(uid) not in previous_keys]
    removed = [uid for uid in previous_ids if str(uid) not in new_keys]
    return added, removed

async def sync_user_roles(
    role_id: uuid.UUID,
    new_assigned: Iterable[uuid.UUID],
    previous_assigned: Iterable[uuid.UUID],
    session=None,
) -> Tuple[List[uuid.UUID], List[uuid.UUID]]:
    """Points newly assigned users at the role and clears it on removed users."""
    added, removed = diff_role_members(new_assigned, previous_assigned)

    if added:
        if await crud.set_role_for_users(added, role_id, session=session) is None:
            raise RoleSyncError(f"Failed to assign role {role_id} to users")
        if await crud.pull_users_from_other_roles(added, role_id, session=session) is None:
            raise RoleSyncError("Failed to detach users from their previous roles")
    if removed:
        if await crud.unset_role_for_users(removed, role_id, session=session) is None:
            raise RoleSyncError(f"Failed to remove role {role_id} from users")

    if added or removed:
        logger.info(f"Role {role_id} membership synced: {len(added)} added, {len(removed)} removed")
    return added, removed


async def assign_user_role(user_id: uuid.UUID, role_id: Optional[uuid.UUID]) -> None:
    """Mirrors a change of User.role onto the roles' member lists."""
    async with crud.transaction() as session:
        if role_id is not None:
            if await crud.add_users_to_role(role_id, [user_id], session=session) is None:
                raise RoleNotFoundError("Role not found")
        if await crud.pull_users_from_other_roles([user_id], role_id, session=session) is None:
            raise RoleSyncError(f"Failed to detach user {user_id} from other roles")


# --- Role CRUD ---

async def list_roles() -> List[Role]:
    return await crud.list_roles()

async def get_role(role_id: uuid.UUID) -> Role:
    role = await crud.get_role_by_id(role_id)
    if role is None:
        raise RoleNotFoundError("Role not found")
    return role

async def create_role(role_in: RoleCreate) -> Role:
    if await crud.get_role_by_name(role_in.name) is not None:
        raise RoleConflictError("Role with this name already exists")

    async with crud.transaction() as session:
        role = await crud.create_role(role_in, session=session)
        if role is None:
            raise RoleError("Failed to create role")
        await sync_user_roles(role.id, role.assigned_users, [], session=session)

    logger.info(f"Role '{role.name}' created ({role.id})")
    return role

async def update_role(role_id: uuid.UUID, role_in: RoleUpdate) -> Role:
    existing = await crud.get_role_by_id(role_id)
    if existing is None:
        raise RoleNotFoundError("Role not found")

    # Explicit nulls would overwrite list fields with None
    update_data = role_in.model_dump(exclude_unset=True, exclude_none=True)
    new_name = update_data.get("name")
    if new_name and new_name != existing.name:
        clash = await crud.get_role_by_name(new_name)
        if clash is not None and clash.id != role_id:
            raise RoleConflictError("Role with this name already exists")

    async with crud.transaction() as session:
        role = await crud.update_role(role_id, update_data, session=session)
        if role is None:
            raise RoleError(f"Failed to update role {role_id}")
        if "assigned_users" in update_data:
            await sync_user_roles(role_id, role.assigned_users, existing.assigned_users, session=session)

    return role

async def delete_role(role_id: uuid.UUID) -> Role:
    """Soft delete; every assigned user loses the role reference."""
    if await crud.get_role_by_id(role_id) is None:
        raise RoleNotFoundError("Role not found")

    async with crud.transaction() as session:
        role = await crud.soft_delete_role(role_id, session=session)
        if role is None:
            raise RoleError(f"Failed to delete role {role_id}")
        await sync_user_roles(role_id, [], role.assigned_users, session=session)

    logger.info(f"Role '{role.name}' deactivated; {len(role.assigned_users)} users unassigned")
    return role

async def add_permission(role_id: uuid.UUID, permission_in: RolePermissionAdd) -> Role:
    grants = [PermissionGrant(resource=permission_in.resource, action=action) for action in permission_in.actions]
    role = await crud.add_role_permissions(role_id, grants)
    if role is None:
        raise RoleNotFoundError("Role not found")
    return role

async def remove_permission(role_id: uuid.UUID, resource: str) -> Role:
    role = await crud.remove_role_permissions(role_id, resource)
    if role is None:
        raise RoleNotFoundError("Role not found")
    return role
