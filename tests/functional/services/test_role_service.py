# tests/functional/services/test_role_service.py
import uuid
import pytest
from contextlib import asynccontextmanager
from typing import Dict, List, Optional
from unittest.mock import AsyncMock
from pytest_mock import MockerFixture

from adminhub.models.role import Role, RoleCreate, RoleUpdate
from adminhub.services import role_service
from adminhub.services.role_service import (
    diff_role_members, RoleConflictError, RoleNotFoundError, RoleSyncError,
)

CRUD = "adminhub.services.role_service.crud"


@asynccontextmanager
async def no_transaction():
    yield None


class FakeRoleStore:
    """In-memory stand-in for the users' `role` field and the roles' `assigned_users`."""

    def __init__(self, user_ids: List[uuid.UUID]):
        self.user_roles: Dict[uuid.UUID, Optional[uuid.UUID]] = {uid: None for uid in user_ids}
        self.roles: Dict[uuid.UUID, Role] = {}

    async def create_role(self, role_in: RoleCreate, session=None) -> Role:
        role = Role(_id=uuid.uuid4(), **role_in.model_dump())
        self.roles[role.id] = role
        return role

    async def get_role_by_id(self, role_id, include_inactive=False, session=None):
        return self.roles.get(role_id)

    async def update_role(self, role_id, update_data, session=None):
        role = self.roles[role_id].model_copy(update=update_data)
        self.roles[role_id] = role
        return role

    async def soft_delete_role(self, role_id, session=None):
        before = self.roles[role_id]
        self.roles[role_id] = before.model_copy(update={"is_active": False, "assigned_users": []})
        return before

    async def set_role_for_users(self, user_ids, role_id, session=None):
        for uid in user_ids:
            self.user_roles[uid] = role_id
        return len(user_ids)

    async def unset_role_for_users(self, user_ids, role_id, session=None):
        changed = 0
        for uid in user_ids:
            if self.user_roles.get(uid) == role_id:
                self.user_roles[uid] = None
                changed += 1
        return changed

    async def pull_users_from_other_roles(self, user_ids, role_id, session=None):
        for other_id, role in self.roles.items():
            if other_id != role_id:
                remaining = [uid for uid in role.assigned_users if uid not in user_ids]
                self.roles[other_id] = role.model_copy(update={"assigned_users": remaining})
        return len(user_ids)


@pytest.fixture
def users() -> List[uuid.UUID]:
    return [uuid.uuid4(), uuid.uuid4(), uuid.uuid4()]

@pytest.fixture
def store(mocker: MockerFixture, users) -> FakeRoleStore:
    fake = FakeRoleStore(users)
    mocker.patch(f"{CRUD}.transaction", new=no_transaction)
    mocker.patch(f"{CRUD}.get_role_by_name", new_callable=AsyncMock, return_value=None)
    for name in (
        "create_role", "get_role_by_id", "update_role", "soft_delete_role",
        "set_role_for_users", "unset_role_for_users", "pull_users_from_other_roles",
    ):
        mocker.patch(f"{CRUD}.{name}", new=getattr(fake, name))
    return fake


# --- Membership diff ---

def test_diff_role_members_compares_as_strings():
    u1, u2, u3 = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    added, removed = diff_role_members([u2, u3], [str(u1), str(u2)])
    assert added == [u3]
    assert removed == [str(u1)]

def test_diff_role_members_handles_empty_lists():
    assert diff_role_members([], []) == ([], [])
    assert diff_role_members(None, None) == ([], [])


# --- Create / update / delete sync ---

async def test_create_then_update_syncs_user_roles(store: FakeRoleStore, users):
    u1, u2, u3 = users

    role = await role_service.create_role(
        RoleCreate(name="Account Managers", description="Manage creator accounts", assigned_users=[u1, u2])
    )
    assert store.user_roles[u1] == role.id
    assert store.user_roles[u2] == role.id
    assert store.user_roles[u3] is None

    updated = await role_service.update_role(role.id, RoleUpdate(assigned_users=[u2]))
    assert updated.assigned_users == [u2]
    assert store.user_roles[u1] is None
    assert store.user_roles[u2] == role.id

async def test_update_without_membership_change_leaves_users_alone(store: FakeRoleStore, users, mocker: MockerFixture):
    u1, _, _ = users
    role = await role_service.create_role(
        RoleCreate(name="Support", description="Support staff", assigned_users=[u1])
    )
    unset_mock = mocker.patch(f"{CRUD}.unset_role_for_users", new_callable=AsyncMock)

    updated = await role_service.update_role(role.id, RoleUpdate(description="Support team"))

    assert updated.description == "Support team"
    assert store.user_roles[u1] == role.id
    unset_mock.assert_not_awaited()

async def test_assigning_to_new_role_detaches_from_old_role(store: FakeRoleStore, users):
    u1, _, _ = users
    first = await role_service.create_role(RoleCreate(name="First Role", description="first", assigned_users=[u1]))
    second = await role_service.create_role(RoleCreate(name="Second Role", description="second", assigned_users=[u1]))

    assert store.user_roles[u1] == second.id
    assert store.roles[first.id].assigned_users == []

async def test_delete_role_unsets_all_members(store: FakeRoleStore, users):
    u1, u2, _ = users
    role = await role_service.create_role(RoleCreate(name="Temporary", description="temp", assigned_users=[u1, u2]))

    await role_service.delete_role(role.id)

    assert store.user_roles[u1] is None
    assert store.user_roles[u2] is None
    assert store.roles[role.id].is_active is False

async def test_create_role_name_conflict(store: FakeRoleStore, mocker: MockerFixture):
    existing = Role(_id=uuid.uuid4(), name="Support", description="Support staff")
    mocker.patch(f"{CRUD}.get_role_by_name", new_callable=AsyncMock, return_value=existing)

    with pytest.raises(RoleConflictError, match="Role with this name already exists"):
        await role_service.create_role(RoleCreate(name="Support", description="again"))

async def test_update_missing_role(store: FakeRoleStore):
    with pytest.raises(RoleNotFoundError):
        await role_service.update_role(uuid.uuid4(), RoleUpdate(description="x"))

async def test_sync_failure_raises(store: FakeRoleStore, users, mocker: MockerFixture):
    mocker.patch(f"{CRUD}.set_role_for_users", new_callable=AsyncMock, return_value=None)

    with pytest.raises(RoleSyncError):
        await role_service.sync_user_roles(uuid.uuid4(), [users[0]], [])

async def test_explicit_nulls_do_not_overwrite_role_fields(store: FakeRoleStore, users):
    u1, _, _ = users
    role = await role_service.create_role(
        RoleCreate(name="Reviewers", description="KYC reviewers", assigned_users=[u1])
    )
    role_in = RoleUpdate.model_validate({"assigned_users": None, "permissions": None, "name": None, "description": "Document reviewers"})

    updated = await role_service.update_role(role.id, role_in)

    assert updated.assigned_users == [u1]
    assert updated.name == "Reviewers"
    assert updated.permissions == []
    assert updated.description == "Document reviewers"
    assert store.user_roles[u1] == role.id
