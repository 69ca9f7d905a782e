# tests/functional/api/v1/endpoints/test_users.py
import uuid
import pytest
from typing import Any
from unittest.mock import AsyncMock
from httpx import AsyncClient
from pytest_mock import MockerFixture
from fastapi import status

from adminhub.core.security import verify_password
from adminhub.models.user import User, CategorySelection
from adminhub.models.user_type import UserType

ENDPOINT_CRUD = "adminhub.api.v1.endpoints.users.crud"
SERVICE_CRUD = "adminhub.services.auth_service.crud"


@pytest.fixture
def creator_type() -> UserType:
    return UserType(_id=uuid.uuid4(), name="creator", description="Content creators")

def make_user(user_type: UserType, **overrides: Any) -> User:
    data = {"_id": uuid.uuid4(), "name": "Asha Rao", "email": "asha@example.com", "user_type": user_type.id}
    data.update(overrides)
    return User(**data)


async def test_create_creator_user_gets_creator_id(
    client: AsyncClient, api_prefix: str, superadmin, creator_type, mocker: MockerFixture
):
    mocker.patch(f"{SERVICE_CRUD}.user_exists", new_callable=AsyncMock, return_value=False)
    mocker.patch(f"{SERVICE_CRUD}.get_user_type_by_id", new_callable=AsyncMock, return_value=creator_type)
    mocker.patch(f"{SERVICE_CRUD}.get_next_creator_id", new_callable=AsyncMock, return_value="CA00012")
    created = make_user(creator_type, user_id="CR123456ABC", creator_id="CA00012")
    create_mock = mocker.patch(f"{SERVICE_CRUD}.create_user", new_callable=AsyncMock, return_value=created)

    response = await client.post(
        f"{api_prefix}/users/",
        json={"name": "Asha Rao", "email": "asha@example.com", "password": "secret1", "user_type": str(creator_type.id)},
    )

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["creator_id"] == "CA00012"
    user_in, password_hash, user_id, creator_id = create_mock.await_args.args
    assert verify_password("secret1", password_hash)
    assert user_id.startswith("CR")
    assert creator_id == "CA00012"

async def test_create_user_duplicate_email(client: AsyncClient, api_prefix: str, superadmin, creator_type, mocker: MockerFixture):
    mocker.patch(f"{SERVICE_CRUD}.user_exists", new_callable=AsyncMock, return_value=True)
    create_mock = mocker.patch(f"{SERVICE_CRUD}.create_user", new_callable=AsyncMock)

    response = await client.post(
        f"{api_prefix}/users/",
        json={"name": "Asha Rao", "email": "asha@example.com", "password": "secret1", "user_type": str(creator_type.id)},
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "User with this email already exists."
    create_mock.assert_not_awaited()

async def test_create_user_short_password(client: AsyncClient, api_prefix: str, superadmin, creator_type):
    response = await client.post(
        f"{api_prefix}/users/",
        json={"name": "Asha Rao", "email": "asha@example.com", "password": "12345", "user_type": str(creator_type.id)},
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

async def test_list_users_passes_filters(client: AsyncClient, api_prefix: str, superadmin, creator_type, mocker: MockerFixture):
    list_mock = mocker.patch(f"{ENDPOINT_CRUD}.list_users", new_callable=AsyncMock, return_value=[make_user(creator_type)])

    response = await client.get(f"{api_prefix}/users/", params={"status": "pending", "search": "asha", "user_type": str(creator_type.id)})

    assert response.status_code == status.HTTP_200_OK
    assert len(response.json()) == 1
    kwargs = list_mock.await_args.kwargs
    assert kwargs["status"] == "pending"
    assert kwargs["search"] == "asha"
    assert kwargs["user_type"] == creator_type.id

async def test_list_users_requires_permission(client: AsyncClient, api_prefix: str, plain_user):
    response = await client.get(f"{api_prefix}/users/")
    assert response.status_code == status.HTTP_403_FORBIDDEN

async def test_reset_password_returns_temporary_password_once(client: AsyncClient, api_prefix: str, superadmin, mocker: MockerFixture):
    set_mock = mocker.patch(f"{SERVICE_CRUD}.set_user_password", new_callable=AsyncMock, return_value=True)
    user_id = uuid.uuid4()

    response = await client.post(f"{api_prefix}/users/{user_id}/reset-password")

    assert response.status_code == status.HTTP_200_OK
    temporary_password = response.json()["temporary_password"]
    stored_user_id, stored_hash = set_mock.await_args.args
    assert stored_user_id == user_id
    assert stored_hash != temporary_password
    assert verify_password(temporary_password, stored_hash)
    assert set_mock.await_args.kwargs["reset_required"] is True

async def test_delete_missing_user(client: AsyncClient, api_prefix: str, superadmin, mocker: MockerFixture):
    mocker.patch(f"{ENDPOINT_CRUD}.soft_delete_user", new_callable=AsyncMock, return_value=False)
    response = await client.delete(f"{api_prefix}/users/{uuid.uuid4()}")
    assert response.status_code == status.HTTP_404_NOT_FOUND

async def test_user_can_update_own_categories(client: AsyncClient, api_prefix: str, plain_user, creator_type, mocker: MockerFixture):
    categories = [CategorySelection(main_category_id="fashion", sub_category_ids=["streetwear"])]
    updated = make_user(creator_type, _id=plain_user.id, categories=categories)
    set_mock = mocker.patch(f"{ENDPOINT_CRUD}.set_user_categories", new_callable=AsyncMock, return_value=updated)

    response = await client.post(
        f"{api_prefix}/users/{plain_user.id}/categories",
        json={"categories": [{"main_category_id": "fashion", "sub_category_ids": ["streetwear"]}]},
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == [{"main_category_id": "fashion", "sub_category_ids": ["streetwear"]}]
    set_mock.assert_awaited_once()

async def test_user_cannot_update_someone_elses_categories(client: AsyncClient, api_prefix: str, plain_user, mocker: MockerFixture):
    set_mock = mocker.patch(f"{ENDPOINT_CRUD}.set_user_categories", new_callable=AsyncMock)

    response = await client.post(
        f"{api_prefix}/users/{uuid.uuid4()}/categories",
        json={"categories": []},
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN
    set_mock.assert_not_awaited()

async def test_check_username_is_public(client: AsyncClient, api_prefix: str, mocker: MockerFixture):
    mocker.patch(f"{ENDPOINT_CRUD}.user_exists", new_callable=AsyncMock, return_value=False)
    response = await client.get(f"{api_prefix}/users/check-username", params={"username": "asharao"})
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"available": True}

async def test_create_user_with_unknown_role_writes_nothing(
    client: AsyncClient, api_prefix: str, superadmin, creator_type, mocker: MockerFixture
):
    mocker.patch(f"{SERVICE_CRUD}.user_exists", new_callable=AsyncMock, return_value=False)
    mocker.patch(f"{SERVICE_CRUD}.get_user_type_by_id", new_callable=AsyncMock, return_value=creator_type)
    mocker.patch(f"{SERVICE_CRUD}.get_role_by_id", new_callable=AsyncMock, return_value=None)
    next_id_mock = mocker.patch(f"{SERVICE_CRUD}.get_next_creator_id", new_callable=AsyncMock)
    create_mock = mocker.patch(f"{SERVICE_CRUD}.create_user", new_callable=AsyncMock)

    response = await client.post(
        f"{api_prefix}/users/",
        json={
            "name": "Asha Rao", "email": "asha@example.com", "password": "secret1",
            "user_type": str(creator_type.id), "role": str(uuid.uuid4()),
        },
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Role not found"
    next_id_mock.assert_not_awaited()
    create_mock.assert_not_awaited()

async def test_update_user_to_unknown_role_writes_nothing(
    client: AsyncClient, api_prefix: str, superadmin, creator_type, mocker: MockerFixture
):
    existing = make_user(creator_type)
    mocker.patch(f"{SERVICE_CRUD}.get_user_by_id", new_callable=AsyncMock, return_value=existing)
    mocker.patch(f"{SERVICE_CRUD}.get_role_by_id", new_callable=AsyncMock, return_value=None)
    update_mock = mocker.patch(f"{SERVICE_CRUD}.update_user", new_callable=AsyncMock)

    response = await client.put(f"{api_prefix}/users/{existing.id}", json={"role": str(uuid.uuid4())})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Role not found"
    update_mock.assert_not_awaited()

async def test_create_user_when_uniqueness_lookup_fails(
    client: AsyncClient, api_prefix: str, superadmin, creator_type, mocker: MockerFixture
):
    mocker.patch(f"{SERVICE_CRUD}.user_exists", new_callable=AsyncMock, return_value=None)
    create_mock = mocker.patch(f"{SERVICE_CRUD}.create_user", new_callable=AsyncMock)

    response = await client.post(
        f"{api_prefix}/users/",
        json={"name": "Asha Rao", "email": "asha@example.com", "password": "secret1", "user_type": str(creator_type.id)},
    )

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["detail"] == "Could not create the user record."
    create_mock.assert_not_awaited()

async def test_check_username_when_lookup_fails(client: AsyncClient, api_prefix: str, mocker: MockerFixture):
    mocker.patch(f"{ENDPOINT_CRUD}.user_exists", new_callable=AsyncMock, return_value=None)
    response = await client.get(f"{api_prefix}/users/check-username", params={"username": "asharao"})
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["detail"] == "Could not check availability."
