# tests/functional/api/v1/endpoints/test_creators.py
import uuid
import pytest
from typing import Any, Dict
from unittest.mock import AsyncMock
from httpx import AsyncClient
from pytest_mock import MockerFixture
from fastapi import status

from adminhub.models.creator import Creator

pytestmark = pytest.mark.asyncio

CRUD = "adminhub.api.v1.endpoints.creators.crud"


@pytest.fixture
def signup_payload() -> Dict[str, Any]:
    return {
        "name": "Asha Rao",
        "email": "Asha@Example.com",
        "username": "asharao",
        "phone_number": "+919811111111",
        "instagram": "@asharao",
        "youtube": "asharao-tv",
    }

def make_creator(**overrides: Any) -> Creator:
    data: Dict[str, Any] = {
        "_id": uuid.uuid4(),
        "name": "Asha Rao",
        "email": "asha@example.com",
        "username": "asharao",
        "phone_number": "+919811111111",
        "creator_id": "CA00007",
        "status": "pending",
    }
    data.update(overrides)
    return Creator(**data)


async def test_signup_success(client: AsyncClient, api_prefix: str, signup_payload, mocker: MockerFixture):
    mocker.patch(f"{CRUD}.creator_exists", new_callable=AsyncMock, return_value=False)
    mocker.patch(f"{CRUD}.get_next_creator_id", new_callable=AsyncMock, return_value="CA00007")
    create_mock = mocker.patch(f"{CRUD}.create_creator", new_callable=AsyncMock, return_value=make_creator())

    response = await client.post(f"{api_prefix}/creators/signup", json=signup_payload)

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json() == {"message": "Request sent to Creator Admin.", "creator_id": "CA00007"}

    fields, creator_id, creator_status = create_mock.await_args.args
    assert creator_id == "CA00007"
    assert creator_status == "pending"
    assert fields["email"] == "asha@example.com"
    assert fields["social_media"] == {"instagram": "@asharao", "facebook": None, "youtube": "asharao-tv"}

async def test_signup_duplicate_phone_creates_nothing(client: AsyncClient, api_prefix: str, signup_payload, mocker: MockerFixture):
    async def exists(field, value, exclude_id=None):
        return field == "phone_number"

    mocker.patch(f"{CRUD}.creator_exists", side_effect=exists)
    next_id_mock = mocker.patch(f"{CRUD}.get_next_creator_id", new_callable=AsyncMock)
    create_mock = mocker.patch(f"{CRUD}.create_creator", new_callable=AsyncMock)

    response = await client.post(f"{api_prefix}/creators/signup", json=signup_payload)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Phone number is already registered."
    next_id_mock.assert_not_awaited()
    create_mock.assert_not_awaited()

async def test_signup_duplicate_email(client: AsyncClient, api_prefix: str, signup_payload, mocker: MockerFixture):
    async def exists(field, value, exclude_id=None):
        return field == "email"

    mocker.patch(f"{CRUD}.creator_exists", side_effect=exists)
    create_mock = mocker.patch(f"{CRUD}.create_creator", new_callable=AsyncMock)

    response = await client.post(f"{api_prefix}/creators/signup", json=signup_payload)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Creator with this email already exists."
    create_mock.assert_not_awaited()

async def test_signup_duplicate_username(client: AsyncClient, api_prefix: str, signup_payload, mocker: MockerFixture):
    async def exists(field, value, exclude_id=None):
        return field == "username"

    mocker.patch(f"{CRUD}.creator_exists", side_effect=exists)
    response = await client.post(f"{api_prefix}/creators/signup", json=signup_payload)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Username is already taken."

async def test_check_phone_availability(client: AsyncClient, api_prefix: str, mocker: MockerFixture):
    mocker.patch(f"{CRUD}.creator_exists", new_callable=AsyncMock, return_value=True)
    response = await client.get(f"{api_prefix}/creators/check-phone", params={"phone_number": "+919811111111"})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["available"] is False

async def test_list_creators_requires_permission(client: AsyncClient, api_prefix: str, plain_user):
    response = await client.get(f"{api_prefix}/creators/")
    assert response.status_code == status.HTTP_403_FORBIDDEN

async def test_approve_creator(client: AsyncClient, api_prefix: str, superadmin, mocker: MockerFixture):
    creator = make_creator(status="active")
    status_mock = mocker.patch(f"{CRUD}.set_creator_status", new_callable=AsyncMock, return_value=creator)

    response = await client.post(f"{api_prefix}/creators/{creator.id}/approve")

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["message"] == "Creator approved"
    assert body["creator"]["status"] == "active"
    assert status_mock.await_args.args[0] == creator.id

async def test_update_creator_duplicate_email(client: AsyncClient, api_prefix: str, superadmin, mocker: MockerFixture):
    async def exists(field, value, exclude_id=None):
        return field == "email"

    mocker.patch(f"{CRUD}.get_creator_by_id", new_callable=AsyncMock, return_value=make_creator())
    mocker.patch(f"{CRUD}.creator_exists", side_effect=exists)
    update_mock = mocker.patch(f"{CRUD}.update_creator", new_callable=AsyncMock)

    response = await client.put(f"{api_prefix}/creators/{uuid.uuid4()}", json={"email": "taken@example.com"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "A creator with this email already exists."
    update_mock.assert_not_awaited()

async def test_signup_when_uniqueness_lookup_fails(client: AsyncClient, api_prefix: str, signup_payload, mocker: MockerFixture):
    mocker.patch(f"{CRUD}.creator_exists", new_callable=AsyncMock, return_value=None)
    create_mock = mocker.patch(f"{CRUD}.create_creator", new_callable=AsyncMock)

    response = await client.post(f"{api_prefix}/creators/signup", json=signup_payload)

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["detail"] == "Could not check availability."
    create_mock.assert_not_awaited()
