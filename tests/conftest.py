# tests/conftest.py
import uuid
import logging
from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from fastapi import FastAPI
from asgi_lifespan import LifespanManager
from httpx import AsyncClient, ASGITransport
from pytest_mock import MockerFixture

from adminhub.core.config import settings
from adminhub.models.auth import Principal
from adminhub.models.role import PermissionGrant

logger = logging.getLogger(__name__)

# Tokens are issued and validated locally; give the tests a signing secret
settings.JWT_SECRET = "test-signing-secret"

from adminhub.api.deps import get_current_principal  # noqa: E402


# --- Fixtures ---

@pytest_asyncio.fixture(scope="function")
async def app(mocker: MockerFixture) -> AsyncGenerator[FastAPI, None]:
    """The FastAPI app with database startup/shutdown patched out."""
    logger.info("Mocking DB connect/disconnect and init_db for app fixture...")
    mocker.patch("adminhub.main.connect_to_mongo", return_value=True)
    mocker.patch("adminhub.main.close_mongo_connection", return_value=None)
    mocker.patch("adminhub.main.init_db", return_value=None)

    # Import the app *after* patching the lifecycle functions
    from adminhub.main import app as fastapi_app

    async with LifespanManager(fastapi_app, startup_timeout=15, shutdown_timeout=15):
        yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as async_client:
        yield async_client


@pytest.fixture
def api_prefix() -> str:
    return settings.API_V1_PREFIX


def make_principal(role_name: str = "Viewer", grants=(), user_type: str = "employee") -> Principal:
    return Principal(
        id=uuid.uuid4(),
        email=f"{role_name.lower().replace(' ', '.')}@example.com",
        name=role_name,
        role_id=uuid.uuid4(),
        role_name=role_name,
        user_type=user_type,
        permissions=[PermissionGrant(resource=resource, action=action) for resource, action in grants],
    )


@pytest.fixture
def as_principal(app: FastAPI) -> Callable[[Principal], Principal]:
    """Makes every request in the test authenticate as the given principal."""
    def _apply(principal: Principal) -> Principal:
        async def override_get_current_principal() -> Principal:
            return principal
        app.dependency_overrides[get_current_principal] = override_get_current_principal
        return principal
    return _apply


@pytest.fixture
def superadmin(as_principal) -> Principal:
    return as_principal(make_principal("superadmin", user_type="superadmin"))


@pytest.fixture
def plain_user(as_principal) -> Principal:
    """Authenticated, but the role carries no grants."""
    return as_principal(make_principal("Creator", user_type="creator"))


@pytest.fixture
def principal_factory() -> Callable[..., Principal]:
    return make_principal
