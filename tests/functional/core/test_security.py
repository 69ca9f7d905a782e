# tests/functional/core/test_security.py

import pytest
from datetime import datetime, timedelta, timezone
from jose import jwt
from fastapi import HTTPException

from adminhub.core.config import settings
from adminhub.core.security import (
    create_access_token,
    validate_token,
    get_current_user_payload,
    get_password_hash,
    verify_password,
    TokenValidationError,
    SecurityError,
)

# --- Password Hashing Tests ---

def test_password_hash_round_trip():
    hashed = get_password_hash("s3cret!pw")
    assert hashed != "s3cret!pw"
    assert verify_password("s3cret!pw", hashed) is True
    assert verify_password("wrong-password", hashed) is False

def test_verify_password_with_missing_or_unknown_hash():
    assert verify_password("anything", None) is False
    assert verify_password("anything", "") is False
    assert verify_password("anything", "not-a-real-hash") is False

# --- Token Tests ---

def test_create_and_validate_token():
    token = create_access_token("user-123", claims={"user": {"name": "Asha"}})
    payload = validate_token(token)
    assert payload["sub"] == "user-123"
    assert payload["user"]["name"] == "Asha"
    assert payload["exp"] > payload["iat"]

def test_validate_token_expired():
    token = create_access_token("user-123", expires_delta=timedelta(seconds=-10))
    with pytest.raises(TokenValidationError, match="Expired signature"):
        validate_token(token)

def test_validate_token_wrong_secret():
    token = jwt.encode(
        {"sub": "user-123", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        "some-other-secret",
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(TokenValidationError, match="Invalid token"):
        validate_token(token)

def test_validate_token_missing_subject():
    token = jwt.encode(
        {"exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(TokenValidationError, match="Missing subject"):
        validate_token(token)

def test_validate_token_without_configured_secret(mocker):
    mocker.patch.object(settings, "JWT_SECRET", None)
    with pytest.raises(TokenValidationError, match="JWT_SECRET is not configured"):
        validate_token("a.b.c")

def test_token_validation_error_is_security_error():
    assert issubclass(TokenValidationError, SecurityError)

# --- Dependency Tests ---

@pytest.mark.asyncio
async def test_get_current_user_payload_without_token():
    with pytest.raises(HTTPException) as exc_info:
        await get_current_user_payload(token=None)
    assert exc_info.value.status_code == 401
    assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

@pytest.mark.asyncio
async def test_get_current_user_payload_with_bad_token():
    with pytest.raises(HTTPException) as exc_info:
        await get_current_user_payload(token="not.a.token")
    assert exc_info.value.status_code == 401

@pytest.mark.asyncio
async def test_get_current_user_payload_success():
    token = create_access_token("user-456")
    payload = await get_current_user_payload(token=token)
    assert payload["sub"] == "user-456"
