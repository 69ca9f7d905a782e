# adminhub/core/security.py
"""
Security module for password hashing and bearer-token authentication.

Provides functionality for:
- Argon2 password hashing through passlib.
- Issuing HS256 access tokens at login.
- JWT token validation (signature, expiry, subject).
- FastAPI dependency returning the validated token payload.
- Custom exceptions for specific security errors.

Example Usage in Endpoints:
    ```python
    from fastapi import APIRouter, Depends
    from typing import Dict, Any
    from adminhub.core.security import get_current_user_payload

    router = APIRouter()

    @router.get("/protected-resource")
    async def get_protected_resource(
        payload: Dict[str, Any] = Depends(get_current_user_payload)
    ):
        return {"message": f"Hello user {payload['sub']}"}
    ```

Endpoints normally depend on `adminhub.api.deps.get_current_principal`, which
builds on this dependency and loads the caller's role permissions.
"""

import logging
from typing import Dict, Any, Optional
from datetime import datetime, timedelta, timezone

# --- JOSE & passlib Imports ---
from jose import jwt, exceptions as jose_exceptions
from passlib.context import CryptContext

# --- FastAPI Imports ---
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from .config import settings

logger = logging.getLogger(__name__)

# --- Custom Exceptions ---
class SecurityError(Exception):
    """Base class for security-related exceptions."""
    pass

class TokenValidationError(SecurityError):
    """Raised when token validation fails (expiry, signature, claims, etc.)."""
    pass

class TokenConfigurationError(SecurityError):
    """Raised when the signing secret is not configured."""
    pass

# --- Password Hashing ---
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Checks a plain password against a stored hash. Unknown or malformed hashes never match."""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.warning(f"Stored password hash could not be identified: {e}")
        return False

# --- Token Issuing ---

def _signing_secret() -> str:
    if not settings.JWT_SECRET:
        raise TokenConfigurationError("JWT_SECRET is not configured.")
    return settings.JWT_SECRET

def create_access_token(subject: str, claims: Optional[Dict[str, Any]] = None, expires_delta: Optional[timedelta] = None) -> str:
    """
    Creates a signed access token.

    Args:
        subject: Internal user ID, stored as `sub`.
        claims: Extra claims, e.g. the `user` summary returned at login.
        expires_delta: Lifetime; defaults to ACCESS_TOKEN_EXPIRE_HOURS.

    Returns:
        The encoded JWT string.
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS))
    to_encode: Dict[str, Any] = dict(claims or {})
    to_encode.update({"sub": subject, "iat": now, "exp": expire})
    return jwt.encode(to_encode, _signing_secret(), algorithm=settings.JWT_ALGORITHM)

# --- JWT Validation Function ---

def validate_token(token: str) -> Dict[str, Any]:
    """
    Decodes and validates an access token issued by this service.

    Raises:
        TokenValidationError: If the secret is missing or validation fails
                              (signature, expiry, missing subject).
    """
    try:
        secret = _signing_secret()
    except TokenConfigurationError as e:
        raise TokenValidationError(str(e))

    try:
        payload = jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])
    except jose_exceptions.ExpiredSignatureError:
        raise TokenValidationError("Token validation failed: Expired signature.")
    except jose_exceptions.JWTClaimsError as e:
        raise TokenValidationError(f"Token validation failed: Invalid claims - {e}")
    except jose_exceptions.JWTError as e:
        raise TokenValidationError(f"Token validation failed: Invalid token - {e}")

    if not payload.get("sub"):
        raise TokenValidationError("Token validation failed: Missing subject.")
    logger.debug("Token successfully validated.")
    return payload


# --- FastAPI Dependency for Authentication ---

# auto_error=False so a missing token is reported by our own 401
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/auth/login", auto_error=False)

async def get_current_user_payload(
    token: Optional[str] = Depends(oauth2_scheme)
) -> Dict[str, Any]:
    """
    FastAPI dependency to validate the bearer token and return its payload.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if token is None:
        logger.warning("Authentication attempt failed: No token provided.")
        raise credentials_exception

    try:
        return validate_token(token)
    except TokenValidationError as e:
        logger.warning(f"Authentication failed: {e}")
        raise credentials_exception from e
