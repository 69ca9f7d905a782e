# adminhub/services/auth_service.py
"""
Account services: login, password changes, the caller's profile and admin-side
account creation (readable user IDs, creator IDs, temporary passwords).
"""

import logging
import secrets
import string
import time
import uuid
from typing import Optional, Dict, Any

from ..core.security import create_access_token, get_password_hash, verify_password
from ..db import crud
from ..models.auth import Principal, TokenResponse, ChangePasswordRequest
from ..models.enums import AccountStatus, UserTypeName
from ..models.user import User, UserCreate, UserUpdate, UserProfile, PasswordResetResponse
from . import role_service

logger = logging.getLogger(__name__)

USER_ID_PREFIXES: Dict[str, str] = {
    UserTypeName.SUPERADMIN.value: "SA",
    UserTypeName.ADMIN.value: "AD",
    UserTypeName.CREATOR.value: "CR",
    UserTypeName.BRAND.value: "BR",
    UserTypeName.ACCOUNT_MANAGER.value: "AM",
    UserTypeName.EMPLOYEE.value: "EM",
    UserTypeName.CEO_CREATOR.value: "CC",
}
DEFAULT_USER_ID_PREFIX = "US"
DEFAULT_SCREENS = ["Dashboard"]


# --- Exceptions ---
class AuthError(Exception):
    """Base class for account failures."""
    pass

class AuthValidationError(AuthError):
    pass

class InvalidCredentialsError(AuthError):
    pass

class AccountNotFoundError(AuthError):
    pass

class DuplicateAccountError(AuthError):
    pass

class UserTypeMissingError(AuthError):
    pass

class PasswordResetRequiredError(AuthError):
    def __init__(self, user_id: uuid.UUID):
        self.user_id = user_id
        super().__init__("Password reset is required. Please change your password.")


# --- Readable IDs ---

def generate_user_id(user_type_name: Optional[str]) -> str:
    """Prefix by user type + last six digits of the epoch millis + three random capitals."""
    prefix = USER_ID_PREFIXES.get((user_type_name or "").lower(), DEFAULT_USER_ID_PREFIX)
    timestamp = str(int(time.time() * 1000))[-6:]
    suffix = "".join(secrets.choice(string.ascii_uppercase) for _ in range(3))
    return f"{prefix}{timestamp}{suffix}"

def generate_temporary_password() -> str:
    return secrets.token_urlsafe(9)


# --- Authentication ---

async def login(email: Optional[str], password: Optional[str]) -> TokenResponse:
    if not email or not password:
        raise AuthValidationError("Email and password are required.")

    user = await crud.get_user_in_db_by_email(email)
    if user is None or user.status == AccountStatus.DELETED.value:
        raise InvalidCredentialsError("Invalid credentials.")

    user_type = await crud.get_user_type_by_id(user.user_type)
    if user_type is None:
        raise UserTypeMissingError("User type missing or invalid. Please contact support.")

    if not verify_password(password, user.password_hash):
        logger.info(f"Failed login for user {user.id}")
        raise InvalidCredentialsError("Invalid credentials.")

    await crud.touch_last_login(user.id)

    if user.password_reset_required:
        raise PasswordResetRequiredError(user.id)

    role = await crud.get_role_by_id(user.role) if user.role else None
    claims: Dict[str, Any] = {
        "user": {
            "id": str(user.id),
            "name": user.name,
            "email": user.email,
            "user_type": user_type.name,
            "role": role.name if role else None,
        }
    }
    logger.info(f"User {user.id} logged in")
    return TokenResponse(access_token=create_access_token(str(user.id), claims))

async def change_password(request: ChangePasswordRequest) -> None:
    if not request.user_id or not request.old_password or not request.new_password:
        raise AuthValidationError("User ID, old password, and new password are required.")

    user = await crud.get_user_in_db_by_id(request.user_id)
    if user is None:
        raise AccountNotFoundError("User not found.")
    if not verify_password(request.old_password, user.password_hash):
        raise InvalidCredentialsError("Invalid old password.")

    if not await crud.set_user_password(user.id, get_password_hash(request.new_password), reset_required=False):
        raise AuthError("Failed to update password")
    logger.info(f"Password changed for user {user.id}")

async def get_profile(principal: Principal) -> UserProfile:
    user = await crud.get_user_by_id(principal.id)
    if user is None:
        raise AccountNotFoundError("User not found")

    role = await crud.get_role_by_id(user.role) if user.role else None
    user_type = await crud.get_user_type_by_id(user.user_type)
    grants = role.permissions if role else []
    screens = [grant.resource for grant in grants if grant.action == "View"] or list(DEFAULT_SCREENS)

    profile_data = user.model_dump(by_alias=True)
    profile_data["assigned_screens"] = screens
    return UserProfile(
        **profile_data,
        role_name=role.name if role else None,
        user_type_name=user_type.name if user_type else None,
        permissions=[grant.model_dump() for grant in grants],
    )


# --- Admin Account Management ---

async def _ensure_unique(email: Optional[str], username: Optional[str], phone_number: Optional[str], exclude_id: Optional[uuid.UUID] = None) -> None:
    checks = (
        ("email", str(email).lower() if email else None, "User with this email already exists."),
        ("username", username, "Username is already taken."),
        ("phone_number", phone_number, "Phone number is already registered."),
    )
    for field, value, message in checks:
        if not value:
            continue
        taken = await crud.user_exists(field, value, exclude_id)
        if taken is None:
            raise AuthError(f"Could not check {field} uniqueness")
        if taken:
            raise DuplicateAccountError(message)

async def _ensure_role_exists(role_id: Optional[uuid.UUID]) -> None:
    if role_id is not None and await crud.get_role_by_id(role_id) is None:
        raise AuthValidationError("Role not found")

async def create_user(user_in: UserCreate) -> User:
    """Creates a user with a readable `user_id` and, for creators, the next `creator_id`."""
    await _ensure_unique(user_in.email, user_in.username, user_in.phone_number)

    user_type = await crud.get_user_type_by_id(user_in.user_type)
    if user_type is None:
        raise AuthValidationError("Invalid user type.")
    await _ensure_role_exists(user_in.role)

    user_id = generate_user_id(user_type.name)
    creator_id = None
    if user_type.name.lower() == UserTypeName.CREATOR.value:
        creator_id = await crud.get_next_creator_id()

    user = await crud.create_user(user_in, get_password_hash(user_in.password), user_id, creator_id)
    if user is None:
        raise AuthError("Failed to create user")

    if user.role:
        await role_service.assign_user_role(user.id, user.role)
    logger.info(f"User {user.id} created as {user_id} ({user_type.name})")
    return user

async def update_user(user_id: uuid.UUID, user_in: UserUpdate) -> User:
    existing = await crud.get_user_by_id(user_id)
    if existing is None:
        raise AccountNotFoundError("User not found")

    await _ensure_unique(user_in.email, user_in.username, user_in.phone_number, exclude_id=user_id)
    if "role" in user_in.model_fields_set and user_in.role != existing.role:
        await _ensure_role_exists(user_in.role)
    user = await crud.update_user(user_id, user_in)
    if user is None:
        raise AuthError(f"Failed to update user {user_id}")

    if "role" in user_in.model_fields_set and user.role != existing.role:
        await role_service.assign_user_role(user.id, user.role)
    return user

async def set_user_status(user_id: uuid.UUID, status: AccountStatus) -> User:
    user = await crud.set_user_fields(user_id, {"status": status.value})
    if user is None:
        raise AccountNotFoundError("User not found")
    logger.info(f"User {user_id} status set to {status.value}")
    return user

async def reset_password(user_id: uuid.UUID) -> PasswordResetResponse:
    """Issues a temporary password. Only its hash is stored; the plain value is returned once."""
    temporary_password = generate_temporary_password()
    if not await crud.set_user_password(user_id, get_password_hash(temporary_password), reset_required=True):
        raise AccountNotFoundError("User not found")
    logger.info(f"Temporary password issued for user {user_id}")
    return PasswordResetResponse(
        message="Password has been reset. The user must change it at next login.",
        temporary_password=temporary_password,
    )
