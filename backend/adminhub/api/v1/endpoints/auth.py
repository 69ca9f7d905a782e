# adminhub/api/v1/endpoints/auth.py

import logging
from typing import Dict
from fastapi import APIRouter, HTTPException, status, Depends

from adminhub.models.auth import LoginRequest, TokenResponse, ChangePasswordRequest, Principal
from adminhub.models.user import UserProfile
from adminhub.services import auth_service
from adminhub.services.auth_service import (
    AuthValidationError, InvalidCredentialsError, AccountNotFoundError,
    UserTypeMissingError, PasswordResetRequiredError,
)
from adminhub.api.deps import get_current_principal

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)

@router.post(
    "/login",
    response_model=TokenResponse,
    status_code=status.HTTP_200_OK,
    summary="Log in with email and password",
    description="Verifies the credentials and returns a bearer token valid for five hours."
)
async def login(credentials: LoginRequest):
    try:
        return await auth_service.login(credentials.email, credentials.password)
    except AuthValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except InvalidCredentialsError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    except UserTypeMissingError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except PasswordResetRequiredError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": str(e), "password_reset_required": True, "user_id": str(e.user_id)},
        )
    except Exception as e:
        logger.error(f"Unexpected error during login: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error")

@router.post(
    "/change-password",
    status_code=status.HTTP_200_OK,
    summary="Change a user's password",
    description="Requires the old password. Clears any pending password reset."
)
async def change_password(request: ChangePasswordRequest) -> Dict[str, str]:
    try:
        await auth_service.change_password(request)
    except AuthValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except AccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidCredentialsError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    except Exception as e:
        logger.error(f"Unexpected error changing password: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error")
    return {"message": "Password changed successfully."}

@router.get(
    "/profile",
    response_model=UserProfile,
    status_code=status.HTTP_200_OK,
    summary="Get the current user's profile (Protected)",
    description="Returns the authenticated user without the password hash, with the screens their role can view."
)
async def read_profile(principal: Principal = Depends(get_current_principal)):
    try:
        return await auth_service.get_profile(principal)
    except AccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
