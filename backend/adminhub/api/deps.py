# adminhub/api/deps.py
import logging
import uuid
from typing import Any, Callable, Dict, Awaitable

from fastapi import Depends, HTTPException, status

from adminhub.core.security import get_current_user_payload
from adminhub.db import crud
from adminhub.models.auth import Principal
from adminhub.models.enums import AccountStatus

logger = logging.getLogger(__name__)


def _unauthorized(detail: str = "Invalid authentication credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )

async def get_current_principal(
    payload: Dict[str, Any] = Depends(get_current_user_payload)
) -> Principal:
    """Resolves the bearer token to the requesting user with their role grants."""
    try:
        user_uuid = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        logger.warning(f"Token subject is not a user id: {payload.get('sub')!r}")
        raise _unauthorized()

    user = await crud.get_user_by_id(user_uuid)
    if user is None:
        raise _unauthorized()
    if user.status == AccountStatus.INACTIVE.value:
        raise _unauthorized("Account is deactivated")

    role = await crud.get_role_by_id(user.role) if user.role else None
    user_type = await crud.get_user_type_by_id(user.user_type)
    return Principal(
        id=user.id,
        email=user.email,
        name=user.name,
        role_id=role.id if role else None,
        role_name=role.name if role else None,
        user_type=user_type.name if user_type else None,
        permissions=role.permissions if role else [],
    )

def require_permission(resource: str, action: str) -> Callable[..., Awaitable[Principal]]:
    """
    Dependency factory: the caller needs (resource, action), an `All` grant on the
    resource, or the superadmin role.

    Usage:
        principal: Principal = Depends(require_permission("KYC", "Edit"))
    """
    async def permission_checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.has_permission(resource, action):
            logger.warning(f"User {principal.id} denied {action} on {resource}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"You do not have permission to {action} {resource}.",
            )
        return principal
    return permission_checker
