# app/api/deps/auth.py - Bearer token to Principal, plus capability guards
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Callable
import logging

from app.core.db import get_db
from app.core.permissions import Capability, Principal
from app.core.security import decode_token
from app.models.user import User, UserRole

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Principal:
    """
    Decode the JWT and build the Principal passed to services.

    The user row is re-read so deactivated accounts lose access before
    their token expires.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    claims = decode_token(credentials.credentials)

    user_id = claims.get("sub")
    if not user_id:
        raise _unauthorized("Token missing user ID")

    user = db.get(User, user_id)
    if not user:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise _unauthorized("Account deactivated")

    try:
        role = UserRole(user.role)
    except ValueError:
        logger.error(f"User {user.id} has unknown role {user.role}")
        raise _unauthorized("Invalid role")

    return Principal(
        user_id=user.id,
        role=role,
        display_name=claims.get("name") or role.value,
        student_id=claims.get("student_id") if role == UserRole.STUDENT else None,
    )


def require_capability(capability: Capability) -> Callable[..., Principal]:
    """
    Dependency factory for routes that only staff with a capability may call.
    Usage: principal: Principal = Depends(require_capability(Capability.APPROVE_PAYMENTS))
    """
    def checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.can(capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. {principal.role.value} cannot {capability.value}",
            )
        return principal
    return checker
