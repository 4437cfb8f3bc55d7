"""
RBAC Dependencies.
Resolve the bearer token to a tenant-scoped user and gate endpoints by role.
"""
import logging
from typing import Callable, List

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.security import decode_access_token
from app.database import get_db
from app.models.user import User, UserRole
from app.services import permissions

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    """
    Extracts and validates the current user from the JWT token.
    """
    payload = decode_access_token(token)

    if payload is None:
        logger.warning("Authentication failed: Invalid token")
        raise _unauthorized("Could not validate credentials")

    if payload.get("error") == "TOKEN_EXPIRED":
        logger.info("Authentication failed: Token expired")
        raise _unauthorized("TOKEN_EXPIRED")

    if payload.get("type") != "access":
        logger.warning("Authentication failed: Invalid token type")
        raise _unauthorized("Invalid token type")

    subject = payload.get("sub")
    tenant_id = payload.get("tenant_id")
    if subject is None or tenant_id is None:
        logger.warning("Authentication failed: Missing subject or tenant in token")
        raise _unauthorized("Missing subject in token")

    try:
        user_id = int(subject)
    except (TypeError, ValueError):
        raise _unauthorized("Invalid subject in token")

    user = db.query(User).filter(User.id == user_id, User.tenant_id == int(tenant_id)).first()
    if user is None:
        logger.warning(f"Authentication failed: User {subject} not found in tenant {tenant_id}")
        raise _unauthorized("User not found")
    if not user.is_active:
        logger.warning(f"Authentication failed: User {subject} is inactive")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive")
    return user


def require_role(allowed_roles: List[UserRole]) -> Callable:
    """
    Dependency factory that checks if the user has one of the allowed roles.

    Usage:
        @router.post("/types")
        def create_type(user: User = Depends(require_role([UserRole.ADMIN]))):
            ...
    """
    def role_checker(current_user: User = Depends(get_current_user)):
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {[r.value for r in allowed_roles]}"
            )
        return current_user
    return role_checker


def require_admin():
    """Shorthand for requiring the Admin role."""
    return require_role([UserRole.ADMIN])


def require_approver():
    """Shorthand for roles that may approve leave and manage recruitment."""
    return require_role([UserRole.ADMIN, UserRole.MANAGER])


def require_recruiter() -> Callable:
    """Roles allowed to run recruitment and read email templates."""
    def recruiter_checker(current_user: User = Depends(get_current_user)):
        if not permissions.can_manage_recruitment(current_user.role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. Recruitment is limited to admins and managers."
            )
        return current_user
    return recruiter_checker
