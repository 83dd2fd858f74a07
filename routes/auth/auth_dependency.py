# routes/auth/auth_dependency.py

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
import logging

from db.connection import get_db
from db.models import UserDetails, UserRole
from routes.auth.JWTSecurity import verify_token


logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


class AuthDependency:
    """
    Authentication dependency class for API endpoints
    """

    def __call__(
        self,
        credentials: HTTPAuthorizationCredentials = Depends(security),
        db: Session = Depends(get_db)
    ) -> UserDetails:
        if not credentials:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authorization header missing",
                headers={"WWW-Authenticate": "Bearer"},
            )

        payload = verify_token(credentials.credentials)
        if not payload:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
                headers={"WWW-Authenticate": "Bearer"},
            )

        user = db.get(UserDetails, payload["sub"])
        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not found",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="User account is deactivated",
            )

        return user


get_current_user = AuthDependency()


# Role-based access control
def require_role(*allowed_roles: UserRole):
    """
    Dependency factory restricting an endpoint to the given roles.
    """
    allowed = {getattr(r, "value", r) for r in allowed_roles}

    def role_checker(
        current_user: UserDetails = Depends(get_current_user)
    ) -> UserDetails:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {sorted(allowed)}"
            )
        return current_user

    return role_checker


def is_bd_executive(user: UserDetails) -> bool:
    return user.role == UserRole.bd_executive.value


def is_privileged(user: UserDetails) -> bool:
    return user.role in (UserRole.admin.value, UserRole.manager.value)
